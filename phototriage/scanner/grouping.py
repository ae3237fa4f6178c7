"""
Group assembly for the scanner package.

Turns the candidate pair stream into duplicate groups. Unlike the plain
Union-Find used for exact matching, every join is checked against the
group's representative (its first member), so a chain of pairwise-similar
but cumulatively different images cannot drift into one group.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..models import CandidatePair, DuplicateGroup, FingerprintRecord
from ..user_config import EngineConfig, DEFAULT_CONFIG
from .hashing import hamming_distance

logger = logging.getLogger(__name__)


def _matches_representative(
    identifier: str,
    representative: str,
    fingerprints: dict[str, FingerprintRecord],
    threshold: int,
) -> bool:
    """Relaxed dHash check against a representative; unknown fingerprints never match."""
    fp = fingerprints.get(identifier)
    rep = fingerprints.get(representative)
    if fp is None or rep is None:
        return False
    return hamming_distance(fp.dhash, rep.dhash) <= threshold


def assemble_groups(
    pairs: Iterable[CandidatePair],
    fingerprints: dict[str, FingerprintRecord],
    config: Optional[EngineConfig] = None,
) -> dict[int, list[str]]:
    """
    Assemble candidate pairs into duplicate groups.

    For each pair (A, B):
    - neither assigned: new group [A, B]
    - one assigned: the other joins only if it matches the representative
    - both assigned to different groups: merge only if the two
      representatives match each other, otherwise drop the pair
    - both in the same group: nothing to do

    Args:
        pairs: Candidate pairs in emission order
        fingerprints: identifier -> FingerprintRecord
        config: Engine configuration (defaults when omitted)

    Returns:
        Dict of group id (numbered from 1) -> members, first member is the
        representative. Every identifier appears in at most one group and
        every group has at least 2 members.
    """
    config = config or DEFAULT_CONFIG
    threshold = config.representative_threshold

    image_to_group: dict[str, int] = {}
    groups: dict[int, list[str]] = {}
    next_id = 0
    dropped = 0

    for first, second in pairs:
        if first == second:
            continue

        group_a = image_to_group.get(first)
        group_b = image_to_group.get(second)

        if group_a is None and group_b is None:
            groups[next_id] = [first, second]
            image_to_group[first] = next_id
            image_to_group[second] = next_id
            next_id += 1

        elif group_a is not None and group_b is None:
            if _matches_representative(second, groups[group_a][0], fingerprints, threshold):
                groups[group_a].append(second)
                image_to_group[second] = group_a
            else:
                dropped += 1

        elif group_a is None and group_b is not None:
            if _matches_representative(first, groups[group_b][0], fingerprints, threshold):
                groups[group_b].append(first)
                image_to_group[first] = group_b
            else:
                dropped += 1

        elif group_a != group_b:
            rep_a, rep_b = groups[group_a][0], groups[group_b][0]
            if _matches_representative(rep_b, rep_a, fingerprints, threshold):
                for member in groups[group_b]:
                    image_to_group[member] = group_a
                groups[group_a].extend(groups.pop(group_b))
            else:
                dropped += 1

    if dropped:
        logger.debug(f"Dropped {dropped} pairs that failed the representative check")

    result: dict[int, list[str]] = {}
    for members in groups.values():
        if len(members) >= 2:
            result[len(result) + 1] = members
    return result


def build_duplicate_groups(
    pairs: Iterable[CandidatePair],
    fingerprints: dict[str, FingerprintRecord],
    config: Optional[EngineConfig] = None,
) -> list[DuplicateGroup]:
    """Same as assemble_groups, returned as DuplicateGroup objects."""
    return [
        DuplicateGroup(id=group_id, members=members)
        for group_id, members in assemble_groups(pairs, fingerprints, config).items()
    ]


__all__ = ['assemble_groups', 'build_duplicate_groups']
