"""
Transit Priority Rules

Tier classification, per-tier name deduplication and the tier-1-first fill
that decides which stops are reported for a search point.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from src.geoenrich.models.transit import StopCandidate, TransitLine, TransitMode, TransitStop

TIER_PRIMARY = 1
TIER_SECONDARY = 2
TIER_EXCLUDED = 3

MODE_TIERS: Dict[TransitMode, int] = {
    TransitMode.METRO: TIER_PRIMARY,
    TransitMode.TRAIN: TIER_PRIMARY,
    TransitMode.TRAM: TIER_SECONDARY,
    TransitMode.BUS: TIER_SECONDARY,
}

# Modes whose lines are associated with selected stops
LINE_MODES = (TransitMode.METRO, TransitMode.TRAIN, TransitMode.TRAM, TransitMode.BUS)


@dataclass(frozen=True)
class RankedCandidate:
    """A selected stop candidate with its tier."""

    candidate: StopCandidate
    tier: int


def stop_tier(stop: TransitStop) -> int:
    """
    Classify a stop into a priority tier.

    Metro and train are tier 1, tram and bus tier 2. Ferry and other modes
    are tier 3 and never selected, unless the stop is a generic platform,
    which falls back to tier 2.
    """
    tier = MODE_TIERS.get(stop.mode)
    if tier is not None:
        return tier
    return TIER_SECONDARY if stop.generic_platform else TIER_EXCLUDED


def _candidate_order(candidate: StopCandidate):
    return (candidate.distance_m, candidate.stop.id)


def dedupe_by_name(candidates: Iterable[StopCandidate]) -> List[StopCandidate]:
    """
    Keep the nearest candidate per normalized stop name.

    Names that normalize to an empty key (e.g. non-Latin, non-Cyrillic
    scripts) are kept per stop id instead of collapsing together.

    Returns:
        Surviving candidates ordered by distance, then id
    """
    nearest: Dict[str, StopCandidate] = {}
    for candidate in candidates:
        key = candidate.stop.name_key or f"#{candidate.stop.id}"
        current = nearest.get(key)
        if current is None or _candidate_order(candidate) < _candidate_order(current):
            nearest[key] = candidate
    return sorted(nearest.values(), key=_candidate_order)


def select_by_priority(candidates: Sequence[StopCandidate], limit: int) -> List[RankedCandidate]:
    """
    Pick up to `limit` stops, tier 1 first, then tier 2 to fill.

    Args:
        candidates: Stops within the search radius
        limit: Maximum number of stops to return

    Returns:
        Selected stops ordered by tier, then distance
    """
    if limit <= 0:
        return []

    by_tier: Dict[int, List[StopCandidate]] = {TIER_PRIMARY: [], TIER_SECONDARY: []}
    for candidate in candidates:
        tier = stop_tier(candidate.stop)
        if tier in by_tier:
            by_tier[tier].append(candidate)

    primary = dedupe_by_name(by_tier[TIER_PRIMARY])[:limit]
    secondary = dedupe_by_name(by_tier[TIER_SECONDARY])[:limit - len(primary)]

    return (
        [RankedCandidate(candidate, TIER_PRIMARY) for candidate in primary]
        + [RankedCandidate(candidate, TIER_SECONDARY) for candidate in secondary]
    )


def dedupe_lines(lines: Iterable[TransitLine], limit: int) -> List[TransitLine]:
    """
    Deduplicate lines by reference (or name when the reference is empty).

    The lowest id wins per key; lines with neither reference nor name are
    dropped.

    Returns:
        At most `limit` lines ordered by key, then id
    """
    unique: Dict[str, TransitLine] = {}
    for line in lines:
        key = line.dedup_key
        if not key:
            continue
        current = unique.get(key)
        if current is None or line.id < current.id:
            unique[key] = line
    ordered = sorted(unique.values(), key=lambda line: (line.dedup_key.lower(), line.id))
    return ordered[:limit]
