"""
Seeding Policy Evaluator

Decides whether a completed torrent may be removed from the client and whether
its files may be moved. Limits are layered: a per-torrent override wins over
the process-wide limit, and a dimension without any limit never triggers.

Eligibility rules:
    - a reached ratio limit counts only while the torrent is stopped
    - a reached global idle limit counts only while the torrent is stopped
    - a reached per-torrent idle limit also counts while the torrent is still
      seeding
    - files may only be moved once the torrent is stopped
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, TypeVar

from .models import SeedingLimits, SeedLimitMode, TransmissionTorrent

logger = logging.getLogger(__name__)

T = TypeVar("T", float, timedelta)


class LimitSource(Enum):
    """Where an effective limit came from."""
    OVERRIDE = "override"
    GLOBAL = "global"
    UNSET = "unset"


@dataclass(frozen=True)
class EffectiveLimit:
    value: Optional[float | timedelta]
    source: LimitSource

    @property
    def is_set(self) -> bool:
        return self.source != LimitSource.UNSET

    def is_reached(self, measured) -> bool:
        return self.is_set and measured >= self.value


@dataclass(frozen=True)
class SeedingDecision:
    can_be_removed: bool
    can_move_files: bool


NOT_ELIGIBLE = SeedingDecision(can_be_removed=False, can_move_files=False)

UNSET = EffectiveLimit(None, LimitSource.UNSET)


def _valid(value: Optional[T]) -> Optional[T]:
    """Drop missing, negative or non-numeric limits."""
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value if value >= timedelta(0) else None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number < 0:
        return None
    return number


def resolve_limit(override: Optional[T], global_value: Optional[T]) -> EffectiveLimit:
    """Resolve one dimension: override, then global, then unset."""
    override = _valid(override)
    if override is not None:
        return EffectiveLimit(override, LimitSource.OVERRIDE)

    global_value = _valid(global_value)
    if global_value is not None:
        return EffectiveLimit(global_value, LimitSource.GLOBAL)

    return UNSET


def decide(
    is_stopped: bool,
    is_seeding: bool,
    ratio: float,
    seeding_time: timedelta,
    ratio_limit: EffectiveLimit,
    idle_limit: EffectiveLimit,
) -> SeedingDecision:
    """Pure decision over already-resolved limits."""
    if not ratio_limit.is_set and not idle_limit.is_set:
        return NOT_ELIGIBLE

    ratio_reached = is_stopped and ratio_limit.is_reached(ratio)

    if idle_limit.source == LimitSource.OVERRIDE:
        idle_reached = (is_stopped or is_seeding) and idle_limit.is_reached(seeding_time)
    else:
        idle_reached = is_stopped and idle_limit.is_reached(seeding_time)

    can_be_removed = ratio_reached or idle_reached
    return SeedingDecision(
        can_be_removed=can_be_removed,
        can_move_files=can_be_removed and is_stopped,
    )


def evaluate(torrent: TransmissionTorrent, limits: SeedingLimits) -> SeedingDecision:
    """
    Evaluate a completed torrent against the seeding limits.

    Never raises: malformed limits are treated as unset.
    """
    # A per-torrent "unlimited" mode switches the dimension off entirely.
    if torrent.seed_ratio_mode == SeedLimitMode.UNLIMITED:
        ratio_limit = UNSET
    else:
        ratio_limit = resolve_limit(torrent.ratio_limit_override, limits.ratio_limit)

    if torrent.seed_idle_mode == SeedLimitMode.UNLIMITED:
        idle_limit = UNSET
    else:
        idle_limit = resolve_limit(torrent.idle_limit_override, limits.idle_limit)

    decision = decide(
        is_stopped=torrent.is_stopped,
        is_seeding=torrent.is_seeding,
        ratio=torrent.ratio,
        seeding_time=torrent.seeding_time,
        ratio_limit=ratio_limit,
        idle_limit=idle_limit,
    )

    logger.debug(
        f"Seeding policy for {torrent.name}: ratio={torrent.ratio:.2f} "
        f"(limit {ratio_limit.value}, {ratio_limit.source.value}), "
        f"seeding={torrent.seeding_time} (limit {idle_limit.value}, {idle_limit.source.value}) "
        f"-> removable={decision.can_be_removed}, movable={decision.can_move_files}"
    )
    return decision
