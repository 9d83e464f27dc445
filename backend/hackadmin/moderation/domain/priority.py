"""Priority scoring for moderation queue items.

Priority = base weight of the item type
         + one point per report, capped at +3
         + reporter trust bonus (+2 above 90, +1 above 70)
clamped into [1, 10]. Scoring never raises; odd inputs are clamped.
"""

from __future__ import annotations

import math
from typing import Optional, Union

from hackadmin.moderation.domain.models import PriorityBand, QueueItemType

MIN_PRIORITY = 1
MAX_PRIORITY = 10
MAX_REPORT_BONUS = 3

CONTENT_TYPE_PRIORITY_WEIGHTS: dict[QueueItemType, int] = {
    QueueItemType.REPORT: 3,
    QueueItemType.USER: 2,
    QueueItemType.HACKATHON: 1,
    QueueItemType.PROJECT: 1,
}

HIGH_TRUST_THRESHOLD = 70
VERY_HIGH_TRUST_THRESHOLD = 90

# Lower bounds of each band; high >= 7, medium in [4, 7), low in [1, 4)
PRIORITY_THRESHOLDS = {
    PriorityBand.HIGH: 7,
    PriorityBand.MEDIUM: 4,
    PriorityBand.LOW: 1,
}


def _base_weight(item_type: Union[QueueItemType, str, None]) -> int:
    try:
        return CONTENT_TYPE_PRIORITY_WEIGHTS[QueueItemType(item_type)]
    except ValueError:
        return 1


def _trust_bonus(trust_score: Optional[float]) -> int:
    if trust_score is None:
        return 0
    try:
        score = float(trust_score)
    except (TypeError, ValueError):
        return 0
    if math.isnan(score):
        return 0
    if score > VERY_HIGH_TRUST_THRESHOLD:
        return 2
    if score > HIGH_TRUST_THRESHOLD:
        return 1
    return 0


def clamp_priority(value: float) -> int:
    return max(MIN_PRIORITY, min(MAX_PRIORITY, int(value)))


def calculate_priority(
    item_type: Union[QueueItemType, str, None],
    *,
    existing_report_count: int = 0,
    has_new_reporter: bool = False,
    reporter_trust_score: Optional[float] = None,
) -> int:
    """Score an item for the queue; pure and total over its inputs."""
    try:
        existing = max(0, int(existing_report_count))
    except (TypeError, ValueError):
        existing = 0
    total_reports = existing + (1 if has_new_reporter else 0)
    priority = _base_weight(item_type)
    priority += min(total_reports, MAX_REPORT_BONUS)
    priority += _trust_bonus(reporter_trust_score)
    return clamp_priority(priority)


def merged_priority(stored_priority: int, recomputed: int) -> int:
    """Priority kept after merging a duplicate report; never lower than what was stored."""
    return clamp_priority(max(stored_priority, recomputed))


def priority_band(priority: int) -> PriorityBand:
    if priority >= PRIORITY_THRESHOLDS[PriorityBand.HIGH]:
        return PriorityBand.HIGH
    if priority >= PRIORITY_THRESHOLDS[PriorityBand.MEDIUM]:
        return PriorityBand.MEDIUM
    return PriorityBand.LOW


__all__ = [
    "CONTENT_TYPE_PRIORITY_WEIGHTS",
    "MAX_PRIORITY",
    "MIN_PRIORITY",
    "PRIORITY_THRESHOLDS",
    "calculate_priority",
    "clamp_priority",
    "merged_priority",
    "priority_band",
]
