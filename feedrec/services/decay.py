"""
Time-decay functions shared by feature extraction and ranking.

Both curves equal 1.0 at publish time and fall towards 0 with age:

    HYPERBOLIC   1 / (1 + h / scale)            display / feature freshness
    EXPONENTIAL  exp(-ln2 * h / scale)          ranking freshness (half-life)

Callers choose the curve explicitly.
"""
import math
from datetime import datetime
from enum import Enum
from typing import Optional


class DecayCurve(str, Enum):
    HYPERBOLIC = "hyperbolic"
    EXPONENTIAL = "exponential"


DEFAULT_SCALE_HOURS = 24.0


def hours_since(moment: datetime, now: datetime) -> float:
    """Age in hours, clamped at 0 for timestamps in the future."""
    return max(0.0, (now - moment).total_seconds() / 3600.0)


def time_decay(
    age_hours: float,
    curve: DecayCurve,
    scale_hours: float = DEFAULT_SCALE_HOURS,
) -> float:
    age_hours = max(0.0, age_hours)
    if curve == DecayCurve.HYPERBOLIC:
        return 1.0 / (1.0 + age_hours / scale_hours)
    return math.exp(-math.log(2) * age_hours / scale_hours)


def freshness(
    published_at: Optional[datetime],
    now: datetime,
    curve: DecayCurve,
    scale_hours: float = DEFAULT_SCALE_HOURS,
) -> float:
    """Freshness of a publish timestamp; unpublished content scores 0."""
    if published_at is None:
        return 0.0
    return time_decay(hours_since(published_at, now), curve, scale_hours)
