"""Points and level rules for the gamification layer."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from exam_quest.constants.exam_constants import POINTS_PER_LEVEL, STARTING_LEVEL
from exam_quest.core.models import ProfileUpdate, StudentProfile


def round_half_up(value: float | int) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def level_for_points(points: int) -> int:
    """Levels are dense 100-point bands: 0-99 is level 1, 100-199 level 2, ..."""
    return max(0, points) // POINTS_PER_LEVEL + STARTING_LEVEL


def award_points(profile: StudentProfile, earned: float | int) -> ProfileUpdate:
    new_points = max(0, profile.points) + round_half_up(earned)
    return ProfileUpdate(points=new_points, level=level_for_points(new_points))
