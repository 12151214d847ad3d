"""Exam-related constants shared across the core and server layers."""

SECONDS_PER_MINUTE: int = 60
TICK_INTERVAL_SECONDS: float = 1.0
POINTS_PER_LEVEL: int = 100
STARTING_LEVEL: int = 1
DEFAULT_PASSING_SCORE: int = 60
INLINE_KEY_PREFIX: str = "inline-"
MIN_CHOICE_OPTIONS: int = 2
MIN_DRAG_DROP_PAIRS: int = 2
