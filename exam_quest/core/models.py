"""Domain models for the exam application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from exam_quest.constants.exam_constants import DEFAULT_PASSING_SCORE, STARTING_LEVEL


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    DRAG_DROP = "drag-drop"
    READING_COMPREHENSION = "reading-comprehension"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True, slots=True)
class DragDropPair:
    """One item placed on one target label."""

    item: str
    target: str


@dataclass(slots=True)
class Question:
    """A single exam question as stored by the authoring tools.

    ``correct_answer`` is a string for every type except drag-drop, where it
    is a list of :class:`DragDropPair`.
    """

    id: str
    type: QuestionType
    prompt: str
    category: str = ""
    passage: str | None = None
    image_url: str | None = None
    options: list[str] = field(default_factory=list)
    correct_answer: Any = None
    points: int = 0
    difficulty: Difficulty = Difficulty.MEDIUM
    explanation: str | None = None


@dataclass(slots=True)
class Exam:
    """Exam metadata; read-only to the session engine."""

    id: str
    title: str
    description: str = ""
    category: str = ""
    duration_minutes: int = 0
    passing_score: int = DEFAULT_PASSING_SCORE
    is_active: bool = True
    question_refs: Any = None
    total_questions: int = 0  # cached at authoring time, informational only
    total_points: int = 0


@dataclass(slots=True)
class StudentProfile:
    """The signed-in student's gamification state."""

    user_id: str
    display_name: str
    points: int = 0
    level: int = STARTING_LEVEL


@dataclass(frozen=True, slots=True)
class ProfileUpdate:
    """Points and level written together in a single profile merge."""

    points: int
    level: int

    def to_fields(self) -> dict[str, int]:
        return {"points": self.points, "level": self.level}


@dataclass(frozen=True, slots=True)
class ScoreSummary:
    earned: int
    total: int


@dataclass(frozen=True, slots=True)
class AnswerEntry:
    question_index: int
    question_id: str | None
    answer: Any


@dataclass(frozen=True, slots=True)
class ResultRecord:
    """Immutable outcome of one submitted attempt."""

    exam_id: str
    exam_title: str
    student_id: str
    student_name: str
    answers: list[AnswerEntry]
    score: int
    total_points: int
    percentage: int
    completed_at: datetime
    time_taken_seconds: int
    passed: bool
    points_earned: int


@dataclass(frozen=True, slots=True)
class ResultSummary:
    """Payload handed to the result view when a session exits."""

    score: int
    total_points: int
    percentage: int
    points_earned: int
    passed: bool

    def to_payload(self) -> dict[str, object]:
        return {
            "score": self.score,
            "totalPoints": self.total_points,
            "percentage": self.percentage,
            "pointsEarned": self.points_earned,
            "passed": self.passed,
        }
