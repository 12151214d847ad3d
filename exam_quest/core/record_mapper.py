"""Conversion between document-store records and the typed exam models.

Records written by the authoring tools over time do not share one shape:

    {"id": "q1", "type": "mcq", "question": "2 + 2?", "options": [...],
     "correctAnswer": "4", "points": "10"}

    {"id": "q2", "type": "drag-drop", "prompt": "Match the capitals",
     "correctAnswer": [{"item": "Paris", "match": "France"}, ...]}

The mapper accepts the legacy spellings (``question``, ``mcq``, ``match``,
``selectedQuestions``) and coerces numeric fields leniently, so the session
engine only ever sees :mod:`exam_quest.core.models` instances.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from exam_quest.constants.exam_constants import (
    DEFAULT_PASSING_SCORE,
    MIN_CHOICE_OPTIONS,
    MIN_DRAG_DROP_PAIRS,
)
from exam_quest.core.models import (
    Difficulty,
    DragDropPair,
    Exam,
    Question,
    QuestionType,
    ResultRecord,
    StudentProfile,
)
from exam_quest.core.progression import level_for_points


class QuestionFormatError(Exception):
    """Raised when a record cannot be turned into a question or exam."""


_TYPE_ALIASES = {
    "mcq": QuestionType.MULTIPLE_CHOICE,
    "multiple-choice": QuestionType.MULTIPLE_CHOICE,
    "true-false": QuestionType.TRUE_FALSE,
    "short-answer": QuestionType.SHORT_ANSWER,
    "drag-drop": QuestionType.DRAG_DROP,
    "reading-comprehension": QuestionType.READING_COMPREHENSION,
}

ID_KEYS = ("id", "questionId", "questionID")


def question_from_document(doc: Mapping[str, Any], fallback_id: str | None = None) -> Question:
    question_id = _first_present(doc, ID_KEYS)
    if question_id is None:
        question_id = fallback_id
    if question_id is None or str(question_id).strip() == "":
        raise QuestionFormatError("Question record has no id.")

    question_type = parse_question_type(doc.get("type"))
    correct = doc.get("correctAnswer")
    if question_type is QuestionType.DRAG_DROP:
        correct_answer: Any = pairs_from_documents(correct)
    elif isinstance(correct, bool):
        correct_answer = "true" if correct else "false"
    elif correct is None:
        correct_answer = None
    else:
        correct_answer = str(correct)

    prompt = doc.get("prompt")
    if prompt is None:
        prompt = doc.get("question", "")

    options = doc.get("options") or []
    if not isinstance(options, (list, tuple)):
        options = []

    return Question(
        id=str(question_id),
        type=question_type,
        prompt=str(prompt),
        category=str(doc.get("category") or ""),
        passage=doc.get("passage") or None,
        image_url=doc.get("imageUrl") or None,
        options=[str(option) for option in options],
        correct_answer=correct_answer,
        points=_coerce_non_negative_int(doc.get("points")),
        difficulty=_parse_difficulty(doc.get("difficulty")),
        explanation=doc.get("explanation") or None,
    )


def parse_question_type(raw: Any) -> QuestionType:
    if raw is None or raw == "":
        return QuestionType.MULTIPLE_CHOICE
    if isinstance(raw, QuestionType):
        return raw
    try:
        return _TYPE_ALIASES[str(raw).strip().lower()]
    except KeyError as exc:
        raise QuestionFormatError(f"Unknown question type '{raw}'.") from exc


def exam_from_document(doc: Mapping[str, Any]) -> Exam:
    exam_id = doc.get("id")
    if exam_id is None or str(exam_id).strip() == "":
        raise QuestionFormatError("Exam record has no id.")

    refs = doc.get("questionRefs")
    if refs is None:
        refs = doc.get("selectedQuestions")

    passing = doc.get("passingScore")
    passing_score = DEFAULT_PASSING_SCORE if passing in (None, "") else _coerce_non_negative_int(passing)

    return Exam(
        id=str(exam_id),
        title=str(doc.get("title") or ""),
        description=str(doc.get("description") or ""),
        category=str(doc.get("category") or ""),
        duration_minutes=_coerce_non_negative_int(doc.get("duration")),
        passing_score=min(passing_score, 100),
        is_active=doc.get("isActive") is not False,
        question_refs=refs,
        total_questions=_coerce_non_negative_int(doc.get("totalQuestions")),
        total_points=_coerce_non_negative_int(doc.get("totalPoints")),
    )


def profile_from_document(user_id: str, doc: Mapping[str, Any]) -> StudentProfile:
    points = _coerce_non_negative_int(doc.get("points"))
    level = doc.get("level")
    return StudentProfile(
        user_id=user_id,
        display_name=str(doc.get("displayName") or doc.get("name") or user_id),
        points=points,
        level=_coerce_non_negative_int(level) if level else level_for_points(points),
    )


def pairs_from_documents(raw: Any) -> list[DragDropPair]:
    """Parse a pair list, skipping entries that are not item/target pairs."""
    if not isinstance(raw, (list, tuple)):
        return []
    pairs: list[DragDropPair] = []
    for entry in raw:
        pair = pair_from_document(entry)
        if pair is not None:
            pairs.append(pair)
    return pairs


def pair_from_document(entry: Any) -> DragDropPair | None:
    if isinstance(entry, DragDropPair):
        return entry
    if not isinstance(entry, Mapping):
        return None
    item = entry.get("item")
    target = entry.get("target")
    if target is None:
        target = entry.get("match")
    if item is None or target is None:
        return None
    return DragDropPair(item=str(item), target=str(target))


def pairs_to_documents(pairs: Iterable[DragDropPair]) -> list[dict[str, str]]:
    return [{"item": pair.item, "target": pair.target} for pair in pairs]


def answer_to_document(answer: Any) -> Any:
    if isinstance(answer, (list, tuple)) and all(isinstance(entry, DragDropPair) for entry in answer):
        return pairs_to_documents(answer)
    return answer


def result_to_document(result: ResultRecord) -> dict[str, Any]:
    return {
        "examId": result.exam_id,
        "examTitle": result.exam_title,
        "studentId": result.student_id,
        "studentName": result.student_name,
        "answers": [
            {
                "questionIndex": entry.question_index,
                "questionId": entry.question_id,
                "answer": answer_to_document(entry.answer),
            }
            for entry in result.answers
        ],
        "score": result.score,
        "totalPoints": result.total_points,
        "percentage": result.percentage,
        "completedAt": result.completed_at,
        "timeTakenSeconds": result.time_taken_seconds,
        "passed": result.passed,
        "pointsEarned": result.points_earned,
    }


def validation_problems(question: Question) -> list[str]:
    """Return data-quality problems that make a question unscorable."""
    problems: list[str] = []
    if question.type is QuestionType.DRAG_DROP:
        pairs = question.correct_answer if isinstance(question.correct_answer, list) else []
        if len(pairs) < MIN_DRAG_DROP_PAIRS:
            problems.append(f"drag-drop needs at least {MIN_DRAG_DROP_PAIRS} pairs")
        if any(not pair.item.strip() or not pair.target.strip() for pair in pairs):
            problems.append("drag-drop pair with empty item or target")
    elif question.type is QuestionType.MULTIPLE_CHOICE:
        filled = [option for option in question.options if option.strip()]
        if len(filled) < MIN_CHOICE_OPTIONS:
            problems.append(f"multiple-choice needs at least {MIN_CHOICE_OPTIONS} options")
    elif question.type is QuestionType.READING_COMPREHENSION:
        if not (question.passage or "").strip():
            problems.append("reading-comprehension without a passage")
    return problems


def _first_present(doc: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None and value != "":
            return value
    return None


def _coerce_non_negative_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, number)


def _parse_difficulty(raw: Any) -> Difficulty:
    try:
        return Difficulty(str(raw).strip().lower())
    except ValueError:
        return Difficulty.MEDIUM
