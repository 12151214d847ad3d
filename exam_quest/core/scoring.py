"""Scoring rules for submitted exam answers."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from exam_quest.core.models import DragDropPair, Question, QuestionType, ScoreSummary
from exam_quest.core.progression import round_half_up
from exam_quest.core.record_mapper import pair_from_document, validation_problems

_EXACT_MATCH_TYPES = {
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.TRUE_FALSE,
    QuestionType.READING_COMPREHENSION,
}


def score_exam(questions: Sequence[Question], answers: Mapping[int, Any]) -> ScoreSummary:
    """Return earned and total points for ``answers`` keyed by question position.

    Every question's points count towards the total whether or not it was
    answered. Malformed questions and malformed answers earn nothing.
    """
    earned = 0
    total = 0
    for index, question in enumerate(questions):
        total += question.points
        answer = answers.get(index)
        if answer is None:
            continue
        if validation_problems(question):
            continue
        if is_correct(question, answer):
            earned += question.points
    return ScoreSummary(earned=earned, total=total)


def is_correct(question: Question, answer: Any) -> bool:
    if question.type in _EXACT_MATCH_TYPES:
        return _matches_exactly(question, answer)
    if question.type is QuestionType.SHORT_ANSWER:
        return _matches_short_answer(question.correct_answer, answer)
    if question.type is QuestionType.DRAG_DROP:
        return _matches_all_pairs(question.correct_answer, answer)
    return False


def percentage_of(summary: ScoreSummary) -> int:
    if summary.total <= 0:
        return 0
    return round_half_up(summary.earned / summary.total * 100)


def _matches_exactly(question: Question, answer: Any) -> bool:
    if question.type is QuestionType.TRUE_FALSE and isinstance(answer, bool):
        answer = "true" if answer else "false"
    if not isinstance(answer, str) or not isinstance(question.correct_answer, str):
        return False
    return answer == question.correct_answer


def _matches_short_answer(correct: Any, answer: Any) -> bool:
    if not isinstance(answer, str) or not isinstance(correct, str):
        return False
    return answer.strip().lower() == correct.strip().lower()


def _matches_all_pairs(correct: Any, answer: Any) -> bool:
    # All or nothing: every correct pair present and nothing extra submitted.
    if not isinstance(correct, list) or not correct:
        return False
    if not isinstance(answer, (list, tuple)):
        return False
    submitted: list[DragDropPair] = []
    for entry in answer:
        pair = pair_from_document(entry)
        if pair is None:
            return False
        submitted.append(pair)
    if len(submitted) != len(correct):
        return False
    return set(submitted) == set(correct)
