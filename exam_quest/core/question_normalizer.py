"""Resolution of an exam's raw question references into concrete questions.

Exams reference their questions in whichever shape the authoring tool of the
day wrote:

    "q1, q2, q3"                               comma-separated ids
    ["q1", 7, {"questionId": "q3"}, {...}]     ids, id carriers, inline questions
    {"q1": True, "q2": False}                  inclusion map
    {"q1", "q2"}                               set of ids

:func:`collect_references` flattens all of them into an ordered, deduplicated
list of :class:`QuestionReference`; :func:`resolve_questions` then fetches the
id references concurrently and returns the questions in reference order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Union

from exam_quest.constants.exam_constants import INLINE_KEY_PREFIX
from exam_quest.core.models import Question
from exam_quest.core.record_mapper import ID_KEYS, QuestionFormatError, question_from_document

logger = logging.getLogger(__name__)

LookupResult = Union[Question, Mapping[str, Any], None]
QuestionLookup = Callable[[str], Union[LookupResult, Awaitable[LookupResult]]]

_CONTENT_KEYS = ("prompt", "question", "type", "options", "correctAnswer")


@dataclass(frozen=True, slots=True)
class QuestionReference:
    """A question to include, either by id or as an embedded record."""

    key: str
    inline: Mapping[str, Any] | Question | None = None


def collect_references(raw: Any) -> list[QuestionReference]:
    """Flatten ``raw`` into references; the first occurrence of a key wins."""
    references: list[QuestionReference] = []
    seen: set[str] = set()
    for reference in _iter_references(raw):
        if reference.key in seen:
            continue
        seen.add(reference.key)
        references.append(reference)
    return references


async def resolve_questions(raw: Any, lookup: QuestionLookup) -> list[Question]:
    """Return the referenced questions in reference order.

    Unknown or unreadable ids are dropped with a warning. An empty result is
    a normal outcome, not an error.
    """
    references = collect_references(raw)
    if not references:
        return []
    resolved = await asyncio.gather(*(_resolve_one(ref, lookup) for ref in references))
    return [question for question in resolved if question is not None]


async def _resolve_one(reference: QuestionReference, lookup: QuestionLookup) -> Question | None:
    if reference.inline is not None:
        return _build(reference.inline, reference.key)

    try:
        found = lookup(reference.key)
        if inspect.isawaitable(found):
            found = await found
    except Exception as exc:
        logger.warning("Could not fetch question %s, dropping it: %s", reference.key, exc)
        return None

    if found is None:
        logger.warning("Question %s not found, dropping it.", reference.key)
        return None
    if isinstance(found, Question):
        return found
    return _build(found, reference.key)


def _build(doc: Mapping[str, Any] | Question, key: str) -> Question | None:
    if isinstance(doc, Question):
        return doc
    try:
        return question_from_document(doc, fallback_id=key)
    except QuestionFormatError as exc:
        logger.warning("Question %s is malformed, dropping it: %s", key, exc)
        return None


def _iter_references(raw: Any):
    if raw is None:
        return
    if isinstance(raw, str):
        for part in raw.split(","):
            key = part.strip()
            if key:
                yield QuestionReference(key=key)
        return
    if isinstance(raw, Mapping):
        yield from _iter_mapping(raw)
        return
    if isinstance(raw, (set, frozenset)):
        # Sets carry no order; sort for a deterministic sequence.
        for key in sorted(str(entry) for entry in raw if _is_id(entry)):
            yield QuestionReference(key=key)
        return
    if isinstance(raw, (list, tuple)):
        for position, entry in enumerate(raw):
            reference = _reference_from_entry(entry, position)
            if reference is not None:
                yield reference
        return
    logger.warning("Ignoring question references of unsupported type %s.", type(raw).__name__)


def _iter_mapping(raw: Mapping[Any, Any]):
    for key, value in raw.items():
        if isinstance(value, bool):
            if value:
                yield QuestionReference(key=str(key))
        elif isinstance(value, Mapping):
            carried = _carried_id(value)
            yield QuestionReference(key=str(carried if carried is not None else key), inline=value)
        else:
            logger.warning("Ignoring question reference %r with value %r.", key, value)


def _reference_from_entry(entry: Any, position: int) -> QuestionReference | None:
    if _is_id(entry):
        key = str(entry).strip()
        return QuestionReference(key=key) if key else None
    if isinstance(entry, Question):
        return QuestionReference(key=entry.id, inline=entry)
    if isinstance(entry, Mapping):
        carried = _carried_id(entry)
        if any(key in entry for key in _CONTENT_KEYS):
            key = str(carried) if carried is not None else f"{INLINE_KEY_PREFIX}{position}"
            return QuestionReference(key=key, inline=entry)
        if carried is not None:
            return QuestionReference(key=str(carried))
    logger.warning("Ignoring unrecognised question reference at position %d.", position)
    return None


def _carried_id(doc: Mapping[str, Any]) -> Any:
    for key in ID_KEYS:
        value = doc.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _is_id(value: Any) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)

