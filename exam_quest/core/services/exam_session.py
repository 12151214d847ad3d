"""Service that runs one student's attempt at one exam."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
import logging
import time
from typing import Any, Callable

from exam_quest.constants.exam_constants import SECONDS_PER_MINUTE
from exam_quest.core.models import (
    AnswerEntry,
    DragDropPair,
    Exam,
    ProfileUpdate,
    Question,
    QuestionType,
    ResultRecord,
    ResultSummary,
    StudentProfile,
)
from exam_quest.core.progression import award_points, round_half_up
from exam_quest.core.question_normalizer import resolve_questions
from exam_quest.core.record_mapper import (
    QuestionFormatError,
    exam_from_document,
    result_to_document,
    validation_problems,
)
from exam_quest.core.scoring import percentage_of, score_exam
from exam_quest.core.services.answer_store import AnswerStore
from exam_quest.core.services.collaborators import ExamGateway
from exam_quest.core.services.countdown_timer import CountdownTimer, Scheduler

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    LOADING = "loading"
    READY = "ready"
    IN_PROGRESS = "in-progress"
    SUBMITTING = "submitting"
    TERMINAL = "terminal"


class TerminalReason(str, Enum):
    UNAVAILABLE = "unavailable"
    NO_QUESTIONS = "no-questions"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


class SubmitOutcome(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMATION_REQUIRED = "confirmation-required"
    IGNORED = "ignored"
    PERSISTENCE_FAILED = "persistence-failed"
    PROFILE_UPDATE_FAILED = "profile-update-failed"


class SessionErrorKind(str, Enum):
    NOT_FOUND = "not-found"
    EMPTY_QUESTION_SET = "empty-question-set"
    VALIDATION_FAILURE = "validation-failure"
    PERSISTENCE_FAILURE = "persistence-failure"
    PROFILE_UPDATE_FAILURE = "profile-update-failure"


@dataclass(frozen=True, slots=True)
class SessionError:
    kind: SessionErrorKind
    message: str


class ExamSession:
    """Loads an exam, runs its clock, collects answers and submits the result.

    The current student and every remote operation are passed in; the session
    reads no global state. Submission happens at most once: a manual submit
    and the clock running out both go through the same guard.
    """

    def __init__(
        self,
        exam_id: str,
        profile: StudentProfile,
        gateway: ExamGateway,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._exam_id = exam_id
        self._profile = profile
        self._gateway = gateway
        self._scheduler = scheduler
        self._clock = clock

        self._phase = SessionPhase.LOADING
        self._terminal_reason: TerminalReason | None = None
        self._error: SessionError | None = None
        self._load_task: asyncio.Task[SessionPhase] | None = None

        self._exam: Exam | None = None
        self._questions: list[Question] = []
        self._problems: dict[int, list[str]] = {}
        self._current_index = 0
        self._answers = AnswerStore()

        self._timer: CountdownTimer | None = None
        self._time_expired = False
        self._started_at: float | None = None

        self._submission_task: asyncio.Task[SubmitOutcome] | None = None
        self._result_id: str | None = None
        self._summary: ResultSummary | None = None
        self._pending_profile_update: ProfileUpdate | None = None
        self._profile_update_in_flight = False

    # --- State ---

    @property
    def exam_id(self) -> str:
        return self._exam_id

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def terminal_reason(self) -> TerminalReason | None:
        return self._terminal_reason

    @property
    def error(self) -> SessionError | None:
        return self._error

    @property
    def exam(self) -> Exam | None:
        return self._exam

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def profile(self) -> StudentProfile:
        return self._profile

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question | None:
        if not self._questions:
            return None
        return self._questions[self._current_index]

    @property
    def is_timed(self) -> bool:
        return self._exam is not None and self._exam.duration_minutes > 0

    @property
    def remaining_seconds(self) -> int:
        if self._timer is not None:
            return self._timer.remaining_seconds
        return 0

    @property
    def time_expired(self) -> bool:
        return self._time_expired

    @property
    def result_id(self) -> str | None:
        return self._result_id

    @property
    def summary(self) -> ResultSummary | None:
        return self._summary

    @property
    def profile_update_pending(self) -> bool:
        return self._pending_profile_update is not None

    def answers(self) -> dict[int, Any]:
        return self._answers.snapshot()

    def answer_at(self, index: int) -> Any:
        return self._answers.get_answer(index)

    def placements_at(self, index: int) -> dict[str, str]:
        return self._answers.placements(index)

    def unanswered_count(self) -> int:
        return sum(1 for index in range(len(self._questions)) if not self._answers.has_answer(index))

    def validation_problems(self) -> dict[int, list[str]]:
        return {index: list(problems) for index, problems in self._problems.items()}

    # --- Loading ---

    async def load(self) -> SessionPhase:
        """Fetch the exam and its questions; concurrent calls share one load."""
        if self._load_task is None:
            if self._phase is not SessionPhase.LOADING:
                return self._phase
            self._load_task = asyncio.ensure_future(self._load())
        return await self._load_task

    async def _load(self) -> SessionPhase:
        try:
            document = await self._gateway.fetch_exam(self._exam_id)
        except Exception as exc:
            logger.error("Could not load exam %s: %s", self._exam_id, exc)
            return self._terminate(TerminalReason.UNAVAILABLE, SessionErrorKind.NOT_FOUND, str(exc))
        if document is None:
            return self._terminate(
                TerminalReason.UNAVAILABLE, SessionErrorKind.NOT_FOUND, f"Exam {self._exam_id} not found."
            )
        if self._phase is not SessionPhase.LOADING:
            return self._phase

        try:
            exam = exam_from_document(document)
        except QuestionFormatError as exc:
            return self._terminate(TerminalReason.UNAVAILABLE, SessionErrorKind.VALIDATION_FAILURE, str(exc))
        if not exam.is_active:
            return self._terminate(
                TerminalReason.UNAVAILABLE, SessionErrorKind.NOT_FOUND, f"Exam {exam.id} is not active."
            )

        self._exam = exam
        self._questions = await resolve_questions(exam.question_refs, self._gateway.fetch_question)
        if self._phase is not SessionPhase.LOADING:
            return self._phase
        if not self._questions:
            return self._terminate(
                TerminalReason.NO_QUESTIONS,
                SessionErrorKind.EMPTY_QUESTION_SET,
                "This exam does not have any questions yet.",
            )

        for index, question in enumerate(self._questions):
            problems = validation_problems(question)
            if problems:
                self._problems[index] = problems
                logger.warning(
                    "Question %s of exam %s will not be scored: %s",
                    question.id,
                    exam.id,
                    "; ".join(problems),
                )

        self._phase = SessionPhase.READY
        logger.info("Exam %s ready with %d question(s).", exam.id, len(self._questions))
        return self._phase

    def _terminate(self, reason: TerminalReason, kind: SessionErrorKind, message: str) -> SessionPhase:
        if self._phase is SessionPhase.TERMINAL:
            return self._phase
        self._phase = SessionPhase.TERMINAL
        self._terminal_reason = reason
        self._error = SessionError(kind=kind, message=message)
        logger.warning("Session for exam %s ended as %s: %s", self._exam_id, reason.value, message)
        return self._phase

    # --- Running ---

    def start(self) -> None:
        """Begin the attempt and start the clock for timed exams."""
        if self._phase is SessionPhase.IN_PROGRESS:
            return
        if self._phase is not SessionPhase.READY:
            raise RuntimeError(f"Cannot start a session that is {self._phase.value}.")
        self._phase = SessionPhase.IN_PROGRESS
        self._started_at = self._clock()
        if self.is_timed:
            self._start_timer(self._exam.duration_minutes * SECONDS_PER_MINUTE)

    def _start_timer(self, seconds: int) -> None:
        self._timer = CountdownTimer(on_expire=self._handle_expiry, scheduler=self._scheduler)
        self._timer.start(seconds)

    def _handle_expiry(self) -> None:
        self._time_expired = True
        if self._phase is not SessionPhase.IN_PROGRESS:
            return
        logger.info("Time is up for exam %s, submitting.", self._exam_id)
        self._begin_submission()
        self._submission_task = asyncio.get_running_loop().create_task(self._persist())

    # --- Navigation ---

    def next_question(self) -> int:
        return self.jump_to(self._current_index + 1)

    def previous_question(self) -> int:
        return self.jump_to(self._current_index - 1)

    def jump_to(self, index: int) -> int:
        if not self._questions:
            return 0
        self._current_index = min(max(index, 0), len(self._questions) - 1)
        return self._current_index

    # --- Answers ---

    def set_answer(self, value: Any, index: int | None = None) -> None:
        position = self._writable_index(index)
        if self._questions[position].type is QuestionType.DRAG_DROP:
            self._answers.set_pairs(position, value)
        else:
            self._answers.set_answer(position, value)

    def place_item(self, item: str, target: str, index: int | None = None) -> list[DragDropPair]:
        position = self._drag_drop_index(index)
        return self._answers.place_item(position, item, target)

    def remove_placement(self, target: str, index: int | None = None) -> list[DragDropPair]:
        position = self._drag_drop_index(index)
        return self._answers.remove_placement(position, target)

    def _writable_index(self, index: int | None) -> int:
        if self._phase is not SessionPhase.IN_PROGRESS:
            raise RuntimeError(f"Answers cannot be changed while the session is {self._phase.value}.")
        if self._time_expired:
            raise RuntimeError("Time is up; answers can no longer be changed.")
        position = self._current_index if index is None else index
        if not 0 <= position < len(self._questions):
            raise IndexError(f"Question index {position} out of range")
        return position

    def _drag_drop_index(self, index: int | None) -> int:
        position = self._writable_index(index)
        if self._questions[position].type is not QuestionType.DRAG_DROP:
            raise ValueError(f"Question {position + 1} is not a drag-drop question.")
        return position

    # --- Submission ---

    async def submit(self, confirmed: bool = False) -> SubmitOutcome:
        """Submit the attempt.

        While time remains, unanswered questions require ``confirmed=True``.
        Calls made while a submission is under way, or after it, are ignored.
        """
        if self._phase is not SessionPhase.IN_PROGRESS:
            return SubmitOutcome.IGNORED
        unanswered = self.unanswered_count()
        if unanswered and not self._time_expired and not confirmed:
            return SubmitOutcome.CONFIRMATION_REQUIRED
        self._begin_submission()
        return await self._persist()

    async def wait_for_submission(self) -> SubmitOutcome | None:
        """Wait for a submission started by the clock, if there is one."""
        if self._submission_task is None:
            return None
        return await self._submission_task

    def _begin_submission(self) -> None:
        self._phase = SessionPhase.SUBMITTING
        self._error = None
        if self._timer is not None:
            self._timer.cancel()

    async def _persist(self) -> SubmitOutcome:
        exam = self._exam
        score = score_exam(self._questions, self._answers.snapshot())
        percentage = percentage_of(score)
        points_earned = round_half_up(score.earned)
        record = ResultRecord(
            exam_id=exam.id,
            exam_title=exam.title,
            student_id=self._profile.user_id,
            student_name=self._profile.display_name,
            answers=self._answer_entries(),
            score=score.earned,
            total_points=score.total,
            percentage=percentage,
            completed_at=datetime.now(timezone.utc),
            time_taken_seconds=self._time_taken(),
            passed=percentage >= exam.passing_score,
            points_earned=points_earned,
        )

        try:
            result_id = await self._gateway.create_result(result_to_document(record))
        except Exception as exc:
            logger.error("Saving the result of exam %s failed: %s", exam.id, exc)
            self._error = SessionError(SessionErrorKind.PERSISTENCE_FAILURE, str(exc))
            self._resume()
            return SubmitOutcome.PERSISTENCE_FAILED

        self._result_id = result_id
        self._summary = ResultSummary(
            score=record.score,
            total_points=record.total_points,
            percentage=record.percentage,
            points_earned=points_earned,
            passed=record.passed,
        )
        self._pending_profile_update = award_points(self._profile, score.earned)
        outcome = await self._apply_profile_update()
        self._phase = SessionPhase.TERMINAL
        self._terminal_reason = TerminalReason.SUBMITTED
        logger.info(
            "Exam %s submitted by %s: %d/%d (%d%%).",
            exam.id,
            self._profile.user_id,
            record.score,
            record.total_points,
            record.percentage,
        )
        return outcome

    def _resume(self) -> None:
        # The clock continues from where it stopped, never from the full duration.
        self._phase = SessionPhase.IN_PROGRESS
        if self._timer is not None and not self._time_expired and self._timer.remaining_seconds > 0:
            self._start_timer(self._timer.remaining_seconds)

    async def retry_profile_update(self) -> SubmitOutcome:
        """Write the points and level of an already saved result again."""
        if self._pending_profile_update is None or self._profile_update_in_flight:
            return SubmitOutcome.IGNORED
        return await self._apply_profile_update()

    async def _apply_profile_update(self) -> SubmitOutcome:
        update = self._pending_profile_update
        self._profile_update_in_flight = True
        try:
            # Points and level travel in one write so they never disagree.
            await self._gateway.update_profile(self._profile.user_id, update.to_fields(), merge=True)
        except Exception as exc:
            logger.error("Result saved but profile update for %s failed: %s", self._profile.user_id, exc)
            self._error = SessionError(SessionErrorKind.PROFILE_UPDATE_FAILURE, str(exc))
            return SubmitOutcome.PROFILE_UPDATE_FAILED
        finally:
            self._profile_update_in_flight = False
        self._profile = replace(self._profile, points=update.points, level=update.level)
        self._pending_profile_update = None
        self._error = None
        return SubmitOutcome.SUBMITTED

    def _answer_entries(self) -> list[AnswerEntry]:
        entries = []
        for index, answer in self._answers.snapshot().items():
            question = self._questions[index] if 0 <= index < len(self._questions) else None
            entries.append(
                AnswerEntry(
                    question_index=index,
                    question_id=question.id if question is not None else None,
                    answer=answer,
                )
            )
        return entries

    def _time_taken(self) -> int:
        if self.is_timed:
            total = self._exam.duration_minutes * SECONDS_PER_MINUTE
            return max(0, total - self.remaining_seconds)
        if self._started_at is None:
            return 0
        return max(0, int(self._clock() - self._started_at))

    # --- Leaving ---

    def leave(self) -> bool:
        """Abandon the attempt without saving anything.

        Returns False while a submission is in flight, since the result may
        already be on its way to the store.
        """
        if self._phase is SessionPhase.SUBMITTING:
            return False
        if self._phase is SessionPhase.TERMINAL:
            return True
        if self._timer is not None:
            self._timer.cancel()
        self._answers = AnswerStore()
        self._phase = SessionPhase.TERMINAL
        self._terminal_reason = TerminalReason.ABANDONED
        logger.info("Student %s left exam %s before submitting.", self._profile.user_id, self._exam_id)
        return True
