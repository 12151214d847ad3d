"""Registry of the exam sessions currently open on this server."""

from __future__ import annotations

import logging
from uuid import uuid4

from exam_quest.core.models import StudentProfile
from exam_quest.core.services.collaborators import ExamGateway
from exam_quest.core.services.countdown_timer import Scheduler
from exam_quest.core.services.exam_session import ExamSession, SessionPhase

logger = logging.getLogger(__name__)


class SessionManager:
    """Facade that opens, looks up and closes :class:`ExamSession` objects."""

    def __init__(self, gateway: ExamGateway, scheduler: Scheduler | None = None) -> None:
        self._gateway = gateway
        self._scheduler = scheduler
        self._sessions: dict[str, ExamSession] = {}
        self._by_attempt: dict[tuple[str, str], str] = {}

    async def open_session(self, exam_id: str, profile: StudentProfile) -> tuple[str, ExamSession]:
        """Load the exam and start the attempt.

        Reopening an exam the student is still taking returns the running
        session, so a page reload never restarts the clock.
        """
        attempt = (profile.user_id, exam_id)
        existing_id = self._by_attempt.get(attempt)
        if existing_id is not None:
            existing = self._sessions.get(existing_id)
            if existing is not None and existing.phase is not SessionPhase.TERMINAL:
                return existing_id, existing

        session_id = uuid4().hex
        session = ExamSession(exam_id, profile, self._gateway, scheduler=self._scheduler)
        self._sessions[session_id] = session
        self._by_attempt[attempt] = session_id

        phase = await session.load()
        if phase is SessionPhase.READY:
            session.start()
        logger.info("Opened session %s for %s on exam %s (%s).", session_id, profile.user_id, exam_id, session.phase.value)
        return session_id, session

    def get_session(self, session_id: str) -> ExamSession:
        try:
            return self._sessions[session_id]
        except KeyError as exc:
            raise KeyError(f"Unknown session {session_id}") from exc

    def close_session(self, session_id: str) -> bool:
        """Leave and forget a session. Returns False while it is submitting."""
        session = self.get_session(session_id)
        if not session.leave():
            return False
        self._forget(session_id, session)
        return True

    def session_count(self) -> int:
        return len(self._sessions)

    def release_if_finished(self, session_id: str) -> bool:
        """Forget a session whose outcome has been delivered.

        A session is finished once it is terminal and no profile update is
        waiting for a retry. Returns True when the session was forgotten.
        """
        session = self._sessions.get(session_id)
        if session is None or session.phase is not SessionPhase.TERMINAL or session.profile_update_pending:
            return False
        self._forget(session_id, session)
        logger.debug("Released finished session %s.", session_id)
        return True

    def _forget(self, session_id: str, session: ExamSession) -> None:
        self._sessions.pop(session_id, None)
        attempt = (session.profile.user_id, session.exam_id)
        if self._by_attempt.get(attempt) == session_id:
            del self._by_attempt[attempt]
