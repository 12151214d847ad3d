"""FastAPI server that exposes the exam-taking endpoints."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Literal, Mapping

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel
import uvicorn

from exam_quest.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from exam_quest.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_quest.core.models import Question, QuestionType
from exam_quest.core.record_mapper import answer_to_document, pairs_to_documents, profile_from_document
from exam_quest.core.services.exam_session import (
    ExamSession,
    SubmitOutcome,
    TerminalReason,
)
from exam_quest.core.session_manager import SessionManager

ProfileLookup = Callable[[str], Awaitable[Mapping[str, Any] | None]]


class OpenSessionPayload(BaseModel):
    """Payload schema for starting an exam attempt."""

    exam_id: str
    student_id: str


class NavigatePayload(BaseModel):
    action: Literal["next", "previous", "jump"]
    index: int | None = None


class AnswerPayload(BaseModel):
    """Payload schema for an answer; its shape depends on the question type."""

    value: Any = None


class PlacementPayload(BaseModel):
    item: str
    target: str


class SubmitPayload(BaseModel):
    confirm: bool = False


def _get_manager_dependency(session_manager: SessionManager):
    def dependency() -> SessionManager:
        return session_manager

    return dependency


def _question_view(question: Question, session: ExamSession, index: int) -> dict[str, object]:
    view: dict[str, object] = {
        "id": question.id,
        "index": index,
        "type": question.type.value,
        "category": question.category,
        "prompt": question.prompt,
        "passage": question.passage,
        "image_url": question.image_url,
        "options": list(question.options),
        "points": question.points,
        "difficulty": question.difficulty.value,
        "answer": answer_to_document(session.answer_at(index)),
    }
    if question.type is QuestionType.DRAG_DROP:
        pairs = question.correct_answer if isinstance(question.correct_answer, list) else []
        view["items"] = sorted({pair.item for pair in pairs})
        view["targets"] = sorted({pair.target for pair in pairs})
        view["placements"] = session.placements_at(index)
    # Correct answers only leave the server once the result is saved.
    if session.terminal_reason is TerminalReason.SUBMITTED:
        correct = question.correct_answer
        view["correct_answer"] = pairs_to_documents(correct) if isinstance(correct, list) else correct
        view["explanation"] = question.explanation
    return view


def _session_view(session_id: str, session: ExamSession) -> dict[str, object]:
    exam = session.exam
    question = session.current_question
    error = session.error
    summary = session.summary
    return {
        "session_id": session_id,
        "exam": None
        if exam is None
        else {
            "id": exam.id,
            "title": exam.title,
            "description": exam.description,
            "category": exam.category,
            "duration_minutes": exam.duration_minutes,
            "passing_score": exam.passing_score,
        },
        "phase": session.phase.value,
        "terminal_reason": session.terminal_reason.value if session.terminal_reason else None,
        "question_count": len(session.questions),
        "current_index": session.current_index,
        "unanswered": session.unanswered_count(),
        "timed": session.is_timed,
        "remaining_seconds": session.remaining_seconds,
        "time_expired": session.time_expired,
        "question": None if question is None else _question_view(question, session, session.current_index),
        "error": None if error is None else {"kind": error.kind.value, "message": error.message},
        "result": None if summary is None else summary.to_payload(),
        "profile_update_pending": session.profile_update_pending,
    }


def _view_and_release(manager: SessionManager, session_id: str, session: ExamSession) -> dict[str, object]:
    # A finished session is forgotten once its last view has been rendered.
    view = _session_view(session_id, session)
    manager.release_if_finished(session_id)
    return view


def _lookup(manager: SessionManager, session_id: str) -> ExamSession:
    try:
        return manager.get_session(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found.") from exc


def create_api_app(session_manager: SessionManager, fetch_profile: ProfileLookup) -> FastAPI:
    """Create a FastAPI application wired to the provided session manager."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    manager_dep = _get_manager_dependency(session_manager)

    @app.post("/sessions", status_code=201)
    async def open_session(
        payload: OpenSessionPayload,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        profile_doc = await fetch_profile(payload.student_id)
        if profile_doc is None:
            raise HTTPException(status_code=404, detail="Student not found.")
        profile = profile_from_document(payload.student_id, profile_doc)
        session_id, session = await manager.open_session(payload.exam_id, profile)
        if session.terminal_reason is TerminalReason.UNAVAILABLE:
            manager.close_session(session_id)
            message = session.error.message if session.error else "Exam unavailable."
            raise HTTPException(status_code=404, detail=message)
        return _view_and_release(manager, session_id, session)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, manager: SessionManager = Depends(manager_dep)) -> dict[str, object]:
        return _view_and_release(manager, session_id, _lookup(manager, session_id))

    @app.post("/sessions/{session_id}/navigate")
    async def navigate(
        session_id: str,
        payload: NavigatePayload,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        if payload.action == "next":
            session.next_question()
        elif payload.action == "previous":
            session.previous_question()
        else:
            if payload.index is None:
                raise HTTPException(status_code=422, detail="Jumping needs an index.")
            session.jump_to(payload.index)
        return _session_view(session_id, session)

    @app.put("/sessions/{session_id}/answers/{index}")
    async def set_answer(
        session_id: str,
        index: int,
        payload: AnswerPayload,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        try:
            session.set_answer(payload.value, index=index)
        except (ValueError, IndexError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_view(session_id, session)

    @app.post("/sessions/{session_id}/placements/{index}")
    async def place_item(
        session_id: str,
        index: int,
        payload: PlacementPayload,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        try:
            pairs = session.place_item(payload.item, payload.target, index=index)
        except (ValueError, IndexError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"pairs": pairs_to_documents(pairs), "placements": session.placements_at(index)}

    @app.delete("/sessions/{session_id}/placements/{index}/{target}")
    async def remove_placement(
        session_id: str,
        index: int,
        target: str,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        try:
            pairs = session.remove_placement(target, index=index)
        except (ValueError, IndexError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"pairs": pairs_to_documents(pairs), "placements": session.placements_at(index)}

    @app.post("/sessions/{session_id}/submit")
    async def submit(
        session_id: str,
        payload: SubmitPayload,
        response: Response,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        outcome = await session.submit(confirmed=payload.confirm)
        if outcome is SubmitOutcome.CONFIRMATION_REQUIRED:
            raise HTTPException(
                status_code=409,
                detail=f"You have {session.unanswered_count()} unanswered question(s). Submit anyway?",
            )
        if outcome is SubmitOutcome.IGNORED:
            raise HTTPException(status_code=409, detail=f"Session is {session.phase.value}; nothing to submit.")
        if outcome is SubmitOutcome.PERSISTENCE_FAILED:
            raise HTTPException(status_code=503, detail="Failed to submit exam. Please try again.")
        if outcome is SubmitOutcome.PROFILE_UPDATE_FAILED:
            response.status_code = 202
        return {"outcome": outcome.value, **_view_and_release(manager, session_id, session)}

    @app.post("/sessions/{session_id}/profile-update")
    async def retry_profile_update(
        session_id: str,
        response: Response,
        manager: SessionManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = _lookup(manager, session_id)
        outcome = await session.retry_profile_update()
        if outcome is SubmitOutcome.IGNORED:
            raise HTTPException(status_code=409, detail="No profile update is pending.")
        if outcome is SubmitOutcome.PROFILE_UPDATE_FAILED:
            response.status_code = 202
        return {"outcome": outcome.value, **_view_and_release(manager, session_id, session)}

    @app.delete("/sessions/{session_id}", status_code=204)
    async def leave_session(session_id: str, manager: SessionManager = Depends(manager_dep)) -> Response:
        _lookup(manager, session_id)
        if not manager.close_session(session_id):
            raise HTTPException(status_code=409, detail="Submission in progress.")
        return Response(status_code=204)

    return app


def run_api_server(
    session_manager: SessionManager,
    fetch_profile: ProfileLookup,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API until interrupted."""
    app = create_api_app(session_manager, fetch_profile)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
