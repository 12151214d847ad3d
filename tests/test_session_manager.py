import asyncio

import pytest

from exam_quest.core.services.exam_session import SessionPhase, SubmitOutcome
from exam_quest.core.session_manager import SessionManager


def test_open_session_loads_and_starts(store, profile, scheduler):
    manager = SessionManager(store, scheduler=scheduler)
    session_id, session = asyncio.run(manager.open_session("timed", profile))
    assert session.phase is SessionPhase.IN_PROGRESS
    assert session.remaining_seconds == 60
    assert manager.get_session(session_id) is session


def test_reopening_a_running_attempt_returns_the_same_session(store, profile, scheduler):
    manager = SessionManager(store, scheduler=scheduler)

    async def scenario():
        first = await manager.open_session("timed", profile)
        scheduler.advance(12)
        second = await manager.open_session("timed", profile)
        return first, second

    (first_id, first), (second_id, second) = asyncio.run(scenario())
    assert first_id == second_id
    assert second.remaining_seconds == 48
    assert manager.session_count() == 1


def test_closing_forgets_the_session(store, profile, scheduler):
    manager = SessionManager(store, scheduler=scheduler)
    session_id, session = asyncio.run(manager.open_session("timed", profile))
    assert manager.close_session(session_id)
    assert scheduler.live() == []
    with pytest.raises(KeyError):
        manager.get_session(session_id)


def test_only_finished_sessions_are_released(store, profile, scheduler):
    manager = SessionManager(store, scheduler=scheduler)

    async def scenario():
        session_id, session = await manager.open_session("untimed", profile)
        running = manager.release_if_finished(session_id)
        outcome = await session.submit(confirmed=True)
        return session_id, running, outcome

    session_id, running, outcome = asyncio.run(scenario())
    assert not running
    assert outcome is SubmitOutcome.SUBMITTED
    assert manager.release_if_finished(session_id)
    assert not manager.release_if_finished(session_id)
    assert manager.session_count() == 0
