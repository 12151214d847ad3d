import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from exam_quest.core.models import StudentProfile
from exam_quest.core.services.memory_store import MemoryDocumentStore


class FakeHandle:
    def __init__(self, scheduler, callback):
        self._scheduler = scheduler
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects scheduled callbacks so tests decide when a second passes."""

    def __init__(self):
        self.pending = []
        self.delays = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self, callback)
        self.pending.append(handle)
        self.delays.append(delay)
        return handle

    def live(self):
        return [handle for handle in self.pending if not handle.cancelled]

    def advance(self, seconds=1):
        """Fire the live callbacks once per simulated second."""
        for _ in range(seconds):
            due = self.live()
            self.pending = []
            for handle in due:
                handle.callback()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def profile():
    return StudentProfile(user_id="stu-1", display_name="Ada", points=90, level=1)


@pytest.fixture
def store():
    return MemoryDocumentStore.from_snapshot(
        {
            "questions": {
                "q1": {
                    "type": "mcq",
                    "question": "2 + 2?",
                    "options": ["3", "4", "5", "22"],
                    "correctAnswer": "4",
                    "points": 10,
                },
                "q2": {
                    "type": "short-answer",
                    "prompt": "Capital of France?",
                    "correctAnswer": "Paris",
                    "points": 20,
                },
                "q3": {
                    "type": "drag-drop",
                    "prompt": "Match the capitals",
                    "correctAnswer": [
                        {"item": "Paris", "match": "France"},
                        {"item": "Rome", "match": "Italy"},
                    ],
                    "points": 15,
                },
            },
            "exams": {
                "timed": {
                    "title": "Basics",
                    "duration": 1,
                    "passingScore": 60,
                    "selectedQuestions": ["q1", "q2"],
                },
                "untimed": {
                    "title": "Practice",
                    "duration": 0,
                    "questionRefs": ["q1", "q2", "q3"],
                },
                "empty": {"title": "Nothing yet", "duration": 5, "selectedQuestions": ["missing"]},
                "inactive": {"title": "Retired", "duration": 5, "isActive": False, "selectedQuestions": ["q1"]},
            },
            "users": {"stu-1": {"displayName": "Ada", "points": 90, "level": 1}},
        }
    )
