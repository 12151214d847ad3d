"""In-memory document store implementing the exam gateway."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
import logging
from typing import Any, Mapping
from uuid import uuid4

from exam_quest.core.services.collaborators import GatewayError

logger = logging.getLogger(__name__)

EXAMS = "exams"
QUESTIONS = "questions"
RESULTS = "examResults"
USERS = "users"

_OPERATIONS = ("fetch_exam", "fetch_question", "create_result", "update_profile")


class MemoryDocumentStore:
    """Keeps collections of documents keyed by id, like the remote store does.

    Documents are copied on the way in and out so callers never share state
    with the store. ``fail_next`` makes the next call of an operation raise
    :class:`GatewayError`.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            EXAMS: {},
            QUESTIONS: {},
            RESULTS: {},
            USERS: {},
        }
        self._failures: dict[str, int] = {}

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> "MemoryDocumentStore":
        """Build a store from ``{"exams": {...}, "questions": {...}, "users": {...}}``."""
        store = cls()
        for collection, documents in snapshot.items():
            if not isinstance(documents, Mapping):
                raise ValueError(f"Collection '{collection}' must map ids to documents.")
            for doc_id, document in documents.items():
                store.put(collection, str(doc_id), document)
        return store

    # --- Seeding & inspection ---

    def put(self, collection: str, doc_id: str, document: Mapping[str, Any]) -> None:
        stored = copy.deepcopy(dict(document))
        stored.pop("id", None)
        self._collections.setdefault(collection, {})[doc_id] = stored

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        stored = self._collections.get(collection, {}).get(doc_id)
        if stored is None:
            return None
        return {"id": doc_id, **copy.deepcopy(stored)}

    def all(self, collection: str) -> list[dict[str, Any]]:
        return [self.get(collection, doc_id) for doc_id in self._collections.get(collection, {})]

    def fail_next(self, operation: str, times: int = 1) -> None:
        if operation not in _OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'.")
        self._failures[operation] = self._failures.get(operation, 0) + times

    # --- Gateway operations ---

    async def fetch_exam(self, exam_id: str) -> dict[str, Any] | None:
        self._maybe_fail("fetch_exam")
        return self.get(EXAMS, exam_id)

    async def fetch_question(self, question_id: str) -> dict[str, Any] | None:
        self._maybe_fail("fetch_question")
        return self.get(QUESTIONS, question_id)

    async def fetch_profile(self, user_id: str) -> dict[str, Any] | None:
        return self.get(USERS, user_id)

    async def create_result(self, record: Mapping[str, Any]) -> str:
        self._maybe_fail("create_result")
        result_id = uuid4().hex
        self.put(RESULTS, result_id, {**record, "createdAt": datetime.now(timezone.utc)})
        logger.info("Stored result %s for exam %s.", result_id, record.get("examId"))
        return result_id

    async def update_profile(self, user_id: str, fields: Mapping[str, Any], merge: bool = True) -> None:
        self._maybe_fail("update_profile")
        users = self._collections[USERS]
        if merge and user_id in users:
            users[user_id].update(copy.deepcopy(dict(fields)))
        else:
            self.put(USERS, user_id, fields)

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation, 0)
        if pending:
            self._failures[operation] = pending - 1
            raise GatewayError(f"{operation} failed")
