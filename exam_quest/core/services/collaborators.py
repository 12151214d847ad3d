"""Contracts of the external services an exam session talks to."""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class GatewayError(Exception):
    """Raised by a gateway when the store cannot be read or written."""


class ExamGateway(Protocol):
    """Remote document store operations used by the session engine.

    Lookups return ``None`` when the record does not exist; transport and
    write failures raise :class:`GatewayError`.
    """

    async def fetch_exam(self, exam_id: str) -> Mapping[str, Any] | None: ...

    async def fetch_question(self, question_id: str) -> Mapping[str, Any] | None: ...

    async def create_result(self, record: Mapping[str, Any]) -> str: ...

    async def update_profile(
        self, user_id: str, fields: Mapping[str, Any], merge: bool = True
    ) -> None: ...
