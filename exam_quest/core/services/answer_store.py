"""In-memory store for the answers of one exam attempt."""

from __future__ import annotations

from typing import Any

from exam_quest.core.models import DragDropPair
from exam_quest.core.record_mapper import pairs_from_documents


class AnswerStore:
    """Maps question positions to the student's current answers.

    Drag-drop questions additionally keep their placements (target label ->
    item); every placement change rewrites the question's answer as the
    canonical pair list. Nothing here is validated against question types.
    """

    def __init__(self) -> None:
        self._answers: dict[int, Any] = {}
        self._placements: dict[int, dict[str, str]] = {}

    def set_answer(self, index: int, value: Any) -> None:
        self._answers[index] = value

    def get_answer(self, index: int) -> Any:
        return self._answers.get(index)

    def get(self, index: int, default: Any = None) -> Any:
        return self._answers.get(index, default)

    def has_answer(self, index: int) -> bool:
        value = self._answers.get(index)
        return value is not None and value != "" and value != []

    def answered_count(self) -> int:
        return sum(1 for index in self._answers if self.has_answer(index))

    def snapshot(self) -> dict[int, Any]:
        """Return a copy of the answers ordered by question position."""
        return {index: self._answers[index] for index in sorted(self._answers)}

    # --- Drag-drop placements ---

    def place_item(self, index: int, item: str, target: str) -> list[DragDropPair]:
        placements = self._placements.setdefault(index, {})
        for placed_target, placed_item in list(placements.items()):
            if placed_item == item and placed_target != target:
                del placements[placed_target]
        placements[target] = item
        return self._sync_pairs(index)

    def remove_placement(self, index: int, target: str) -> list[DragDropPair]:
        self._placements.setdefault(index, {}).pop(target, None)
        return self._sync_pairs(index)

    def set_pairs(self, index: int, pairs: Any) -> list[DragDropPair]:
        """Replace all placements of a question from a pair list."""
        self._placements[index] = {}
        for pair in pairs_from_documents(pairs):
            self.place_item(index, pair.item, pair.target)
        return self._sync_pairs(index)

    def placements(self, index: int) -> dict[str, str]:
        return dict(self._placements.get(index, {}))

    def placed_items(self, index: int) -> set[str]:
        return set(self._placements.get(index, {}).values())

    def _sync_pairs(self, index: int) -> list[DragDropPair]:
        pairs = [
            DragDropPair(item=item, target=target)
            for target, item in self._placements.get(index, {}).items()
        ]
        self._answers[index] = pairs
        return list(pairs)
