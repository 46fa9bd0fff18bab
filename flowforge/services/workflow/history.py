"""Bounded run history."""

from __future__ import annotations

from collections import deque

from flowforge.core.config import get_settings
from flowforge.schemas.execution import ExecutionSummary


class ExecutionHistory:
    """Newest-first FIFO of finished run summaries.

    Once ``capacity`` is reached the oldest entry is evicted. Recording the
    same execution id twice is a no-op, so a run that was stopped and later
    unwinds on its own is kept exactly once with the summary taken first.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity or get_settings().EXECUTION_HISTORY_SIZE
        self._entries: deque[ExecutionSummary] = deque(maxlen=self.capacity)
        self._ids: set[str] = set()

    def record(self, summary: ExecutionSummary) -> bool:
        """Insert a summary at the front. Returns False if already recorded."""
        if summary.id in self._ids:
            return False

        if len(self._entries) == self.capacity:
            self._ids.discard(self._entries[-1].id)
        self._entries.appendleft(summary)
        self._ids.add(summary.id)
        return True

    def list(self, limit: int = 50) -> list[ExecutionSummary]:
        if limit <= 0:
            return []
        return list(self._entries)[:limit]

    def get(self, execution_id: str) -> ExecutionSummary | None:
        if execution_id not in self._ids:
            return None
        return next(entry for entry in self._entries if entry.id == execution_id)

    def clear(self) -> None:
        self._entries.clear()
        self._ids.clear()

    def __contains__(self, execution_id: object) -> bool:
        return execution_id in self._ids

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ExecutionHistory"]
