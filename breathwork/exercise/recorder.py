"""Record a completed session as a stress entry."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from breathwork.db.models import StressEntry
from breathwork.db.session import get_session

InsertFn = Callable[[str, int, str | None], str]


def insert_stress_entry(user_id: str, stress_score: int, notes: str | None) -> str:
    with get_session() as session:
        entry = StressEntry(user_id=user_id, stress_score=stress_score, notes=notes)
        session.add(entry)
        session.flush()
        return entry.id


class CompletionRecorder:
    """Fire-and-forget writer. Failures are logged and never reach the session."""

    def __init__(self, insert_fn: InsertFn | None = None):
        self.insert_fn = insert_fn or insert_stress_entry
        # Strong refs so pending inserts are not garbage collected
        self._pending: set[asyncio.Task] = set()

    def record(self, user_id: str, stress_score: int, notes: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(self._record(user_id, stress_score, notes))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _record(self, user_id: str, stress_score: int, notes: str | None) -> str | None:
        try:
            entry_id = await asyncio.to_thread(self.insert_fn, user_id, stress_score, notes)
        except Exception as e:
            logger.error(f"[RECORDER] Failed to save stress entry for user {user_id}: {e}")
            return None
        logger.info(f"[RECORDER] Saved stress entry {entry_id}", user_id=user_id, stress_score=stress_score)
        return entry_id

    async def drain(self) -> None:
        """Wait for in-flight inserts. Called when a session is torn down."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
