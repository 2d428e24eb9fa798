# recruitflow/services/usage/dispatcher.py
"""Non-blocking hand-off of usage records to accounting, with its own failure channel."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Set

from recruitflow.schemas.usage import TokenUsage
from recruitflow.services.usage.accounting import UsageAccounting

logger = logging.getLogger("pipeline.usage")


class UsageDispatcher:
    """
    Schedules `UsageAccounting.record` as a background task on the running loop.
    The caller never waits for it and never sees its errors; failures land in
    `self.failures` and the log.
    """

    def __init__(self, accounting: Optional[UsageAccounting]):
        self.accounting = accounting
        self.failures: List[BaseException] = []
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, model_id: str, usage: TokenUsage, context: Mapping[str, Any] | None = None) -> None:
        if self.accounting is None:
            return
        task = asyncio.get_running_loop().create_task(self.accounting.record(model_id, usage, context))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures.append(exc)
            logger.error("Usage dispatch failed: %s", exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched record (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
