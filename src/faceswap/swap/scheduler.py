"""Deferred-call scheduling used by the poll loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class ScheduledCall(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not started yet."""


class Scheduler(Protocol):
    def schedule_after(self, delay: float, callback: Callback) -> ScheduledCall:
        """Run ``callback`` once after ``delay`` seconds."""


@dataclass(slots=True)
class _TaskCall:
    task: asyncio.Task[None]

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


@dataclass(slots=True)
class AsyncioScheduler:
    """Schedule callbacks as tasks on the running event loop."""

    _tasks: set[asyncio.Task[None]] = field(default_factory=set)

    def schedule_after(self, delay: float, callback: Callback) -> ScheduledCall:
        task = asyncio.get_running_loop().create_task(self._run(max(0.0, delay), callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return _TaskCall(task)

    @staticmethod
    async def _run(delay: float, callback: Callback) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduler.callback_failed")

    @property
    def pending(self) -> int:
        return len(self._tasks)
