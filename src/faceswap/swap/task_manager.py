"""State machine driving one face-swap task from submission to a terminal state."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ..auth.auth_service import UserIdentity
from ..exceptions import RepositoryError, Unauthenticated
from ..history.history_repository import HistoryRepository, NewGeneration
from ..vendor.task_client import TaskClient
from ..vendor.vendor_models import ImageRef, InlineImage, TaskStatusSnapshot, VendorTaskStatus
from .scheduler import ScheduledCall, Scheduler
from .swap_errors import (
    PersistenceWarning,
    StatusError,
    SubmissionError,
    TaskTimeoutError,
    ValidationError,
)
from .swap_models import SwapState, SwapStatus, Task

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_ATTEMPTS = 60


@dataclass(slots=True)
class TaskLifecycleManager:
    """Own one swap flow: submit, poll on a fixed schedule, persist, reset.

    Status moves ``idle -> loading -> succeeded | failed``. Only :meth:`reset`
    (or a fresh :meth:`submit`) leaves a terminal status. At most one poll
    chain runs at a time; ``_polling`` is the guard and ``_cancelled`` marks a
    reset so that a poll already waiting on the network drops its result.
    """

    client: TaskClient
    scheduler: Scheduler
    history: HistoryRepository | None = None
    identity: UserIdentity | None = None
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    log: logging.Logger = field(default_factory=lambda: logger)

    status: SwapStatus = field(default=SwapStatus.IDLE, init=False)
    task: Task | None = field(default=None, init=False)
    error: str | None = field(default=None, init=False)
    size_error: bool = field(default=False, init=False)
    warnings: list[PersistenceWarning] = field(default_factory=list, init=False)
    _polling: bool = field(default=False, init=False)
    _cancelled: bool = field(default=False, init=False)
    _epoch: int = field(default=0, init=False)
    _pending: ScheduledCall | None = field(default=None, init=False)
    _terminal: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    @property
    def is_polling(self) -> bool:
        return self._polling

    async def submit(
        self,
        target: ImageRef | None,
        source: InlineImage | None,
        *,
        source_descriptor: str | None = None,
    ) -> Task | None:
        """Create a remote task and start polling it.

        Returns ``None`` when the call was ignored (a loop is already active)
        or when submission failed; the failure is then visible via
        :meth:`snapshot`.
        """
        if self._polling or self.status is SwapStatus.LOADING:
            self.log.info(
                "swap.submit.ignored",
                extra={"task_id": self.task.task_id if self.task else None},
            )
            return None
        if not target or source is None or not source.data:
            raise ValidationError("Both target and source images are required")

        epoch = self._begin()
        try:
            created = await self.client.submit(target, source)
        except SubmissionError as exc:
            if epoch != self._epoch:
                return None
            self._fail(exc.user_message, size_error=exc.size_class)
            return None
        except Exception as exc:
            if epoch != self._epoch:
                return None
            self.log.exception("swap.submit.unexpected_error")
            self._fail(str(exc) or "Failed to create face swap task")
            return None

        if epoch != self._epoch:
            self.log.info("swap.submit.discarded", extra={"task_id": created.task_id})
            return None

        task = Task(task_id=created.task_id)
        self.task = task
        self.log.info("swap.task.submitted", extra={"task_id": task.task_id})
        task.record_id = self._record_pending(
            task,
            target_descriptor=target if isinstance(target, str) else "Uploaded target image",
            source_descriptor=source_descriptor or "Uploaded image",
        )
        self._start_polling(task)
        return task

    def reset(self) -> SwapState:
        """Return to ``idle`` from any state, dropping the task and pending poll."""
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._cancelled = True
        self._polling = False
        self._epoch += 1
        self.task = None
        self.status = SwapStatus.IDLE
        self.error = None
        self.size_error = False
        self.warnings.clear()
        self._terminal.set()
        self._terminal = asyncio.Event()
        self.log.info("swap.reset")
        return self.snapshot()

    def snapshot(self) -> SwapState:
        task = self.task
        return SwapState(
            status=self.status,
            task_id=task.task_id if task else None,
            attempts=task.attempts if task else 0,
            result_url=task.result_url if task else None,
            error=self.error,
            size_error=self.size_error,
            warnings=[str(warning) for warning in self.warnings],
        )

    async def wait_until_terminal(self, timeout: float | None = None) -> SwapState:
        await asyncio.wait_for(self._terminal.wait(), timeout=timeout)
        return self.snapshot()

    # Internal transitions -------------------------------------------------

    def _begin(self) -> int:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._epoch += 1
        self._cancelled = False
        self.task = None
        self.status = SwapStatus.LOADING
        self.error = None
        self.size_error = False
        self.warnings.clear()
        if self._terminal.is_set():
            self._terminal = asyncio.Event()
        return self._epoch

    def _start_polling(self, task: Task) -> None:
        if self._polling:
            return
        self._polling = True
        self._schedule_poll(task, 0.0)

    def _schedule_poll(self, task: Task, delay: float) -> None:
        async def run() -> None:
            await self._poll(task)

        self._pending = self.scheduler.schedule_after(delay, run)

    def _is_stale(self, task: Task) -> bool:
        return self._cancelled or self.task is not task

    async def _poll(self, task: Task) -> None:
        self._pending = None
        if self._is_stale(task):
            return

        try:
            snapshot = await self.client.fetch_status(task.task_id)
        except StatusError as exc:
            if self._is_stale(task):
                return
            self._fail(str(exc) or "Failed to check task status")
            return
        except Exception as exc:
            if self._is_stale(task):
                return
            self.log.exception("swap.poll.unexpected_error", extra={"task_id": task.task_id})
            self._fail(str(exc) or "An unknown error occurred")
            return

        if self._is_stale(task):
            self.log.info("swap.poll.discarded", extra={"task_id": task.task_id})
            return
        self._apply_status(task, snapshot)

    def _apply_status(self, task: Task, snapshot: TaskStatusSnapshot) -> None:
        task.vendor_status = snapshot.status.value

        if snapshot.status is VendorTaskStatus.COMPLETED:
            result_url = snapshot.result_url
            if not result_url:
                self._fail("Task completed but no result image was returned")
                return
            self._succeed(task, result_url)
            return

        if snapshot.status is VendorTaskStatus.FAILED:
            self._fail(snapshot.error_message or "Task processing failed")
            return

        task.attempts += 1
        if task.attempts >= self.max_attempts:
            self._fail(str(TaskTimeoutError(self._timeout_message())))
            return
        self.log.debug(
            "swap.poll.waiting",
            extra={
                "task_id": task.task_id,
                "attempt": task.attempts,
                "max_attempts": self.max_attempts,
                "vendor_status": task.vendor_status,
            },
        )
        self._schedule_poll(task, self.poll_interval_seconds)

    def _succeed(self, task: Task, result_url: str) -> None:
        if self.status.is_terminal:
            return
        task.result_url = result_url
        self.status = SwapStatus.SUCCEEDED
        self._polling = False
        self._terminal.set()
        self.log.info(
            "swap.task.succeeded",
            extra={"task_id": task.task_id, "attempts": task.attempts},
        )
        self._record_result(task)

    def _fail(self, message: str, *, size_error: bool = False) -> None:
        if self.status.is_terminal:
            return
        self.status = SwapStatus.FAILED
        self.error = message
        self.size_error = size_error
        if self.task is not None:
            self.task.error = message
        self._polling = False
        self._pending = None
        self._terminal.set()
        self.log.warning(
            "swap.task.failed",
            extra={
                "task_id": self.task.task_id if self.task else None,
                "error": message,
                "size_error": size_error,
            },
        )

    def _timeout_message(self) -> str:
        total_seconds = self.poll_interval_seconds * self.max_attempts
        if total_seconds >= 60 and total_seconds % 60 == 0:
            minutes = int(total_seconds // 60)
            unit = "minute" if minutes == 1 else "minutes"
            return f"Operation timed out after {minutes} {unit}"
        return f"Operation timed out after {self.max_attempts} status checks"

    # History side effects -------------------------------------------------

    def _record_pending(
        self, task: Task, *, target_descriptor: str, source_descriptor: str
    ) -> str | None:
        if self.history is None or self.identity is None:
            self.log.debug("swap.history.skipped", extra={"task_id": task.task_id})
            return None
        try:
            return self.history.create(
                self.identity,
                NewGeneration(
                    user_id=self.identity.uid,
                    source_image=source_descriptor,
                    target_image=target_descriptor,
                    task_id=task.task_id,
                ),
            )
        except (RepositoryError, Unauthenticated) as exc:
            self._warn(f"Could not save task to history: {exc}", task)
            return None

    def _record_result(self, task: Task) -> None:
        if self.history is None or self.identity is None or task.record_id is None:
            return
        try:
            updated = self.history.update(
                self.identity,
                task.record_id,
                result_image=task.result_url,
                status="completed",
            )
        except (RepositoryError, Unauthenticated) as exc:
            self.log.warning("swap.history.update_error", extra={"error": str(exc)})
            updated = False
        if not updated:
            self._warn(
                "Could not update history with result, but your image was generated successfully.",
                task,
            )

    def _warn(self, message: str, task: Task) -> None:
        warning = PersistenceWarning(message)
        self.warnings.append(warning)
        self.log.warning(
            "swap.history.warning",
            extra={"task_id": task.task_id, "warning": message},
        )
