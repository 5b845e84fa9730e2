from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from sqlalchemy.orm import sessionmaker

from src.faceswap.auth.auth_service import UserIdentity
from src.faceswap.config import build_engine
from src.faceswap.db.db_init import init_db
from src.faceswap.exceptions import DatabaseOperationError
from src.faceswap.history.history_repository import (
    PLACEHOLDER_RESULT_IMAGE,
    HistoryRepository,
    NewGeneration,
)
from src.faceswap.swap.swap_errors import StatusError, SubmissionError, ValidationError
from src.faceswap.swap.swap_models import SwapStatus
from src.faceswap.swap.task_manager import TaskLifecycleManager
from src.faceswap.vendor.vendor_models import InlineImage
from tests.mocks.vendor import DummyTaskClient, FakeScheduler, snapshot

TARGET = "https://cdn.test/target.jpg"
SOURCE = InlineImage(data=b"face-bytes", content_type="image/jpeg")
USER = UserIdentity(uid="user-1", email="user@example.com")


@dataclass
class StubHistory:
    create_error: Exception | None = None
    update_result: bool = True
    created: list[NewGeneration] = field(default_factory=list)
    updates: list[dict[str, Any]] = field(default_factory=list)

    def create(self, identity, record: NewGeneration) -> str:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(record)
        return f"rec-{len(self.created)}"

    def update(self, identity, record_id: str, **changes: Any) -> bool:
        self.updates.append({"record_id": record_id, **changes})
        return self.update_result


def build_manager(client: DummyTaskClient, **kwargs: Any) -> tuple[TaskLifecycleManager, FakeScheduler]:
    scheduler = FakeScheduler()
    manager = TaskLifecycleManager(client=client, scheduler=scheduler, **kwargs)  # type: ignore[arg-type]
    return manager, scheduler


@pytest.mark.asyncio
async def test_missing_inputs_raise_without_network_call() -> None:
    client = DummyTaskClient()
    manager, scheduler = build_manager(client)

    with pytest.raises(ValidationError, match="Both target and source images are required"):
        await manager.submit(TARGET, None)
    with pytest.raises(ValidationError):
        await manager.submit("", SOURCE)

    assert client.submitted == []
    assert manager.status is SwapStatus.IDLE
    assert scheduler.calls == []


@pytest.mark.asyncio
async def test_object_output_succeeds_after_processing() -> None:
    client = DummyTaskClient(
        statuses=[
            snapshot("processing"),
            snapshot("completed", output={"image_url": "https://img.test/out.png"}),
        ]
    )
    manager, scheduler = build_manager(client)

    task = await manager.submit(TARGET, SOURCE)

    assert task is not None and task.task_id == "abc"
    assert manager.status is SwapStatus.LOADING
    assert [call.delay for call in scheduler.pending] == [0.0]

    await scheduler.run_next()
    assert manager.snapshot().attempts == 1
    assert [call.delay for call in scheduler.pending] == [5.0]

    await scheduler.run_next()
    state = manager.snapshot()
    assert state.status is SwapStatus.SUCCEEDED
    assert state.result_url == "https://img.test/out.png"
    assert scheduler.pending == []
    assert manager.is_polling is False


@pytest.mark.asyncio
async def test_string_output_succeeds() -> None:
    client = DummyTaskClient(statuses=[snapshot("completed", output="https://img.test/legacy.png")])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.status is SwapStatus.SUCCEEDED
    assert manager.snapshot().result_url == "https://img.test/legacy.png"


@pytest.mark.asyncio
async def test_completed_without_url_fails() -> None:
    client = DummyTaskClient(statuses=[snapshot("completed", output={"image_url": ""})])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    state = manager.snapshot()
    assert state.status is SwapStatus.FAILED
    assert state.error == "Task completed but no result image was returned"
    assert state.result_url is None


@pytest.mark.asyncio
async def test_times_out_at_exactly_sixty_attempts() -> None:
    client = DummyTaskClient(statuses=[snapshot("processing")])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    state = manager.snapshot()
    assert len(client.polled) == 60
    assert state.attempts == 60
    assert state.status is SwapStatus.FAILED
    assert state.error == "Operation timed out after 5 minutes"


@pytest.mark.asyncio
async def test_vendor_failure_uses_vendor_message() -> None:
    client = DummyTaskClient(
        statuses=[snapshot("failed", error={"message": "no face detected", "code": 10000})]
    )
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.status is SwapStatus.FAILED
    assert manager.error == "no face detected"
    assert scheduler.pending == []
    assert len(client.polled) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "final",
    [
        snapshot("completed", output="https://img.test/ok.png"),
        snapshot("failed", error="boom"),
    ],
)
async def test_reset_from_terminal_state_clears_everything(final) -> None:
    client = DummyTaskClient(statuses=[final])
    manager, scheduler = build_manager(client)
    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()
    assert manager.status.is_terminal

    state = manager.reset()

    assert state.status is SwapStatus.IDLE
    assert (state.result_url, state.error, state.task_id) == (None, None, None)


@pytest.mark.asyncio
async def test_vendor_failure_without_message_uses_default() -> None:
    client = DummyTaskClient(statuses=[snapshot("failed")])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.error == "Task processing failed"


@pytest.mark.asyncio
async def test_status_error_fails_without_retry() -> None:
    client = DummyTaskClient(statuses=[StatusError("502: Bad Gateway", status_code=502)])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.status is SwapStatus.FAILED
    assert manager.error == "502: Bad Gateway"
    assert len(client.polled) == 1


@pytest.mark.asyncio
async def test_size_class_submission_error_is_flagged() -> None:
    client = DummyTaskClient(
        submit_error=SubmissionError.from_vendor_message("Image size exceeds limit", status_code=400)
    )
    manager, scheduler = build_manager(client)

    assert await manager.submit(TARGET, SOURCE) is None

    state = manager.snapshot()
    assert state.status is SwapStatus.FAILED
    assert state.size_error is True
    assert state.error == (
        "Image size issue: Image size exceeds limit. "
        "Please use a smaller image or try our auto-compression."
    )
    assert scheduler.calls == []


@pytest.mark.asyncio
async def test_second_submit_while_loading_is_ignored() -> None:
    client = DummyTaskClient(statuses=[snapshot("processing")])
    manager, scheduler = build_manager(client)

    first = await manager.submit(TARGET, SOURCE)
    second = await manager.submit(TARGET, SOURCE)

    assert first is not None
    assert second is None
    assert len(client.submitted) == 1
    assert len(scheduler.pending) == 1


@pytest.mark.asyncio
async def test_reset_cancels_pending_poll() -> None:
    client = DummyTaskClient(statuses=[snapshot("processing")])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    pending = scheduler.pending[0]
    state = manager.reset()

    assert pending.cancelled is True
    assert state.status is SwapStatus.IDLE
    assert state.task_id is None
    assert await scheduler.run_all() == 0
    assert client.polled == []


@pytest.mark.asyncio
async def test_result_arriving_after_reset_is_discarded() -> None:
    manager_ref: list[TaskLifecycleManager] = []

    class ResettingClient(DummyTaskClient):
        async def fetch_status(self, task_id: str):
            manager_ref[0].reset()
            return snapshot("completed", output={"image_url": "https://img.test/late.png"})

    client = ResettingClient()
    manager, scheduler = build_manager(client)
    manager_ref.append(manager)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    state = manager.snapshot()
    assert state.status is SwapStatus.IDLE
    assert state.result_url is None


@pytest.mark.asyncio
async def test_new_submission_after_terminal_state_starts_fresh_task() -> None:
    client = DummyTaskClient(statuses=[snapshot("failed", error="boom")])
    manager, scheduler = build_manager(client)
    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()
    assert manager.status is SwapStatus.FAILED

    client.statuses = [snapshot("completed", output="https://img.test/second.png")]
    client.task_id = "def"
    task = await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert task is not None and task.task_id == "def"
    assert manager.status is SwapStatus.SUCCEEDED
    assert manager.error is None


@pytest.mark.asyncio
async def test_history_record_follows_task_to_completion() -> None:
    engine = build_engine("sqlite://")
    init_db(engine)
    repo = HistoryRepository(sessionmaker(bind=engine, expire_on_commit=False))
    client = DummyTaskClient(
        task_id="abc",
        statuses=[
            snapshot("processing"),
            snapshot("completed", output={"image_url": "https://x/y.png"}),
        ],
    )
    manager, scheduler = build_manager(client, history=repo, identity=USER)

    await manager.submit(TARGET, SOURCE, source_descriptor="me.jpg")
    [pending] = repo.list_recent(USER, USER.uid)
    assert pending.task_id == "abc"
    assert pending.result_image == PLACEHOLDER_RESULT_IMAGE
    assert pending.status == "pending"
    assert pending.source_image == "me.jpg"
    assert pending.target_image == TARGET

    await scheduler.run_all()

    [done] = repo.list_recent(USER, USER.uid)
    assert manager.status is SwapStatus.SUCCEEDED
    assert done.result_image == "https://x/y.png"
    assert done.status == "completed"
    assert done.updated_at is not None
    assert manager.warnings == []


@pytest.mark.asyncio
async def test_history_write_failure_becomes_warning() -> None:
    history = StubHistory(create_error=DatabaseOperationError("disk full"))
    client = DummyTaskClient(statuses=[snapshot("completed", output="https://img.test/ok.png")])
    manager, scheduler = build_manager(client, history=history, identity=USER)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    state = manager.snapshot()
    assert state.status is SwapStatus.SUCCEEDED
    assert len(state.warnings) == 1
    assert state.warnings[0].startswith("Could not save task to history")
    assert history.updates == []


@pytest.mark.asyncio
async def test_history_update_failure_becomes_warning() -> None:
    history = StubHistory(update_result=False)
    client = DummyTaskClient(statuses=[snapshot("completed", output="https://img.test/ok.png")])
    manager, scheduler = build_manager(client, history=history, identity=USER)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.status is SwapStatus.SUCCEEDED
    assert history.updates == [
        {"record_id": "rec-1", "result_image": "https://img.test/ok.png", "status": "completed"}
    ]
    assert manager.snapshot().warnings == [
        "Could not update history with result, but your image was generated successfully."
    ]


@pytest.mark.asyncio
async def test_history_is_skipped_for_signed_out_users() -> None:
    history = StubHistory()
    client = DummyTaskClient(statuses=[snapshot("completed", output="https://img.test/ok.png")])
    manager, scheduler = build_manager(client, history=history, identity=None)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()

    assert manager.status is SwapStatus.SUCCEEDED
    assert history.created == []
    assert manager.warnings == []


@pytest.mark.asyncio
async def test_wait_until_terminal_returns_final_state() -> None:
    client = DummyTaskClient(statuses=[snapshot("completed", output="https://img.test/ok.png")])
    manager, scheduler = build_manager(client)

    await manager.submit(TARGET, SOURCE)
    await scheduler.run_all()
    state = await manager.wait_until_terminal(timeout=1)

    assert state.status is SwapStatus.SUCCEEDED
