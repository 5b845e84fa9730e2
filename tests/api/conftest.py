from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from src.faceswap.auth.auth_service import UserIdentity
from src.faceswap.config import load_config
from src.faceswap.main import create_app
from tests.mocks.vendor import DummyTaskClient, FakeScheduler


@dataclass
class ApiHarness:
    client: TestClient
    vendor: DummyTaskClient
    scheduler: FakeScheduler
    api_keys: list[str | None]

    def bearer(self, identity: UserIdentity) -> dict[str, str]:
        token = self.client.app.state.auth_service.issue_token(identity)  # type: ignore[attr-defined]
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api(monkeypatch) -> Iterator[ApiHarness]:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    app = create_app(load_config())
    vendor = DummyTaskClient()
    scheduler = FakeScheduler()
    api_keys: list[str | None] = []

    def factory(api_key: str | None = None) -> DummyTaskClient:
        api_keys.append(api_key)
        return vendor

    app.state.task_client_factory = factory
    app.state.scheduler = scheduler
    with TestClient(app) as client:
        yield ApiHarness(client=client, vendor=vendor, scheduler=scheduler, api_keys=api_keys)
