"""Dependency wiring helpers."""

from __future__ import annotations

from fastapi import FastAPI

from .auth.auth_api import router as auth_router
from .auth.auth_service import AuthService, UserIdentity
from .config import AppConfig, VendorSettings
from .history.history_api import router as history_router
from .history.history_repository import HistoryRepository
from .images.frame_compositor import FrameCompositor
from .images.frames_api import router as frames_router
from .images.image_pipeline import ImagePipeline
from .swap.scheduler import AsyncioScheduler
from .swap.swap_api import router as swaps_router
from .swap.swap_sessions import SwapSessionRegistry
from .swap.task_manager import TaskLifecycleManager
from .vendor.task_client import TaskClient
from .vendor.vendor_api import TaskClientFactory
from .vendor.vendor_api import router as vendor_router


def build_client_factory(settings: VendorSettings) -> TaskClientFactory:
    """Clients are built per use so a missing key fails the request, not startup."""

    def factory(api_key: str | None = None) -> TaskClient:
        return TaskClient(
            api_key=api_key or settings.api_key,
            base_url=settings.base_url,
            model=settings.model,
            timeout_seconds=settings.timeout_seconds,
        )

    return factory


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount module routers and attach services."""
    history_repo = HistoryRepository(config.session_factory, limit=config.history_limit)
    # without a signing key the app runs signed-out only
    auth_service: AuthService | None = None
    if config.auth_signing_key:
        auth_service = AuthService.from_settings(
            signing_key=config.auth_signing_key,
            token_ttl_hours=config.auth_token_ttl_hours,
        )

    def build_manager(identity: UserIdentity | None) -> TaskLifecycleManager:
        # read from app.state so tests can swap the client and scheduler
        return TaskLifecycleManager(
            client=app.state.task_client_factory(),
            scheduler=app.state.scheduler,
            history=app.state.history_repo,
            identity=identity,
            poll_interval_seconds=config.polling.interval_seconds,
            max_attempts=config.polling.max_attempts,
        )

    app.state.config = config
    app.state.auth_service = auth_service
    app.state.history_repo = history_repo
    app.state.task_client_factory = build_client_factory(config.vendor)
    app.state.scheduler = AsyncioScheduler()
    app.state.swap_sessions = SwapSessionRegistry(factory=build_manager)
    app.state.image_pipeline = ImagePipeline(
        max_file_size_bytes=config.image_limits.max_file_size_bytes,
        max_dimension=config.image_limits.max_dimension,
    )
    app.state.frame_compositor = FrameCompositor()

    app.include_router(auth_router)
    app.include_router(vendor_router)
    app.include_router(frames_router)
    app.include_router(swaps_router)
    app.include_router(history_router)
