"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .db.db_init import init_db

MB = 1024 * 1024


@dataclass(slots=True)
class VendorSettings:
    api_key: str
    base_url: str
    model: str
    timeout_seconds: float


@dataclass(slots=True)
class PollingSettings:
    interval_seconds: float
    max_attempts: int


@dataclass(slots=True)
class ImageLimits:
    max_file_size_bytes: int
    max_dimension: int
    upload_max_bytes: int
    allowed_prefix: str = "image/"


@dataclass(slots=True)
class AppConfig:
    vendor: VendorSettings
    polling: PollingSettings
    image_limits: ImageLimits
    history_limit: int
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]
    auth_signing_key: str
    auth_token_ttl_hours: int
    frame_base_url: str


def build_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        return create_engine(
            database_url,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url, future=True, connect_args={"check_same_thread": False}
        )
    return create_engine(database_url, future=True)


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite by default).

    ``PIAPI_API_KEY`` may be empty here; every vendor call checks it and
    fails loudly instead of falling back to a default.
    """
    vendor = VendorSettings(
        api_key=os.getenv("PIAPI_API_KEY", "").strip(),
        base_url=os.getenv("PIAPI_BASE_URL", "https://api.piapi.ai/api/v1").rstrip("/"),
        model=os.getenv("PIAPI_MODEL", "Qubico/image-toolkit"),
        timeout_seconds=float(os.getenv("PIAPI_TIMEOUT_SECONDS", 30)),
    )
    polling = PollingSettings(
        interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", 5)),
        max_attempts=int(os.getenv("POLL_MAX_ATTEMPTS", 60)),
    )
    image_limits = ImageLimits(
        max_file_size_bytes=int(os.getenv("IMAGE_MAX_FILE_SIZE_MB", 10)) * MB,
        max_dimension=int(os.getenv("IMAGE_MAX_DIMENSION", 2048)),
        upload_max_bytes=int(os.getenv("UPLOAD_MAX_BYTES", 20 * MB)),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///faceswap.db")
    engine = build_engine(database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        vendor=vendor,
        polling=polling,
        image_limits=image_limits,
        history_limit=int(os.getenv("HISTORY_LIMIT", 10)),
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
        auth_signing_key=os.getenv("AUTH_SIGNING_KEY", ""),
        auth_token_ttl_hours=int(os.getenv("AUTH_TOKEN_TTL_HOURS", 24)),
        frame_base_url=os.getenv("FRAME_BASE_URL", "").rstrip("/"),
    )
