"""Persistence layer for per-user generation history."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth.auth_service import UserIdentity
from ..db.db_models import GenerationModel
from ..exceptions import RepositoryError, Unauthenticated, handle_sqlalchemy_errors

logger = logging.getLogger(__name__)

PLACEHOLDER_RESULT_IMAGE = "/images/placeholder.png"
DEFAULT_HISTORY_LIMIT = 10
UPDATABLE_FIELDS = frozenset({"result_image", "status"})
TERMINAL_STATUSES = frozenset({"completed", "failed"})


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(slots=True)
class NewGeneration:
    """Fields supplied by the caller when a task is submitted."""

    user_id: str
    source_image: str
    target_image: str
    task_id: str
    result_image: str = PLACEHOLDER_RESULT_IMAGE


@dataclass(slots=True)
class GenerationRecord:
    """Snapshot of one stored generation."""

    id: str
    user_id: str
    source_image: str
    target_image: str
    result_image: str
    task_id: str
    status: str
    timestamp: str
    updated_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "sourceImage": self.source_image,
            "targetImage": self.target_image,
            "resultImage": self.result_image,
            "taskId": self.task_id,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload


def _to_record(model: GenerationModel) -> GenerationRecord:
    return GenerationRecord(
        id=model.id,
        user_id=model.user_id,
        source_image=model.source_image,
        target_image=model.target_image,
        result_image=model.result_image,
        task_id=model.task_id,
        status=model.status,
        timestamp=_as_utc(model.timestamp).isoformat(),
        updated_at=_as_utc(model.updated_at).isoformat() if model.updated_at else None,
    )


@dataclass(slots=True)
class HistoryRepository:
    """Manage generation records with a most-recent-N retention cap."""

    session_factory: Callable[[], Session]
    limit: int = DEFAULT_HISTORY_LIMIT
    clock: Callable[[], datetime] = field(default=_utcnow)
    log: logging.Logger = field(default_factory=lambda: logger)

    def create(self, identity: UserIdentity | None, record: NewGeneration) -> str:
        """Insert a record and evict the user's oldest records beyond ``limit``.

        Insert and eviction share one transaction; a failed eviction leaves
        nothing behind.
        """
        self._require_owner(identity, record.user_id)
        record_id = uuid.uuid4().hex
        with handle_sqlalchemy_errors(entity="generation"):
            with self.session_factory() as session:
                session.add(
                    GenerationModel(
                        id=record_id,
                        user_id=record.user_id,
                        source_image=record.source_image,
                        target_image=record.target_image,
                        result_image=record.result_image,
                        task_id=record.task_id,
                        status="pending",
                        timestamp=self.clock(),
                    )
                )
                session.flush()
                evicted = self._enforce_retention(session, record.user_id)
                session.commit()
        self.log.info(
            "history.generation.created",
            extra={
                "record_id": record_id,
                "user_id": record.user_id,
                "task_id": record.task_id,
                "evicted": evicted,
            },
        )
        return record_id

    def update(self, identity: UserIdentity | None, record_id: str, **changes: Any) -> bool:
        """Apply ``result_image``/``status`` changes once; ``False`` when nothing was updated."""
        if identity is None:
            raise Unauthenticated("Sign-in required to update history")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported generation fields: {sorted(unknown)}")

        try:
            with handle_sqlalchemy_errors(entity="generation"):
                with self.session_factory() as session:
                    model = session.get(GenerationModel, record_id)
                    if model is None or model.user_id != identity.uid:
                        self.log.warning(
                            "history.generation.update_missing",
                            extra={"record_id": record_id, "user_id": identity.uid},
                        )
                        return False
                    if model.status in TERMINAL_STATUSES:
                        self.log.warning(
                            "history.generation.update_terminal",
                            extra={"record_id": record_id, "status": model.status},
                        )
                        return False
                    for name, value in changes.items():
                        setattr(model, name, value)
                    model.updated_at = self.clock()
                    session.commit()
        except RepositoryError:
            self.log.exception("history.generation.update_failed", extra={"record_id": record_id})
            return False

        self.log.info(
            "history.generation.updated",
            extra={"record_id": record_id, "fields": sorted(changes)},
        )
        return True

    def list_recent(
        self,
        identity: UserIdentity | None,
        user_id: str,
        limit: int | None = None,
    ) -> list[GenerationRecord]:
        """Most recent records first; signed-out callers get an empty list."""
        if identity is None:
            return []
        self._require_owner(identity, user_id)
        query = (
            select(GenerationModel)
            .where(GenerationModel.user_id == user_id)
            .order_by(GenerationModel.timestamp.desc())
            .limit(limit or self.limit)
        )
        with handle_sqlalchemy_errors(entity="generation"):
            with self.session_factory() as session:
                return [_to_record(model) for model in session.scalars(query)]

    def _enforce_retention(self, session: Session, user_id: str) -> int:
        query = (
            select(GenerationModel)
            .where(GenerationModel.user_id == user_id)
            .order_by(GenerationModel.timestamp.desc())
        )
        stale = list(session.scalars(query))[self.limit:]
        for model in stale:
            session.delete(model)
        return len(stale)

    @staticmethod
    def _require_owner(identity: UserIdentity | None, user_id: str) -> None:
        if identity is None:
            raise Unauthenticated("Sign-in required to access history")
        if identity.uid != user_id:
            raise Unauthenticated("Identity does not match history owner")
