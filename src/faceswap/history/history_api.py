"""Generation history routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth.auth_dependencies import require_identity
from ..auth.auth_service import UserIdentity
from ..exceptions import RepositoryError
from .history_repository import HistoryRepository

router = APIRouter(prefix="/api/history", tags=["history"])


def get_history_repo(request: Request) -> HistoryRepository:
    try:
        return request.app.state.history_repo  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("HistoryRepository is not configured") from exc


@router.get("")
def list_history(
    limit: int | None = Query(default=None, ge=1, le=50),
    identity: UserIdentity = Depends(require_identity),
    repo: HistoryRepository = Depends(get_history_repo),
) -> dict[str, Any]:
    try:
        records = repo.list_recent(identity, identity.uid, limit=limit)
    except RepositoryError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "failure_reason": "history_unavailable"},
        ) from exc
    return {"items": [record.to_payload() for record in records]}
