"""Authentication API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .auth_dependencies import require_identity
from .auth_service import UserIdentity

router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/me")
def current_user(identity: UserIdentity = Depends(require_identity)) -> dict:
    return identity.to_payload()
