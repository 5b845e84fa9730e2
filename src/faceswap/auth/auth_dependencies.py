"""Common authentication dependencies for FastAPI routers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .auth_service import (
    AuthService,
    InvalidTokenError,
    TokenExpiredError,
    UserIdentity,
)

security = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService | None:
    """``None`` when no signing key is configured."""
    try:
        return request.app.state.auth_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AuthService is not configured") from exc


def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    service: AuthService | None = Depends(get_auth_service),
) -> UserIdentity | None:
    """Signed-out callers get ``None``; a bad token is still rejected."""
    if credentials is None:
        return None
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "failure_reason": "auth_not_configured"},
        )
    try:
        return service.validate_token(credentials.credentials)
    except TokenExpiredError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "failure_reason": "token_expired"},
        ) from exc
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "failure_reason": "invalid_token"},
        ) from exc


def require_identity(
    identity: UserIdentity | None = Depends(get_optional_identity),
) -> UserIdentity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "failure_reason": "missing_token"},
        )
    return identity


__all__ = ["get_auth_service", "get_optional_identity", "require_identity"]
