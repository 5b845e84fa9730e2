"""Bearer token verification producing an opaque user identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import ExpiredSignatureError
from jwt import InvalidTokenError as PyJWTInvalidTokenError
import structlog


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Identity produced by the sign-in provider; ``uid`` is the only key used."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
        }


class AuthError(Exception):
    """Base class for auth failures."""


class InvalidTokenError(AuthError):
    """Raised when token cannot be decoded."""


class TokenExpiredError(AuthError):
    """Raised when token is expired."""


@dataclass(slots=True)
class AuthService:
    """Issue and verify identity tokens for signed-in users."""

    signing_key: str
    token_ttl: timedelta

    @classmethod
    def from_settings(cls, signing_key: str, token_ttl_hours: int) -> "AuthService":
        if not signing_key:
            raise RuntimeError("AUTH_SIGNING_KEY is not configured")
        return cls(signing_key=signing_key, token_ttl=timedelta(hours=token_ttl_hours))

    def issue_token(self, identity: UserIdentity, issued_at: datetime | None = None) -> str:
        """Sign an identity into a token; used by the sign-in bridge and tests."""
        now = issued_at or _utcnow()
        payload: dict[str, Any] = {
            "sub": identity.uid,
            "email": identity.email,
            "name": identity.display_name,
            "picture": identity.photo_url,
            "iat": int(now.timestamp()),
            "exp": int((now + self.token_ttl).timestamp()),
        }
        logger.info("auth.token.issued", uid=identity.uid)
        return jwt.encode(payload, self.signing_key, algorithm="HS256")

    def validate_token(self, token: str) -> UserIdentity:
        """Decode a bearer token into a :class:`UserIdentity`."""
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.signing_key,
                algorithms=["HS256"],
                options={"require": ["exp", "iat", "sub"]},
            )
        except ExpiredSignatureError as exc:
            logger.warning("auth.token.rejected", reason="expired")
            raise TokenExpiredError("Token expired") from exc
        except PyJWTInvalidTokenError as exc:
            logger.warning("auth.token.rejected", reason="invalid")
            raise InvalidTokenError("Invalid token") from exc

        return UserIdentity(
            uid=str(payload["sub"]),
            email=payload.get("email"),
            display_name=payload.get("name"),
            photo_url=payload.get("picture"),
        )


__all__ = [
    "AuthService",
    "AuthError",
    "InvalidTokenError",
    "TokenExpiredError",
    "UserIdentity",
]
