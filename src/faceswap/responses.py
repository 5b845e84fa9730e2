"""JSON responses for the browser-facing proxy routes."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Content-Type, Authorization, X-CSRF-Token, X-Requested-With, Accept, "
        "Accept-Version, Content-Length, Content-MD5, Date, X-Api-Version"
    ),
    "Access-Control-Max-Age": "86400",
}


def cors_json(content: dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


def cors_error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    """``{"success": false, "error": ...}`` with CORS headers."""
    body: dict[str, Any] = {"success": False, "error": message}
    body.update(extra)
    return cors_json(body, status_code=status_code)


def preflight() -> JSONResponse:
    return cors_json({})
