"""Session routes: upload a photo, start a swap, watch it, reset it."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status

from ..auth.auth_dependencies import get_optional_identity
from ..auth.auth_service import UserIdentity
from ..config import AppConfig
from ..images.catalog import find_target
from ..images.image_models import UploadedImage
from ..images.image_pipeline import ImagePipeline
from ..vendor.vendor_api import get_config
from .swap_errors import ConfigurationError, ProcessingError, ValidationError
from .swap_sessions import SwapSession, SwapSessionRegistry

router = APIRouter(prefix="/api/swaps", tags=["swaps"])


def get_session_registry(request: Request) -> SwapSessionRegistry:
    try:
        return request.app.state.swap_sessions  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("SwapSessionRegistry is not configured") from exc


def get_image_pipeline(request: Request) -> ImagePipeline:
    try:
        return request.app.state.image_pipeline  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("ImagePipeline is not configured") from exc


def _error(status_code: int, reason: str, message: str | None = None) -> HTTPException:
    detail: dict[str, Any] = {"status": "error", "failure_reason": reason}
    if message:
        detail["message"] = message
    return HTTPException(status_code=status_code, detail=detail)


def _session_payload(session: SwapSession) -> dict[str, Any]:
    return {"sessionId": session.session_id, "state": session.manager.snapshot().to_payload()}


def _lookup(
    registry: SwapSessionRegistry, session_id: str, identity: UserIdentity | None
) -> SwapSession:
    try:
        return registry.get(session_id, identity)
    except KeyError:
        raise _error(status.HTTP_404_NOT_FOUND, "session_not_found") from None


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def start_swap(
    file: UploadFile | None = File(default=None),
    target_image: str | None = Form(default=None, alias="targetImage"),
    target_image_id: str | None = Form(default=None, alias="targetImageId"),
    identity: UserIdentity | None = Depends(get_optional_identity),
    registry: SwapSessionRegistry = Depends(get_session_registry),
    pipeline: ImagePipeline = Depends(get_image_pipeline),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    target = target_image
    if not target and target_image_id:
        try:
            target = find_target(target_image_id).url
        except KeyError:
            raise _error(status.HTTP_404_NOT_FOUND, "target_not_found") from None
    if not target or file is None:
        raise _error(
            status.HTTP_400_BAD_REQUEST,
            "missing_image",
            "Both target and source images are required",
        )

    limit = config.image_limits.upload_max_bytes
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "payload_too_large")

    upload = UploadedImage(
        data=data,
        content_type=file.content_type or "application/octet-stream",
        filename=file.filename or "upload",
    )
    advice = pipeline.validate(upload)
    if advice is not None and advice.is_error:
        raise _error(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "unsupported_media", advice.message)

    try:
        processed = pipeline.process(upload)
    except ProcessingError as exc:
        raise _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_image", str(exc)) from exc

    try:
        session = registry.create(identity)
    except ConfigurationError as exc:
        raise _error(status.HTTP_503_SERVICE_UNAVAILABLE, "vendor_not_configured", str(exc)) from exc

    try:
        await session.manager.submit(
            target, processed.as_inline(), source_descriptor=processed.filename
        )
    except ValidationError as exc:
        registry.discard(session.session_id, identity)
        raise _error(status.HTTP_400_BAD_REQUEST, "missing_image", str(exc)) from exc

    payload = _session_payload(session)
    payload["image"] = processed.to_payload()
    payload["warning"] = advice.message if advice is not None else None
    return payload


@router.get("/{session_id}")
def fetch_swap(
    session_id: str,
    identity: UserIdentity | None = Depends(get_optional_identity),
    registry: SwapSessionRegistry = Depends(get_session_registry),
) -> dict[str, Any]:
    return _session_payload(_lookup(registry, session_id, identity))


@router.post("/{session_id}/reset")
def reset_swap(
    session_id: str,
    identity: UserIdentity | None = Depends(get_optional_identity),
    registry: SwapSessionRegistry = Depends(get_session_registry),
) -> dict[str, Any]:
    session = _lookup(registry, session_id, identity)
    session.manager.reset()
    return _session_payload(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def discard_swap(
    session_id: str,
    identity: UserIdentity | None = Depends(get_optional_identity),
    registry: SwapSessionRegistry = Depends(get_session_registry),
) -> None:
    _lookup(registry, session_id, identity)
    registry.discard(session_id, identity)
