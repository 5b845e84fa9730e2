"""Template and frame catalogs plus frame compositing."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import AppConfig
from ..responses import cors_error, cors_json, preflight
from ..swap.swap_errors import CompositeError
from ..vendor.vendor_api import get_config
from .catalog import FRAMES, TARGET_IMAGES, find_frame, find_frame_by_url
from .frame_compositor import FrameCompositor

router = APIRouter(prefix="/api", tags=["frames"])


class CombineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    result_image_url: str | None = Field(default=None, alias="resultImageUrl")
    frame_id: str | None = Field(default=None, alias="frameId")
    frame_url: str | None = Field(default=None, alias="frameUrl")


def get_compositor(request: Request) -> FrameCompositor:
    try:
        return request.app.state.frame_compositor  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("FrameCompositor is not configured") from exc


@router.options("/frames/combine")
def combine_preflight() -> JSONResponse:
    return preflight()


@router.get("/targets")
def list_targets() -> JSONResponse:
    return cors_json({"targets": [{"id": t.id, "url": t.url} for t in TARGET_IMAGES]})


@router.get("/frames")
def list_frames(config: AppConfig = Depends(get_config)) -> JSONResponse:
    return cors_json({"frames": [frame.to_payload(config.frame_base_url) for frame in FRAMES]})


@router.post("/frames/combine")
async def combine_frame(
    payload: CombineRequest,
    config: AppConfig = Depends(get_config),
    compositor: FrameCompositor = Depends(get_compositor),
) -> JSONResponse:
    if not payload.result_image_url:
        return cors_error("Result image URL is required", 400)

    if not payload.frame_url and not payload.frame_id:
        return cors_error("Either frameId or frameUrl is required", 400)

    frame = None
    if not payload.frame_url:
        try:
            frame = find_frame(payload.frame_id)
        except KeyError:
            return cors_error(f"Unknown frame id: {payload.frame_id}", 400)
        if frame.path is None:
            # "none" frame: nothing to draw
            return cors_json({"success": True, "dataUrl": payload.result_image_url})

    if not config.frame_base_url:
        return cors_error("Frame catalog is not configured (FRAME_BASE_URL)", 503)
    if frame is None:
        # only catalog frames are fetched
        try:
            frame = find_frame_by_url(payload.frame_url, config.frame_base_url)
        except KeyError:
            return cors_error("Frame URL is not in the frame catalog", 400)

    frame_url = frame.resolve_url(config.frame_base_url)
    try:
        data_url = await compositor.combine(payload.result_image_url, frame_url)
    except CompositeError as exc:
        return cors_error(str(exc), 502)
    return cors_json({"success": True, "dataUrl": data_url})
