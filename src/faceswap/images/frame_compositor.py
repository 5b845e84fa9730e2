"""Overlay decorative frames on face-swap results."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from io import BytesIO

import httpx
from PIL import Image, UnidentifiedImageError

from ..swap.swap_errors import CompositeError

logger = logging.getLogger(__name__)

COMPOSITE_QUALITY = 95


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split a ``data:<mime>;base64,<payload>`` URL into mime type and bytes."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Not a base64 data URL")
    mime = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    return mime, base64.b64decode(payload, validate=True)


@dataclass(slots=True)
class FrameCompositor:
    """Draw a frame stretched over the base image and encode it as a JPEG data URL."""

    timeout_seconds: float = 15.0
    log: logging.Logger = field(default_factory=lambda: logger)

    async def combine(self, result_image_url: str, frame_url: str) -> str:
        base_bytes = await self._load(result_image_url)
        frame_bytes = await self._load(frame_url)
        try:
            with Image.open(BytesIO(base_bytes)) as base, Image.open(BytesIO(frame_bytes)) as frame:
                canvas = base.convert("RGBA")
                overlay = frame.convert("RGBA").resize(canvas.size, Image.Resampling.LANCZOS)
                canvas.alpha_composite(overlay)
                buffer = BytesIO()
                canvas.convert("RGB").save(buffer, format="JPEG", quality=COMPOSITE_QUALITY)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            self.log.warning(
                "frames.composite.decode_failed",
                extra={"result_url": _short(result_image_url), "frame_url": _short(frame_url)},
            )
            raise CompositeError("Failed to combine image with frame") from exc

        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        self.log.info(
            "frames.composite.done",
            extra={"width": canvas.width, "height": canvas.height, "frame_url": _short(frame_url)},
        )
        return f"data:image/jpeg;base64,{encoded}"

    async def _load(self, src: str) -> bytes:
        if src.startswith("data:"):
            try:
                _, data = decode_data_url(src)
            except (ValueError, binascii.Error) as exc:
                raise CompositeError("Failed to load image: invalid data URL") from exc
            return data

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                response = await client.get(src)
        except httpx.HTTPError as exc:
            self.log.warning("frames.load.network_error", extra={"src": _short(src), "error": str(exc)})
            raise CompositeError(f"Failed to load image: {src}") from exc
        if response.status_code != 200:
            self.log.warning(
                "frames.load.bad_status",
                extra={"src": _short(src), "status_code": response.status_code},
            )
            raise CompositeError(f"Failed to load image: {src}")
        return response.content


def _short(url: str) -> str:
    return url if len(url) <= 120 else url[:117] + "..."
