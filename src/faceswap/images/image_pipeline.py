"""Upload validation, dimension probing and adaptive compression."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from ..swap.swap_errors import ProcessingError
from .image_models import (
    AdviceLevel,
    CompressionOptions,
    ImageAdvice,
    ProcessedImage,
    UploadedImage,
)

logger = logging.getLogger(__name__)

MB = 1024 * 1024
MAX_FILE_SIZE_BYTES = 10 * MB
MAX_DIMENSION = 2048
TARGET_DIMENSION = 1600  # mobile captures
LARGE_IMAGE_BYTES = 5 * MB
MOBILE_SIZE_BYTES = 3 * MB
MOBILE_DIMENSION = 2000

DEFAULT_COMPRESSION = CompressionOptions(max_dimension=MAX_DIMENSION, quality=0.8)
STRONG_COMPRESSION = CompressionOptions(max_dimension=TARGET_DIMENSION, quality=0.75)
FINAL_COMPRESSION = CompressionOptions(max_dimension=1200, quality=0.7)

DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


@dataclass(slots=True)
class ImagePipeline:
    """Normalize source photos so the vendor accepts them.

    At most two compression passes run: one chosen by :meth:`select_compression`
    and, if the output is still heavy, one with :data:`FINAL_COMPRESSION`.
    Images already under every ceiling are returned byte-for-byte.
    """

    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES
    max_dimension: int = MAX_DIMENSION
    log: logging.Logger = field(default_factory=lambda: logger)

    def validate(self, image: UploadedImage) -> ImageAdvice | None:
        if not image.content_type.startswith("image/"):
            return ImageAdvice(AdviceLevel.ERROR, "Please upload an image file.")

        ceiling_mb = self.max_file_size_bytes // MB
        if image.size_bytes > self.max_file_size_bytes:
            return ImageAdvice(
                AdviceLevel.WARNING,
                f"Image size ({format_file_size(image.size_bytes)}) exceeds {ceiling_mb}MB. "
                "It will be automatically compressed.",
            )
        if image.size_bytes > LARGE_IMAGE_BYTES:
            return ImageAdvice(
                AdviceLevel.WARNING,
                f"Large image detected ({format_file_size(image.size_bytes)}). "
                "It will be compressed to fit size limits.",
            )
        return None

    def select_compression(self, size_bytes: int, width: int, height: int) -> CompressionOptions | None:
        likely_mobile = size_bytes > MOBILE_SIZE_BYTES and (
            width > MOBILE_DIMENSION or height > MOBILE_DIMENSION
        )
        if likely_mobile:
            return STRONG_COMPRESSION
        oversized = (
            size_bytes > self.max_file_size_bytes
            or width > self.max_dimension
            or height > self.max_dimension
        )
        if oversized:
            return CompressionOptions(max_dimension=self.max_dimension, quality=DEFAULT_COMPRESSION.quality)
        return None

    def needs_second_pass(self, size_bytes: int) -> bool:
        return size_bytes > self.max_file_size_bytes * 0.9 or size_bytes > LARGE_IMAGE_BYTES

    def process(self, image: UploadedImage) -> ProcessedImage:
        width, height = self.measure(image.data)
        options = self.select_compression(image.size_bytes, width, height)
        if options is None:
            return ProcessedImage(
                data=image.data,
                content_type=image.content_type,
                filename=image.filename,
                width=width,
                height=height,
                size_bytes=image.size_bytes,
            )

        self.log.info(
            "images.compress.start",
            extra={
                "filename": image.filename,
                "size_bytes": image.size_bytes,
                "width": width,
                "height": height,
                "max_dimension": options.max_dimension,
                "quality": options.quality,
            },
        )
        data = self._compress(image.data, options)
        if self.needs_second_pass(len(data)):
            self.log.info(
                "images.compress.second_pass",
                extra={"filename": image.filename, "size_bytes": len(data)},
            )
            data = self._compress(data, FINAL_COMPRESSION)

        final_width, final_height = self.measure(data)
        self.log.info(
            "images.compress.done",
            extra={
                "filename": image.filename,
                "size_bytes": len(data),
                "width": final_width,
                "height": final_height,
            },
        )
        return ProcessedImage(
            data=data,
            content_type="image/jpeg",
            filename=_jpeg_filename(image.filename),
            width=final_width,
            height=final_height,
            size_bytes=len(data),
            original_width=width,
            original_height=height,
            original_size=image.size_bytes,
        )

    def measure(self, data: bytes) -> tuple[int, int]:
        """Decode the whole image and return its intrinsic size."""
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                return img.size
        except DECODE_ERRORS as exc:
            self.log.warning("images.decode_failed", extra={"error": str(exc)})
            raise ProcessingError(
                "Failed to process image. Please try a different image."
            ) from exc

    def _compress(self, data: bytes, options: CompressionOptions) -> bytes:
        try:
            with Image.open(BytesIO(data)) as img:
                frame = _flatten(ImageOps.exif_transpose(img))
                frame.thumbnail(
                    (options.max_dimension, options.max_dimension),
                    Image.Resampling.LANCZOS,
                )
                buffer = BytesIO()
                frame.save(
                    buffer,
                    format="JPEG",
                    quality=round(options.quality * 100),
                    optimize=True,
                )
        except DECODE_ERRORS as exc:
            raise ProcessingError(
                "Failed to process image. Please try a different image."
            ) from exc
        return buffer.getvalue()


def _flatten(img: Image.Image) -> Image.Image:
    """JPEG has no alpha: composite transparent images over white."""
    if img.mode in ("RGB", "L"):
        return img
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def _jpeg_filename(filename: str) -> str:
    stem = Path(filename).stem or "upload"
    return f"{stem}.jpg"
