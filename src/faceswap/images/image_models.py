"""Data structures for the image pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ..vendor.vendor_models import InlineImage


class AdviceLevel(StrEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ImageAdvice:
    """Outcome of :meth:`ImagePipeline.validate`; only ``ERROR`` should stop an upload."""

    level: AdviceLevel
    message: str

    @property
    def is_error(self) -> bool:
        return self.level is AdviceLevel.ERROR


@dataclass(frozen=True, slots=True)
class UploadedImage:
    """Raw upload as received from the user."""

    data: bytes
    content_type: str
    filename: str = "upload"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class CompressionOptions:
    max_dimension: int
    quality: float


@dataclass(frozen=True, slots=True)
class ProcessedImage:
    """Normalized source image ready to be inlined into a vendor request."""

    data: bytes
    content_type: str
    filename: str
    width: int
    height: int
    size_bytes: int
    original_width: int | None = None
    original_height: int | None = None
    original_size: int | None = None

    @property
    def compressed(self) -> bool:
        return self.original_size is not None

    def as_inline(self) -> InlineImage:
        return InlineImage(data=self.data, content_type=self.content_type)

    def to_payload(self) -> dict[str, int | str | bool | None]:
        return {
            "filename": self.filename,
            "contentType": self.content_type,
            "width": self.width,
            "height": self.height,
            "size": self.size_bytes,
            "compressed": self.compressed,
            "originalWidth": self.original_width,
            "originalHeight": self.original_height,
            "originalSize": self.original_size,
        }
