"""Predefined template targets and decorative frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TargetImage:
    id: str
    url: str


@dataclass(frozen=True, slots=True)
class Frame:
    id: str
    name: str
    path: str | None

    def resolve_url(self, base_url: str) -> str | None:
        if self.path is None:
            return None
        return f"{base_url.rstrip('/')}{self.path}" if base_url else self.path

    def to_payload(self, base_url: str) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.resolve_url(base_url)}


TARGET_IMAGES: tuple[TargetImage, ...] = (
    TargetImage("1", "https://devimg.tinylittleme.com/card/w_1_E8NeQY_ver_1.jpeg"),
    TargetImage("2", "https://devimg.tinylittleme.com/card/w_3_ZpEpWH_ver_1.jpeg"),
    TargetImage("3", "https://devimg.tinylittleme.com/card/human_warrior_3_GOvOKB_ver_1.jpeg"),
    TargetImage("4", "https://devimg.tinylittleme.com/card/human_warrior_4_Pw1Hxj_ver_1.jpeg"),
    TargetImage("5", "https://devimg.tinylittleme.com/card/human_warrior_5_302M6D_ver_1.jpeg"),
    TargetImage("6", "https://devimg.tinylittleme.com/card/human_warrior_6_0nRsJM_ver_1.jpeg"),
    TargetImage("7", "https://devimg.tinylittleme.com/card/human_warrior_7_duaKrW_ver_1.jpeg"),
)

FRAMES: tuple[Frame, ...] = (
    Frame("none", "No Frame", None),
    Frame("gold", "Gold Frame", "/frames/frame-gold.png"),
    Frame("blue", "Royal Blue", "/frames/frame-blue.png"),
    Frame("red", "Ruby Red", "/frames/frame-red.png"),
    Frame("black", "Classic Black", "/frames/simple-black.png"),
)


def find_target(target_id: str) -> TargetImage:
    for target in TARGET_IMAGES:
        if target.id == target_id:
            return target
    raise KeyError(f"Target image '{target_id}' not found")


def find_frame(frame_id: str) -> Frame:
    for frame in FRAMES:
        if frame.id == frame_id:
            return frame
    raise KeyError(f"Frame '{frame_id}' not found")


def find_frame_by_url(url: str, base_url: str) -> Frame:
    """Match a fully resolved frame URL back to its catalog entry."""
    for frame in FRAMES:
        if frame.path is not None and frame.resolve_url(base_url) == url:
            return frame
    raise KeyError(f"Frame URL '{url}' is not in the catalog")
