"""Animated-image decoding into immutable frame sequences.

An animation is decoded once, completely, into a :class:`FrameStore`: an
ordered, non-empty tuple of :class:`Frame` records plus the canonical canvas
size (the GIF logical screen). Each frame keeps only the pixels of its own
placement rectangle together with its disposal mode and display duration, so
a per-instance compositor can rebuild the animation frame by frame.

Pillow does the container parsing and LZW work. Pillow hands back every frame
already composited onto the full canvas; the patch stored here is the crop of
that composite over the frame's placement rectangle, which yields exactly the
same picture once re-composited with put (replace) semantics.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_FRAME_DURATION_MS = 100


class DecodeError(Exception):
    """Buffer is not a decodable animation or yields no frames."""


class DisposalMode(Enum):
    """What happens to a frame's pixels before the next frame is drawn."""
    NONE = 0
    BACKGROUND = 2   # clear the frame's rectangle to transparent
    PREVIOUS = 3     # restore the region to its state before the frame

    @classmethod
    def from_gif(cls, code: Optional[int]) -> "DisposalMode":
        """Map a GIF graphic-control disposal code (0-3)."""
        if code == 2:
            return cls.BACKGROUND
        if code == 3:
            return cls.PREVIOUS
        return cls.NONE

    @classmethod
    def from_apng(cls, code: Optional[int]) -> "DisposalMode":
        """Map an APNG ``dispose_op`` (0 none, 1 background, 2 previous)."""
        if code == 1:
            return cls.BACKGROUND
        if code == 2:
            return cls.PREVIOUS
        return cls.NONE


@dataclass(frozen=True, eq=False)
class Frame:
    """One decoded frame.

    Attributes:
        patch: RGBA pixels of the placement rectangle, shape (height, width, 4) uint8
        left: X offset of the rectangle inside the canvas
        top: Y offset of the rectangle inside the canvas
        width: Rectangle width in pixels
        height: Rectangle height in pixels
        disposal: Disposal mode applied after this frame was shown
        duration_ms: Display duration in milliseconds
    """
    patch: np.ndarray
    left: int
    top: int
    width: int
    height: int
    disposal: DisposalMode = DisposalMode.NONE
    duration_ms: int = DEFAULT_FRAME_DURATION_MS

    def __post_init__(self):
        if self.patch.dtype != np.uint8:
            raise ValueError("Frame patch must be uint8")
        if self.patch.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Frame patch shape mismatch: {self.patch.shape} vs ({self.height}, {self.width}, 4)"
            )
        if self.duration_ms <= 0:
            object.__setattr__(self, "duration_ms", DEFAULT_FRAME_DURATION_MS)
        # Shared by every instance.
        self.patch.setflags(write=False)

    @property
    def rect(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.width, self.height)


class FrameStore:
    """Ordered, immutable, non-empty frame sequence of one source asset."""

    def __init__(self, frames: Sequence[Frame], width: int, height: int, *, source: str = "<memory>"):
        if not frames:
            raise DecodeError(f"No frames decoded from {source}")
        if width <= 0 or height <= 0:
            raise DecodeError(f"Invalid canvas size {width}x{height} for {source}")
        self._frames: tuple[Frame, ...] = tuple(frames)
        self.width = int(width)
        self.height = int(height)
        self.source = source

    def __len__(self) -> int:
        return len(self._frames)

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def durations(self) -> list[int]:
        return [f.duration_ms for f in self._frames]

    @property
    def total_duration_ms(self) -> int:
        return sum(self.durations)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def describe(self) -> dict:
        """JSON-friendly summary (used by ``gifdrift inspect``)."""
        return {
            "source": self.source,
            "width": self.width,
            "height": self.height,
            "frame_count": self.frame_count,
            "total_duration_ms": self.total_duration_ms,
            "frames": [
                {
                    "index": i,
                    "rect": list(f.rect),
                    "disposal": f.disposal.name.lower(),
                    "duration_ms": f.duration_ms,
                }
                for i, f in enumerate(self._frames)
            ],
        }

    def __repr__(self) -> str:
        return f"FrameStore({self.source!r}, {self.width}x{self.height}, frames={self.frame_count})"


def _frame_disposal(img: Image.Image) -> DisposalMode:
    if img.format == "PNG":
        return DisposalMode.from_apng(getattr(img, "dispose_op", None))
    return DisposalMode.from_gif(getattr(img, "disposal_method", None))


def _frame_extent(img: Image.Image, canvas_w: int, canvas_h: int) -> tuple[int, int, int, int]:
    """Placement rectangle (left, top, right, bottom) clamped to the canvas."""
    extent = getattr(img, "dispose_extent", None) or (0, 0, canvas_w, canvas_h)
    x0, y0, x1, y1 = (int(v) for v in extent)
    x0 = min(max(0, x0), canvas_w)
    y0 = min(max(0, y0), canvas_h)
    x1 = min(max(x0, x1), canvas_w)
    y1 = min(max(y0, y1), canvas_h)
    return x0, y0, x1, y1


def decode(buffer: bytes, *, source: str = "<memory>") -> FrameStore:
    """Decode an animated image buffer into a :class:`FrameStore`.

    Raises:
        DecodeError: If the buffer is not a valid animation or yields zero frames
    """
    if not buffer:
        raise DecodeError(f"Empty buffer for {source}")

    frames: list[Frame] = []
    try:
        with Image.open(io.BytesIO(buffer)) as img:
            canvas_w, canvas_h = img.size
            count = int(getattr(img, "n_frames", 1) or 1)
            for index in range(count):
                img.seek(index)
                composite = np.asarray(img.convert("RGBA"), dtype=np.uint8)
                x0, y0, x1, y1 = _frame_extent(img, canvas_w, canvas_h)
                patch = np.ascontiguousarray(composite[y0:y1, x0:x1])
                frames.append(Frame(
                    patch=patch,
                    left=x0,
                    top=y0,
                    width=x1 - x0,
                    height=y1 - y0,
                    disposal=_frame_disposal(img),
                    duration_ms=int(img.info.get("duration") or DEFAULT_FRAME_DURATION_MS),
                ))
    except UnidentifiedImageError as e:
        raise DecodeError(f"Not a recognised image container: {source}") from e
    except (OSError, EOFError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to decode {source}: {e}") from e

    store = FrameStore(frames, canvas_w, canvas_h, source=source)
    logger.info("[decode] %s -> %dx%d, %d frames, %d ms loop",
                source, store.width, store.height, store.frame_count, store.total_duration_ms)
    return store


def decode_file(path: str | Path) -> FrameStore:
    """Read and decode an animation from disk."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"Cannot read {path}: {e}") from e
    return decode(data, source=str(path))
