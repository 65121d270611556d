"""Per-instance frame compositing.

A :class:`CompositeBuffer` owns one RGBA surface the size of the animation
canvas and rebuilds the animation on it frame by frame, honouring each
frame's disposal mode. The surface doubles as the pixel store of the
instance's :class:`~gifdrift.content.texture.CanvasTexture`.

Disposal handling (applied for the frame composited *before* the new one):

| previous frame disposal | action before drawing the new patch          |
|-------------------------|----------------------------------------------|
| NONE                    | nothing, draw over existing pixels           |
| BACKGROUND              | clear the previous rectangle to transparent  |
| PREVIOUS                | treated as NONE (no snapshot/restore)        |
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .frames import DisposalMode, Frame, FrameStore
from .texture import CanvasTexture

logger = logging.getLogger(__name__)


class CompositeBuffer:
    def __init__(self, store: FrameStore, *, label: str = ""):
        self.store = store
        self._surface = np.zeros((store.height, store.width, 4), dtype=np.uint8)
        self.texture = CanvasTexture(self._surface, label=label or "composite")
        self.cursor: Optional[int] = None
        self.applied_count = 0
        self._dirty_pixels = False

    @property
    def pixels(self) -> np.ndarray:
        """Read-only view of the composited surface."""
        view = self._surface.view()
        view.setflags(write=False)
        return view

    @property
    def disposed(self) -> bool:
        return self.texture.disposed

    def apply(self, index: int) -> None:
        """Composite frame *index* onto the surface and mark the texture dirty.

        Raises:
            IndexError: If *index* is outside ``[0, frame_count)``
        """
        if not 0 <= index < self.store.frame_count:
            raise IndexError(f"Frame index {index} out of range [0, {self.store.frame_count})")
        if self.disposed:
            logger.debug("[composite] apply(%d) on disposed buffer %s ignored", index, self.texture.label)
            return

        if self.cursor is not None:
            previous = self.store[self.cursor]
            if previous.disposal is DisposalMode.BACKGROUND:
                self._clear_rect(previous)
            # PREVIOUS: no snapshot is kept, the region is left as drawn.

        frame = self.store[index]
        if frame.width and frame.height:
            self._surface[frame.top:frame.top + frame.height,
                          frame.left:frame.left + frame.width] = frame.patch
        self.cursor = index
        self.applied_count += 1
        self._dirty_pixels = True
        self.texture.mark_dirty()

    def _clear_rect(self, frame: Frame) -> None:
        self._surface[frame.top:frame.top + frame.height,
                      frame.left:frame.left + frame.width] = 0

    def reset(self) -> None:
        """Clear surface and cursor to the neutral transparent state (idempotent)."""
        if self.cursor is None and not self._dirty_pixels:
            return
        if not self.disposed:
            self._surface.fill(0)
            self.texture.mark_dirty()
        self.cursor = None
        self._dirty_pixels = False

    def dispose(self) -> None:
        """Release the texture. Safe to call repeatedly."""
        if self.disposed:
            return
        self.texture.dispose()
        self.cursor = None

    def __repr__(self) -> str:
        return (f"CompositeBuffer({self.store.width}x{self.store.height}, "
                f"cursor={self.cursor}, disposed={self.disposed})")
