"""Static image gallery with a gentle vertex-wave distortion.

Each image sits on its own finely subdivided plane (height 4, width from the
image aspect) so the per-frame wave looks smooth. Positions come from
:class:`GalleryLayout`: an explicit list when given, a centred grid otherwise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np

from ..content.media import ImageData, load_image_sync
from ..content.texture import CanvasTexture
from .geometry import Material, PlaneGeometry, Surface
from .graph import Scene

logger = logging.getLogger(__name__)

Position = tuple[float, float, float]

DEFAULT_CUSTOM_POSITIONS: tuple[Position, ...] = (
    (0.0, 0.0, 1.0),
    (2.5, 3.0, 0.0),
    (-1.0, 3.0, 1.0),
    (-3.5, 1.5, 0.0),
    (-3.0, -2.0, 0.0),
    (0.5, 4.0, 0.0),
    (3.0, 0.0, 0.0),
    (-0.5, -3.0, 0.0),
    (2.5, -2.5, 0.0),
)

WAVE_AMPLITUDE = 0.05
WAVE_FREQUENCY = 2.0
TIME_STEP = 0.005  # per rendered frame


@dataclass
class GalleryLayout:
    cols: int = 3
    spacing: float = 3.5
    custom_positions: Sequence[Position] = field(default_factory=lambda: list(DEFAULT_CUSTOM_POSITIONS))

    def calculate_position(self, index: int, total: int) -> Position:
        """World position for image *index* of *total*."""
        if 0 <= index < len(self.custom_positions) and self.custom_positions[index] is not None:
            custom = self.custom_positions[index]
            x, y = custom[0], custom[1]
            z = custom[2] if len(custom) > 2 else 0.0
            return (float(x), float(y), float(z))

        row, col = divmod(index, self.cols)
        offset_x = (self.cols - 1) * self.spacing / 2
        offset_y = (math.ceil(total / self.cols) - 1) * self.spacing / 2
        return (col * self.spacing - offset_x, -row * self.spacing + offset_y, 0.0)


@dataclass(eq=False)
class GalleryItem:
    surface: Surface
    image: ImageData
    initial_position: Position

    @property
    def geometry(self) -> PlaneGeometry:
        return self.surface.geometry


class ImageGallery:
    """Loads still images onto planes and animates their vertices.

    Args:
        scene: Scene the planes are added to
        layout: Position rules; defaults to the nine-slot custom layout
        segments: Subdivisions per plane axis
        height: Plane height in world units
    """

    def __init__(self, scene: Scene, layout: Optional[GalleryLayout] = None, *,
                 segments: int = 32, height: float = 4.0, alpha_test: float = 0.1):
        self.scene = scene
        self.layout = layout or GalleryLayout()
        self.segments = segments
        self.height = height
        self.alpha_test = alpha_test
        self.items: list[GalleryItem] = []
        self.time = 0.0
        self._total = 0

    def load(self, paths: Iterable[str | Path]) -> int:
        """Load every image in *paths*; unreadable ones are skipped. Returns how many loaded."""
        paths = [Path(p) for p in paths]
        self._total = len(paths)
        loaded = 0
        for index, path in enumerate(paths):
            image = load_image_sync(path)
            if image is None:
                continue
            self._add(image, self.layout.calculate_position(index, self._total))
            loaded += 1
        logger.info("[gallery] loaded %d/%d images", loaded, self._total)
        return loaded

    def _add(self, image: ImageData, position: Position) -> GalleryItem:
        geometry = PlaneGeometry(self.height * image.aspect_ratio, self.height,
                                 self.segments, self.segments)
        texture = CanvasTexture(image.data, label=image.path.name)
        material = Material(texture, transparent=True, double_sided=True, alpha_test=self.alpha_test)
        surface = Surface(geometry, material, name=f"gallery-{image.path.stem}")
        surface.position.set(*position)
        item = GalleryItem(surface=surface, image=image, initial_position=position)
        self.items.append(item)
        self.scene.add(surface)
        return item

    def update_position(self, index: int, x: float, y: float, z: float) -> bool:
        """Move image *index*; logs a warning and returns False if it is not loaded."""
        if not 0 <= index < len(self.items):
            logger.warning("[gallery] image at index %d is not loaded yet", index)
            return False
        item = self.items[index]
        item.surface.position.set(x, y, z)
        item.initial_position = (float(x), float(y), float(z))
        return True

    def update_all_positions(self) -> None:
        """Re-apply the layout to every loaded image."""
        total = self._total or len(self.items)
        for index, item in enumerate(self.items):
            position = self.layout.calculate_position(index, total)
            item.surface.position.set(*position)
            item.initial_position = position

    def distort(self, t: float) -> None:
        for item in self.items:
            geometry = item.geometry
            original = geometry.original_positions
            ox, oy = original[:, 0], original[:, 1]
            geometry.positions[:, 0] = ox + np.sin(ox * WAVE_FREQUENCY + t * WAVE_FREQUENCY) * WAVE_AMPLITUDE
            geometry.positions[:, 1] = oy + np.cos(oy * WAVE_FREQUENCY + t * WAVE_FREQUENCY) * WAVE_AMPLITUDE
            geometry.positions[:, 2] = original[:, 2]
            geometry.mark_vertices_changed()

    def advance(self, dt: float = 0.0) -> None:
        """Render-loop hook: step the wave by one frame."""
        self.time += TIME_STEP
        self.distort(self.time)

    def clear(self) -> None:
        for item in self.items:
            self.scene.remove(item.surface)
            if item.surface.material.texture is not None:
                item.surface.material.texture.dispose()
            item.surface.material.dispose()
            item.geometry.dispose()
        self.items.clear()
        self._total = 0

    def __len__(self) -> int:
        return len(self.items)
