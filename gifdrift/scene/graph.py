"""Flat scene container."""

from __future__ import annotations

import logging
from typing import Iterator

from .geometry import Surface

logger = logging.getLogger(__name__)


class Scene:
    """Ordered set of surfaces drawn back-to-front in insertion order.

    ``add``/``remove`` are idempotent and report whether anything changed.
    """

    def __init__(self, background: tuple[int, int, int] = (0x1A, 0x1A, 0x1A)):
        self.background = background
        self._surfaces: list[Surface] = []

    def add(self, surface: Surface) -> bool:
        if surface in self._surfaces:
            return False
        self._surfaces.append(surface)
        logger.debug("[scene] added %s (%d surfaces)", surface.name, len(self._surfaces))
        return True

    def remove(self, surface: Surface) -> bool:
        try:
            self._surfaces.remove(surface)
        except ValueError:
            return False
        logger.debug("[scene] removed %s (%d surfaces)", surface.name, len(self._surfaces))
        return True

    def clear(self) -> None:
        self._surfaces.clear()

    @property
    def surfaces(self) -> tuple[Surface, ...]:
        return tuple(self._surfaces)

    @property
    def background_rgb(self) -> tuple[float, float, float]:
        r, g, b = self.background
        return r / 255.0, g / 255.0, b / 255.0

    def __contains__(self, surface: object) -> bool:
        return surface in self._surfaces

    def __iter__(self) -> Iterator[Surface]:
        return iter(tuple(self._surfaces))

    def __len__(self) -> int:
        return len(self._surfaces)
