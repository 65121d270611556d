"""Single GIF surface centred in the scene.

The simplest way to look at an asset: one plane sized from the canvas aspect
ratio, one CompositeBuffer, one looping PlaybackClock. Loading another
FrameStore replaces the surface and releases the previous one.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import PlaybackSettings
from ..content.composite import CompositeBuffer
from ..content.frames import FrameStore
from ..engine.playback import PlaybackClock, validate_speed
from ..engine.scheduler import Scheduler
from .geometry import Material, PlaneGeometry, Surface, plane_size_for_aspect
from .graph import Scene

logger = logging.getLogger(__name__)


class Showcase:
    def __init__(self, scene: Scene, scheduler: Scheduler, *,
                 playback: Optional[PlaybackSettings] = None, plane_extent: float = 4.0):
        self.scene = scene
        self.scheduler = scheduler
        self.playback = playback or PlaybackSettings()
        self.plane_extent = plane_extent
        self.store: Optional[FrameStore] = None
        self.surface: Optional[Surface] = None
        self.buffer: Optional[CompositeBuffer] = None
        self.clock: Optional[PlaybackClock] = None

    def load(self, store: FrameStore, *, autoplay: bool = True) -> Surface:
        """Show *store*, replacing whatever was shown before."""
        self._release()
        self.store = store
        self.buffer = CompositeBuffer(store, label="showcase")
        width, height = plane_size_for_aspect(store.aspect_ratio, self.plane_extent)
        geometry = PlaneGeometry(width, height)
        material = Material(self.buffer.texture, transparent=True, double_sided=True)
        self.surface = Surface(geometry, material, name="showcase")
        self.scene.add(self.surface)
        self.clock = PlaybackClock(store, self.buffer, self.scheduler,
                                   speed=self.playback.speed, loop=self.playback.loop,
                                   label="showcase")
        logger.info("[showcase] loaded %r as %.2fx%.2f plane", store, width, height)
        if autoplay:
            self.play()
        return self.surface

    def play(self) -> None:
        if self.clock is None:
            logger.warning("[showcase] play() before any asset was loaded")
            return
        self.clock.start()

    def stop(self) -> None:
        if self.clock is not None:
            self.clock.stop()

    def set_speed(self, speed: float) -> None:
        speed = validate_speed(speed)
        self.playback.speed = speed
        if self.clock is not None:
            self.clock.speed = speed

    def set_loop(self, loop: bool) -> None:
        self.playback.loop = loop
        if self.clock is not None:
            self.clock.loop = loop

    @property
    def playing(self) -> bool:
        return self.clock is not None and self.clock.running

    def _release(self) -> None:
        if self.surface is None:
            return
        self.clock.stop()
        self.scene.remove(self.surface)
        self.buffer.dispose()
        self.surface.material.dispose()
        self.surface.geometry.dispose()
        logger.debug("[showcase] released previous surface")
        self.surface = self.buffer = self.clock = None
        self.store = None

    def dispose(self) -> None:
        self._release()
