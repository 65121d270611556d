"""Scroll-gated spawning.

The controller is an edge detector over the scroll fraction: crossing the
threshold upwards spawns one instance immediately and then one per interval;
dropping below it cancels the interval and clears the pool. Repeated
evaluations on the same side of the threshold do nothing.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import SpawnSettings
from .pool import InstancePool
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


def scroll_fraction(offset: float, document_height: float, viewport_height: float) -> float:
    """Scroll position as a percentage in [0, 100]; 0 when nothing can scroll."""
    scrollable = document_height - viewport_height
    if scrollable <= 0:
        return 0.0
    return max(0.0, min(100.0, offset / scrollable * 100.0))


class SpawnController:
    """Owns the spawn interval; invariant: ``interval_handle is not None`` iff ``spawning``."""

    def __init__(self, pool: InstancePool, scheduler: Scheduler,
                 settings: Optional[SpawnSettings] = None):
        self.pool = pool
        self.scheduler = scheduler
        self.settings = settings or SpawnSettings()
        self.spawning = False
        self.interval_handle: Optional[TimerHandle] = None
        self.last_fraction: Optional[float] = None

    @property
    def threshold(self) -> float:
        return self.settings.threshold

    def evaluate(self, fraction: float) -> None:
        self.last_fraction = fraction
        if fraction >= self.settings.threshold:
            if not self.spawning:
                self._start()
        elif self.spawning:
            self._stop()

    def _start(self) -> None:
        self.spawning = True
        self.interval_handle = self.scheduler.call_every(self.settings.interval_ms, self._spawn_one)
        logger.info("[spawn] threshold %.1f reached (fraction=%.1f), spawning every %d ms",
                    self.settings.threshold, self.last_fraction, self.settings.interval_ms)
        self._spawn_one()

    def _stop(self) -> None:
        self._cancel_interval()
        self.spawning = False
        cleared = self.pool.clear_all()
        logger.info("[spawn] below threshold (fraction=%.1f), cleared %d instances",
                    self.last_fraction, cleared)

    def _spawn_one(self) -> None:
        self.pool.create()

    def _cancel_interval(self) -> None:
        handle, self.interval_handle = self.interval_handle, None
        if handle is not None:
            handle.cancel()

    def shutdown(self) -> None:
        """Stop spawning without touching live instances."""
        self._cancel_interval()
        self.spawning = False
