"""Render tick: tweens, boundary sweep, per-frame hooks, draw."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..logging_utils import BurstSampler
from .pool import InstancePool
from .scheduler import Scheduler, TimerHandle
from .tween import Tweener

logger = logging.getLogger(__name__)

FrameHook = Callable[[float], None]


class RenderLoop:
    """Fixed-interval render driver.

    Args:
        scheduler: Timer source for the tick
        tweener: Advanced by the measured time between ticks
        pool: Swept once per tick (None in modes without pooled instances)
        render_frame: Draw call, normally ``SceneView.render_frame``
        frame_interval_ms: Tick period (16 ms ~ 60 FPS)
    """

    def __init__(self, scheduler: Scheduler, tweener: Tweener,
                 pool: Optional[InstancePool], render_frame: Callable[[], None],
                 frame_interval_ms: float = 16.0):
        if frame_interval_ms <= 0:
            raise ValueError(f"Frame interval must be positive, got {frame_interval_ms}")
        self.scheduler = scheduler
        self.tweener = tweener
        self.pool = pool
        self.render_frame = render_frame
        self.frame_interval_ms = float(frame_interval_ms)
        self.frames = 0
        self._hooks: list[FrameHook] = []
        self._handle: Optional[TimerHandle] = None
        self._last_ms: Optional[float] = None
        self._fps_sampler = BurstSampler(interval_s=5.0)

    @property
    def running(self) -> bool:
        return self._handle is not None

    def add_hook(self, hook: FrameHook) -> None:
        """Register ``hook(dt_seconds)`` to run every tick before drawing."""
        self._hooks.append(hook)

    def remove_hook(self, hook: FrameHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def start(self) -> None:
        if self._handle is not None:
            return
        self._last_ms = self.scheduler.now_ms()
        self._handle = self.scheduler.call_every(self.frame_interval_ms, self.tick)
        logger.info("[loop] started at %.1f ms/frame", self.frame_interval_ms)

    def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        handle.cancel()
        logger.info("[loop] stopped after %d frames", self.frames)

    def tick(self) -> None:
        now = self.scheduler.now_ms()
        last = self._last_ms if self._last_ms is not None else now
        self._last_ms = now
        dt = max(0.0, (now - last) / 1000.0)

        self.tweener.update(dt)
        if self.pool is not None:
            self.pool.sweep()
        for hook in list(self._hooks):
            try:
                hook(dt)
            except Exception:
                logger.exception("[loop] frame hook %r failed", hook)
        self.render_frame()
        self.frames += 1

        total = self._fps_sampler.record()
        if total is not None:
            logger.debug("[loop] %d frames in last %.0fs", total, self._fps_sampler.interval_s)
