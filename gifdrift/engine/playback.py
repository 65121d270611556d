"""Per-instance GIF playback clock.

Each clock advances its own frame index on its own timer: the delay after a
frame is that frame's declared duration divided by the speed multiplier, so
instances naturally drift out of phase with each other and with the render
tick.

States::

    STOPPED --start()--> RUNNING   (first frame applied immediately)
    RUNNING --stop()---> STOPPED   (pending tick cancelled)
    RUNNING --end of sequence, loop=False--> STOPPED
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Callable, Optional

from ..content.composite import CompositeBuffer
from ..content.frames import FrameStore
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


def validate_speed(speed: float) -> float:
    """Return *speed* as a float; it must be finite and greater than zero."""
    speed = float(speed)
    if not (math.isfinite(speed) and speed > 0):
        raise ValueError(f"Playback speed must be positive and finite, got {speed}")
    return speed


class ClockState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class PlaybackClock:
    """Drives a :class:`CompositeBuffer` through a :class:`FrameStore`.

    Args:
        store: Frames to play
        buffer: Compositor receiving ``apply(index)`` on every tick
        scheduler: Timer source for the per-frame delays
        speed: Delay divisor, must be > 0
        loop: Wrap to frame 0 at the end (True) or stop on the last frame
        on_frame: Optional observer called with each applied index
        on_finished: Optional callback when a non-looping run ends
    """

    def __init__(
        self,
        store: FrameStore,
        buffer: CompositeBuffer,
        scheduler: Scheduler,
        *,
        speed: float = 1.0,
        loop: bool = True,
        on_frame: Optional[Callable[[int], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
        label: str = "",
    ):
        self.store = store
        self.buffer = buffer
        self.scheduler = scheduler
        self._speed = validate_speed(speed)
        self.loop = loop
        self.on_frame = on_frame
        self.on_finished = on_finished
        self.label = label or "clock"

        self.state = ClockState.STOPPED
        self.current_index = 0
        self.ticks = 0
        self._next_index = 0
        self._finished = False
        self._handle: Optional[TimerHandle] = None

    @property
    def speed(self) -> float:
        return self._speed

    @speed.setter
    def speed(self, value: float) -> None:
        # Applies from the next scheduled delay; the pending tick is left alone.
        self._speed = validate_speed(value)

    @property
    def running(self) -> bool:
        return self.state is ClockState.RUNNING

    @property
    def frame_count(self) -> int:
        return self.store.frame_count

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active

    def start(self) -> None:
        """Begin (or resume) playback. No-op while already running."""
        if self.running:
            return
        if self._finished:
            self._next_index = 0
            self._finished = False
        self.state = ClockState.RUNNING
        logger.debug("[playback] %s start at frame %d (speed=%.2f loop=%s)",
                     self.label, self._next_index, self._speed, self.loop)
        self._tick()

    def stop(self) -> None:
        """Halt playback and cancel the pending tick. Idempotent."""
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        if self.running:
            self.state = ClockState.STOPPED
            logger.debug("[playback] %s stopped at frame %d", self.label, self.current_index)

    def _tick(self) -> None:
        self._handle = None
        if not self.running:
            return

        index = self._next_index
        frame = self.store[index]
        self.buffer.apply(index)
        self.current_index = index
        self.ticks += 1
        logger.debug("[playback.trace] %s frame %d/%d", self.label, index, self.frame_count)
        if self.on_frame is not None:
            self.on_frame(index)

        next_index = index + 1
        if next_index >= self.frame_count:
            if not self.loop:
                self.state = ClockState.STOPPED
                self._finished = True
                logger.debug("[playback] %s reached end (no loop)", self.label)
                if self.on_finished is not None:
                    self.on_finished()
                return
            next_index = 0
        self._next_index = next_index

        if not self.running:  # stopped from on_frame
            return
        delay_ms = frame.duration_ms / self._speed
        self._handle = self.scheduler.call_later(delay_ms, self._tick)
