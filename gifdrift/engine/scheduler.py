"""
Cancellable timer primitives shared by playback clocks, spawning and the render loop.

Two implementations:

- QtScheduler: real time, backed by precise ``QTimer`` objects on the Qt event loop.
- ManualScheduler: simulated clock advanced explicitly; used by the headless
  ``simulate`` command and by tests.

Both guarantee that a cancelled handle never invokes its callback, even when
cancellation happens from inside another callback due at the same instant.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    """Handle returned by :meth:`Scheduler.call_later` / :meth:`Scheduler.call_every`."""

    def __init__(self, callback: Callback, interval_ms: float, periodic: bool):
        self.callback = callback
        self.interval_ms = float(interval_ms)
        self.periodic = periodic
        self._active = True
        self.fired = 0

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop the timer. Idempotent."""
        if not self._active:
            return
        self._active = False
        self._release()

    def _release(self) -> None:
        """Free backend resources (overridden by backends)."""

    def _fire(self) -> None:
        if not self._active:
            return
        if not self.periodic:
            self._active = False
            self._release()
        self.fired += 1
        try:
            self.callback()
        except Exception:
            logger.exception("[scheduler] timer callback %r raised", self.callback)

    def __repr__(self) -> str:
        kind = "every" if self.periodic else "once"
        return f"TimerHandle({kind} {self.interval_ms:.0f}ms, active={self._active})"


class Scheduler(ABC):
    """Minimal timer interface used by the engine."""

    @abstractmethod
    def now_ms(self) -> float:
        """Monotonic time in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        """Run *callback* once after *delay_ms*."""

    @abstractmethod
    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle:
        """Run *callback* every *interval_ms* until cancelled."""


class _QtTimerHandle(TimerHandle):
    def __init__(self, owner: "QtScheduler", timer, callback: Callback, interval_ms: float, periodic: bool):
        super().__init__(callback, interval_ms, periodic)
        self._owner = owner
        self._timer = timer

    def _release(self) -> None:
        timer, self._timer = self._timer, None
        self._owner._live.discard(self)
        if timer is None:
            return
        try:
            timer.stop()
            timer.deleteLater()
        except RuntimeError:
            # Underlying C++ object already deleted with its parent
            pass


class QtScheduler(Scheduler):
    """Scheduler running on the Qt event loop (requires a QApplication)."""

    def __init__(self, parent=None):
        self._parent = parent
        self._t0 = time.perf_counter()
        self._live: set[_QtTimerHandle] = set()

    def now_ms(self) -> float:
        return (time.perf_counter() - self._t0) * 1000.0

    def _start(self, delay_ms: float, callback: Callback, periodic: bool) -> TimerHandle:
        from PyQt6.QtCore import Qt, QTimer

        timer = QTimer(self._parent)
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.setSingleShot(not periodic)
        handle = _QtTimerHandle(self, timer, callback, delay_ms, periodic)
        timer.timeout.connect(handle._fire)
        self._live.add(handle)
        timer.start(max(0, int(round(delay_ms))))
        return handle

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        return self._start(delay_ms, callback, periodic=False)

    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError(f"Interval must be positive, got {interval_ms}")
        return self._start(interval_ms, callback, periodic=True)

    def cancel_all(self) -> None:
        for handle in list(self._live):
            handle.cancel()

    @property
    def pending(self) -> int:
        return len(self._live)


class ManualScheduler(Scheduler):
    """Deterministic simulated clock.

    Example:
        sched = ManualScheduler()
        sched.call_later(100, tick)
        sched.advance(250)   # tick ran at t=100
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def _push(self, handle: TimerHandle, due: float) -> None:
        heapq.heappush(self._queue, (due, next(self._seq), handle))

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(callback, delay_ms, periodic=False)
        self._push(handle, self._now + max(0.0, float(delay_ms)))
        return handle

    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError(f"Interval must be positive, got {interval_ms}")
        handle = TimerHandle(callback, interval_ms, periodic=True)
        self._push(handle, self._now + float(interval_ms))
        return handle

    def run_until(self, t_ms: float) -> int:
        """Fire every callback due at or before *t_ms*. Returns callbacks run."""
        ran = 0
        while self._queue and self._queue[0][0] <= t_ms:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self._now = due
            if handle.periodic:
                # Re-arm first so a cancel() inside the callback wins.
                self._push(handle, due + handle.interval_ms)
            handle._fire()
            ran += 1
        self._now = max(self._now, float(t_ms))
        return ran

    def advance(self, delta_ms: float) -> int:
        return self.run_until(self._now + float(delta_ms))

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if h.active)
