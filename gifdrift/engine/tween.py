"""Property tweening driven by the render tick.

A :class:`Tweener` owns every in-flight :class:`Tween`. Each render tick calls
``update(dt)`` which interpolates the tweened attributes with an easing curve.
Tweens move transforms only; what happens on completion is decided by the
``on_complete`` callback's owner.

Example:
    tweener = Tweener()
    tw = tweener.animate(surface, {"position.x": 10.0}, duration=50.0, ease="linear",
                         on_complete=lambda: print("done"))

    # In update loop (60 FPS):
    tweener.update(1 / 60)

    tweener.cancel(tw)   # on_complete will never run
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

Ease = Callable[[float], float]


def _power_in(p: int) -> Ease:
    return lambda t: t ** p


def _power_out(p: int) -> Ease:
    return lambda t: 1.0 - (1.0 - t) ** p


def _power_in_out(p: int) -> Ease:
    def ease(t: float) -> float:
        if t < 0.5:
            return (2.0 ** (p - 1)) * t ** p
        return 1.0 - ((-2.0 * t + 2.0) ** p) / 2.0
    return ease


EASINGS: dict[str, Ease] = {
    "linear": lambda t: t,
    "none": lambda t: t,
    "sine.in": lambda t: 1.0 - math.cos(t * math.pi / 2.0),
    "sine.out": lambda t: math.sin(t * math.pi / 2.0),
    "sine.inOut": lambda t: -(math.cos(math.pi * t) - 1.0) / 2.0,
}
# power1 = quadratic, power2 = cubic, power3 = quartic
for _n in (1, 2, 3):
    EASINGS[f"power{_n}.in"] = _power_in(_n + 1)
    EASINGS[f"power{_n}.out"] = _power_out(_n + 1)
    EASINGS[f"power{_n}.inOut"] = _power_in_out(_n + 1)


def resolve_ease(name: str | Ease) -> Ease:
    if callable(name):
        return name
    try:
        return EASINGS[name]
    except KeyError:
        raise ValueError(f"Unknown ease {name!r}; expected one of {sorted(EASINGS)}") from None


def _resolve_path(target: Any, path: str) -> tuple[Any, str]:
    """Return (object, attribute) for a dotted path like ``position.x``."""
    parts = path.split(".")
    obj = target
    for part in parts[:-1]:
        obj = getattr(obj, part)
    attr = parts[-1]
    if not hasattr(obj, attr):
        raise AttributeError(f"{type(obj).__name__} has no attribute {attr!r} (path {path!r})")
    return obj, attr


class Tween:
    """One running interpolation. Create through :meth:`Tweener.animate`."""

    def __init__(
        self,
        owner: "Tweener",
        target: Any,
        props: Mapping[str, float],
        *,
        duration: float,
        ease: str | Ease = "power1.out",
        repeat: int = 0,
        yoyo: bool = False,
        on_complete: Optional[Callable[[], None]] = None,
        label: str = "",
    ):
        if duration < 0:
            raise ValueError(f"Duration must be non-negative, got {duration}")
        if repeat < -1:
            raise ValueError(f"repeat must be -1 (infinite) or >= 0, got {repeat}")
        if repeat == -1 and duration == 0:
            raise ValueError("An infinitely repeating tween needs a positive duration")
        self._owner = owner
        self.target = target
        self.duration = float(duration)
        self.ease_name = ease if isinstance(ease, str) else getattr(ease, "__name__", "custom")
        self._ease = resolve_ease(ease)
        self.repeat = repeat
        self.yoyo = yoyo
        self.on_complete = on_complete
        self.label = label or "tween"

        self._tracks: list[tuple[Any, str, float, float]] = []
        for path, end in props.items():
            obj, attr = _resolve_path(target, path)
            self._tracks.append((obj, attr, float(getattr(obj, attr)), float(end)))

        self.elapsed = 0.0
        self.iteration = 0
        self.reversed = False
        self.active = True
        self.completed = False

    def kill(self) -> None:
        """Cancel without completing. Idempotent."""
        self._owner.cancel(self)

    def _render(self, progress: float) -> None:
        p = 1.0 - progress if self.reversed else progress
        eased = self._ease(min(1.0, max(0.0, p)))
        for obj, attr, start, end in self._tracks:
            setattr(obj, attr, start + (end - start) * eased)

    def _step(self, dt: float) -> bool:
        """Advance by *dt* seconds; return True once the tween has finished."""
        if self.duration == 0.0:
            self._render(1.0)
            return True
        self.elapsed += max(0.0, dt)
        while self.elapsed >= self.duration:
            if self.repeat != -1 and self.iteration >= self.repeat:
                self._render(1.0)
                return True
            self.elapsed -= self.duration
            self.iteration += 1
            if self.yoyo:
                self.reversed = not self.reversed
        self._render(self.elapsed / self.duration)
        return False

    @property
    def progress(self) -> float:
        if self.duration == 0.0:
            return 1.0
        return min(1.0, self.elapsed / self.duration)

    def __repr__(self) -> str:
        return (f"Tween({self.label}, {self.duration:.2f}s, ease={self.ease_name}, "
                f"iter={self.iteration}, active={self.active})")


class Tweener:
    """Owns and advances all tweens."""

    def __init__(self):
        self._tweens: list[Tween] = []

    def animate(
        self,
        target: Any,
        props: Mapping[str, float],
        *,
        duration: float,
        ease: str | Ease = "power1.out",
        repeat: int = 0,
        yoyo: bool = False,
        on_complete: Optional[Callable[[], None]] = None,
        label: str = "",
    ) -> Tween:
        """Interpolate *props* of *target* to the given end values."""
        tween = Tween(self, target, props, duration=duration, ease=ease, repeat=repeat,
                      yoyo=yoyo, on_complete=on_complete, label=label)
        self._tweens.append(tween)
        return tween

    def cancel(self, tween: Optional[Tween]) -> None:
        if tween is None or not tween.active:
            return
        tween.active = False
        try:
            self._tweens.remove(tween)
        except ValueError:
            pass

    def update(self, dt: float) -> int:
        """Advance every tween by *dt* seconds. Returns how many completed."""
        finished = 0
        for tween in list(self._tweens):
            if not tween.active:
                continue
            if not tween._step(dt):
                continue
            tween.active = False
            tween.completed = True
            self._tweens.remove(tween)
            finished += 1
            if tween.on_complete is not None:
                try:
                    tween.on_complete()
                except Exception:
                    logger.exception("[tween] on_complete of %s raised", tween.label)
        return finished

    def clear(self) -> None:
        for tween in list(self._tweens):
            self.cancel(tween)

    @property
    def active(self) -> tuple[Tween, ...]:
        return tuple(self._tweens)

    def __len__(self) -> int:
        return len(self._tweens)
