"""Pooled GIF instances and their lifecycle.

Every instance walks one sub-state machine::

    SPAWNING --intro done--> ACTIVE --exit done / out of bounds / clear--> RETIRING --> RETIRED

Each transition is a named method on :class:`InstancePool`. Tweens only move
transforms; their completion callbacks call ``_activate`` or ``retire`` and
nothing else. Every exit path (exit tween, boundary sweep, ``clear_all``,
FrameStore replacement) ends in :meth:`InstancePool.retire`, the single place
that releases an instance's resources.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config import InstanceSettings, PlaybackSettings
from ..content.composite import CompositeBuffer
from ..content.frames import FrameStore
from ..logging_utils import BurstSampler
from ..scene.geometry import Material, PlaneGeometry, Surface, Vector3, build_template
from ..scene.graph import Scene
from .playback import PlaybackClock
from .scheduler import Scheduler
from .tween import Tween, Tweener

logger = logging.getLogger(__name__)


class ResourceNotReadyWarning(UserWarning):
    """create() was asked for an instance before the asset or template existed."""


class InstanceState(Enum):
    SPAWNING = "spawning"
    ACTIVE = "active"
    RETIRING = "retiring"
    RETIRED = "retired"


@dataclass(eq=False)
class Instance:
    id: int
    surface: Surface
    buffer: CompositeBuffer
    clock: PlaybackClock
    intro: Optional[Tween] = None
    drift: Optional[Tween] = None
    exit: Optional[Tween] = None
    playing: bool = False
    state: InstanceState = InstanceState.SPAWNING

    @property
    def position(self) -> Vector3:
        return self.surface.position

    @property
    def alive(self) -> bool:
        return self.state in (InstanceState.SPAWNING, InstanceState.ACTIVE)

    def __repr__(self) -> str:
        return f"Instance({self.id}, {self.state.value}, pos={self.surface.position})"


class InstancePool:
    """Creates, tracks and retires GIF instances.

    Args:
        scene: Scene the instance surfaces are attached to
        scheduler: Timer source for the playback clocks
        tweener: Animation engine for intro/drift/exit
        settings: Spawn/intro/drift/exit transforms and timings
        playback: Speed and loop flag for new clocks
    """

    def __init__(
        self,
        scene: Scene,
        scheduler: Scheduler,
        tweener: Tweener,
        settings: Optional[InstanceSettings] = None,
        playback: Optional[PlaybackSettings] = None,
    ):
        self.scene = scene
        self.scheduler = scheduler
        self.tweener = tweener
        self.settings = settings or InstanceSettings()
        self.playback = playback or PlaybackSettings()

        self._store: Optional[FrameStore] = None
        self._geometry: Optional[PlaneGeometry] = None
        self._material: Optional[Material] = None
        self._live: dict[int, Instance] = {}
        self._ids = itertools.count(1)
        self._tick_sampler = BurstSampler(interval_s=5.0)

        self.created = 0
        self.retired = 0
        self.swept = 0
        self.release_failures = 0
        self.last_warning: Optional[ResourceNotReadyWarning] = None

    # ── shared resources ────────────────────────────────────────────────

    @property
    def frame_store(self) -> Optional[FrameStore]:
        return self._store

    @property
    def template(self) -> tuple[Optional[PlaneGeometry], Optional[Material]]:
        return self._geometry, self._material

    def set_frame_store(self, store: Optional[FrameStore]) -> int:
        """Swap the shared FrameStore, retiring every dependent instance first."""
        retired = self.clear_all()
        self._store = store
        logger.info("[pool] frame store set to %r (retired %d)", store, retired)
        return retired

    def set_template(self, geometry: PlaneGeometry, material: Material) -> None:
        """Set the geometry shared by new instances and the material they clone."""
        self._geometry = geometry
        self._material = material

    def load_asset(self, store: FrameStore) -> int:
        """Swap in *store* with a template plane sized to its aspect ratio.

        Dependent instances are retired first, then the previous template
        geometry and material are released. Returns how many were retired.
        """
        geometry, material = build_template(store.aspect_ratio, self.settings.plane_extent)
        previous = (self._geometry, self._material)
        retired = self.set_frame_store(store)
        self.set_template(geometry, material)
        for resource in previous:
            if resource is None:
                continue
            try:
                resource.dispose()
            except Exception as e:
                self.release_failures += 1
                logger.warning("[pool] releasing previous template %r failed: %s", resource, e)
        return retired

    # ── transitions ─────────────────────────────────────────────────────

    def create(self) -> Optional[Instance]:
        """Spawn one instance off-scene and start its intro.

        Returns None (after logging a warning) while the FrameStore or the
        template is missing; spawn timing may legitimately race the asset load.
        """
        missing = [name for name, value in (("frame store", self._store),
                                            ("template geometry", self._geometry),
                                            ("template material", self._material))
                   if value is None]
        if missing:
            self.last_warning = ResourceNotReadyWarning(f"cannot create instance, missing {', '.join(missing)}")
            logger.warning("[pool] %s: %s", type(self.last_warning).__name__, self.last_warning)
            return None

        s = self.settings
        iid = next(self._ids)
        label = f"instance-{iid}"
        buffer = CompositeBuffer(self._store, label=label)
        material = self._material.clone(texture=buffer.texture)
        surface = Surface(self._geometry, material, name=label)
        surface.position.set(*s.spawn_position)
        surface.scale.set(0.0, 0.0, 0.0)
        clock = PlaybackClock(self._store, buffer, self.scheduler,
                              speed=self.playback.speed, loop=self.playback.loop,
                              on_frame=self._on_playback_frame, label=label)
        instance = Instance(id=iid, surface=surface, buffer=buffer, clock=clock)

        self._live[iid] = instance
        self.scene.add(surface)
        ix, iy, iz = s.intro_position
        instance.intro = self.tweener.animate(
            surface,
            {"position.x": ix, "position.y": iy, "position.z": iz,
             "scale.x": 1.0, "scale.y": 1.0, "scale.z": 1.0},
            duration=s.intro_duration,
            ease="power2.out",
            on_complete=self._transition(self._activate, instance),
            label=f"{label}.intro",
        )
        self.created += 1
        logger.info("[pool] created %s (%d live)", label, len(self._live))
        return instance

    def _activate(self, instance: Instance) -> None:
        """Intro finished: start drift, exit and playback together."""
        if instance.state is not InstanceState.SPAWNING:
            return
        s = self.settings
        surface = instance.surface
        instance.intro = None
        instance.state = InstanceState.ACTIVE
        instance.drift = self.tweener.animate(
            surface, {"position.y": surface.position.y + s.drift_amplitude},
            duration=s.drift_duration, ease="sine.inOut", repeat=-1, yoyo=True,
            label=f"{surface.name}.drift",
        )
        instance.exit = self.tweener.animate(
            surface, {"position.x": s.exit_x},
            duration=s.exit_duration, ease="linear",
            on_complete=self._transition(self.retire, instance),
            label=f"{surface.name}.exit",
        )
        instance.clock.start()
        instance.playing = True
        logger.debug("[pool] %s active", surface.name)

    def retire(self, instance: Instance) -> bool:
        """Release everything *instance* owns. Idempotent; returns True if it did work.

        Each release step is isolated: a failure is logged and the remaining
        steps still run.
        """
        if instance.state in (InstanceState.RETIRING, InstanceState.RETIRED):
            return False
        instance.state = InstanceState.RETIRING
        instance.playing = False

        steps: list[tuple[str, Callable[[], object]]] = [
            ("clock", instance.clock.stop),
            ("intro tween", lambda: self.tweener.cancel(instance.intro)),
            ("drift tween", lambda: self.tweener.cancel(instance.drift)),
            ("exit tween", lambda: self.tweener.cancel(instance.exit)),
            ("buffer reset", instance.buffer.reset),
            ("texture", instance.buffer.dispose),
            ("scene", lambda: self.scene.remove(instance.surface)),
            ("material", instance.surface.material.dispose),
        ]
        for name, step in steps:
            try:
                step()
            except Exception as e:
                self.release_failures += 1
                logger.warning("[pool] instance-%d: releasing %s failed: %s", instance.id, name, e)

        instance.intro = instance.drift = instance.exit = None
        self._live.pop(instance.id, None)
        instance.state = InstanceState.RETIRED
        self.retired += 1
        logger.info("[pool] retired instance-%d (%d live)", instance.id, len(self._live))
        return True

    def clear_all(self) -> int:
        """Retire every live instance; returns how many were retired."""
        count = 0
        for instance in list(self._live.values()):
            if self.retire(instance):
                count += 1
        if count:
            logger.info("[pool] cleared %d instances", count)
        return count

    def sweep(self) -> int:
        """Retire instances that crossed the exit boundary. Call once per render tick."""
        boundary = self.settings.exit_boundary_x
        count = 0
        for instance in list(self._live.values()):
            if instance.surface.position.x > boundary and self.retire(instance):
                count += 1
        if count:
            self.swept += count
            logger.debug("[pool] sweep retired %d past x=%.2f", count, boundary)
        return count

    # ── introspection ───────────────────────────────────────────────────

    @property
    def live(self) -> tuple[Instance, ...]:
        return tuple(self._live.values())

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, instance: object) -> bool:
        return isinstance(instance, Instance) and self._live.get(instance.id) is instance

    def stats(self) -> dict:
        states: dict[str, int] = {}
        for instance in self._live.values():
            states[instance.state.value] = states.get(instance.state.value, 0) + 1
        return {
            "live": len(self._live),
            "states": states,
            "created": self.created,
            "retired": self.retired,
            "swept": self.swept,
            "release_failures": self.release_failures,
            "frame_store": repr(self._store) if self._store is not None else None,
        }

    # ── helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _transition(method: Callable[[Instance], object], instance: Instance) -> Callable[[], None]:
        def fire() -> None:
            method(instance)
        return fire

    def _on_playback_frame(self, index: int) -> None:
        total = self._tick_sampler.record()
        if total is not None:
            logger.debug("[pool] %d playback ticks across %d instances", total, len(self._live))
