"""
Configuration settings for GifDrift.

Defaults live in the dataclasses below; every knob can be overridden with a
``GIFDRIFT_*`` environment variable (read by :meth:`AppConfig.from_env`) and
the CLI applies its flags on top of that.
"""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

Vec3 = Tuple[float, float, float]


def _read_env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _read_env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if math.isfinite(value) else default


def _read_env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Playback ───────────────────────────────────────────────────────────────

@dataclass
class PlaybackSettings:
    """Per-instance GIF playback defaults."""
    speed: float = 1.0           # multiplier applied to every frame delay
    loop: bool = True


# ── Spawning ───────────────────────────────────────────────────────────────

@dataclass
class SpawnSettings:
    """Scroll-gated spawn cadence."""
    threshold: float = 50.0      # scroll fraction (0-100) that enables spawning
    interval_ms: int = 10_000    # one new instance per interval while spawning


# ── Instance motion ────────────────────────────────────────────────────────

@dataclass
class InstanceSettings:
    """Transforms and tween timings for pooled GIF instances (seconds / world units)."""
    spawn_position: Vec3 = (-8.0, 0.0, 0.0)
    intro_position: Vec3 = (-5.0, 0.0, 0.0)
    intro_duration: float = 2.0
    drift_amplitude: float = 0.5
    drift_duration: float = 2.0
    exit_x: float = 10.0
    exit_duration: float = 50.0
    exit_boundary_x: float = 10.5
    plane_extent: float = 4.0


# ── Scene ──────────────────────────────────────────────────────────────────

@dataclass
class SceneSettings:
    pool_background: Tuple[int, int, int] = (0x1A, 0x1A, 0x1A)
    gallery_background: Tuple[int, int, int] = (0x87, 0xCE, 0xEB)
    fov: float = 75.0
    camera_z: float = 5.0
    gallery_camera_z: float = 8.0
    fps: int = 60
    windowed_size: Tuple[int, int] = (1280, 720)


@dataclass
class AppConfig:
    asset: Optional[str] = None
    mode: str = "pool"           # pool | showcase | gallery
    gallery_images: Tuple[str, ...] = ()
    playback: PlaybackSettings = field(default_factory=PlaybackSettings)
    spawn: SpawnSettings = field(default_factory=SpawnSettings)
    instance: InstanceSettings = field(default_factory=InstanceSettings)
    scene: SceneSettings = field(default_factory=SceneSettings)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from defaults plus ``GIFDRIFT_*`` overrides."""
        cfg = cls()
        cfg.asset = os.environ.get("GIFDRIFT_ASSET") or None
        cfg.mode = os.environ.get("GIFDRIFT_MODE", cfg.mode)
        images = os.environ.get("GIFDRIFT_GALLERY_IMAGES", "")
        if images:
            cfg.gallery_images = tuple(p for p in images.split(os.pathsep) if p)

        speed = _read_env_float("GIFDRIFT_SPEED", cfg.playback.speed)
        if speed > 0:
            cfg.playback.speed = speed
        cfg.playback.loop = _read_env_bool("GIFDRIFT_LOOP", cfg.playback.loop)

        cfg.spawn.threshold = _read_env_float("GIFDRIFT_SPAWN_THRESHOLD", cfg.spawn.threshold)
        cfg.spawn.interval_ms = max(1, _read_env_int("GIFDRIFT_SPAWN_INTERVAL_MS", cfg.spawn.interval_ms))

        inst = cfg.instance
        inst.intro_duration = _read_env_float("GIFDRIFT_INTRO_DURATION", inst.intro_duration)
        inst.exit_duration = _read_env_float("GIFDRIFT_EXIT_DURATION", inst.exit_duration)
        inst.exit_x = _read_env_float("GIFDRIFT_EXIT_X", inst.exit_x)
        inst.exit_boundary_x = _read_env_float("GIFDRIFT_EXIT_BOUNDARY_X", inst.exit_boundary_x)

        cfg.scene.fps = max(1, _read_env_int("GIFDRIFT_FPS", cfg.scene.fps))
        return cfg
