"""Tests for configuration defaults and environment overrides."""

import os

from gifdrift.config import AppConfig, InstanceSettings, SpawnSettings


def test_defaults():
    cfg = AppConfig()
    assert cfg.mode == "pool"
    assert cfg.playback.speed == 1.0 and cfg.playback.loop is True
    assert cfg.spawn == SpawnSettings(threshold=50.0, interval_ms=10_000)
    inst = cfg.instance
    assert inst.spawn_position == (-8.0, 0.0, 0.0)
    assert inst.intro_position == (-5.0, 0.0, 0.0)
    assert (inst.intro_duration, inst.exit_duration) == (2.0, 50.0)
    assert inst.exit_boundary_x > inst.exit_x
    assert cfg.scene.fov == 75.0


def test_sections_are_independent():
    a, b = AppConfig(), AppConfig()
    a.spawn.interval_ms = 1
    assert b.spawn.interval_ms == 10_000


def test_from_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("GIFDRIFT_ASSET", "https://example.com/parrot.gif")
    monkeypatch.setenv("GIFDRIFT_MODE", "showcase")
    monkeypatch.setenv("GIFDRIFT_GALLERY_IMAGES", os.pathsep.join(["a.png", "", "b.png"]))
    monkeypatch.setenv("GIFDRIFT_SPEED", "1.5")
    monkeypatch.setenv("GIFDRIFT_LOOP", "no")
    monkeypatch.setenv("GIFDRIFT_SPAWN_THRESHOLD", "30")
    monkeypatch.setenv("GIFDRIFT_SPAWN_INTERVAL_MS", "2500")
    monkeypatch.setenv("GIFDRIFT_EXIT_DURATION", "12.5")
    monkeypatch.setenv("GIFDRIFT_FPS", "30")
    cfg = AppConfig.from_env()
    assert cfg.asset == "https://example.com/parrot.gif"
    assert cfg.mode == "showcase"
    assert cfg.gallery_images == ("a.png", "b.png")
    assert cfg.playback.speed == 1.5
    assert cfg.playback.loop is False
    assert cfg.spawn.threshold == 30.0
    assert cfg.spawn.interval_ms == 2500
    assert cfg.instance.exit_duration == 12.5
    assert cfg.scene.fps == 30


def test_from_env_tolerates_garbage(monkeypatch):
    monkeypatch.setenv("GIFDRIFT_SPEED", "fast")
    monkeypatch.setenv("GIFDRIFT_SPAWN_INTERVAL_MS", "soon")
    monkeypatch.setenv("GIFDRIFT_FPS", "-5")
    cfg = AppConfig.from_env()
    assert cfg.playback.speed == 1.0
    assert cfg.spawn.interval_ms == 10_000
    assert cfg.scene.fps == 1


def test_instance_settings_are_plain_values():
    inst = InstanceSettings(exit_x=3.0, exit_boundary_x=3.5)
    assert inst.exit_x == 3.0 and inst.plane_extent == 4.0


def test_from_env_ignores_non_finite_speed(monkeypatch):
    monkeypatch.setenv("GIFDRIFT_SPEED", "inf")
    assert AppConfig.from_env().playback.speed == 1.0
    monkeypatch.setenv("GIFDRIFT_SPEED", "nan")
    assert AppConfig.from_env().playback.speed == 1.0
    monkeypatch.setenv("GIFDRIFT_SPEED", "-3")
    assert AppConfig.from_env().playback.speed == 1.0
