"""Tests for pooled instance lifecycle."""

import logging

import pytest

from gifdrift.config import InstanceSettings
from gifdrift.engine.pool import InstancePool, InstanceState
from gifdrift.engine.tween import Tweener
from gifdrift.scene.geometry import Material, PlaneGeometry
from gifdrift.scene.graph import Scene


@pytest.fixture
def env(make_store, scheduler):
    scene = Scene()
    tweener = Tweener()
    pool = InstancePool(scene, scheduler, tweener, InstanceSettings())
    geometry = PlaneGeometry(4.0, 4.0)
    material = Material(None, transparent=True, double_sided=True)
    pool.set_frame_store(make_store(durations=(100, 100, 100)))
    pool.set_template(geometry, material)
    return pool, scene, tweener, scheduler


def _activate(tweener):
    tweener.update(InstanceSettings().intro_duration)


class TestCreate:
    def test_not_ready_logs_and_returns_none(self, scheduler, caplog):
        scene = Scene()
        pool = InstancePool(scene, scheduler, Tweener())
        with caplog.at_level(logging.WARNING, logger="gifdrift.engine.pool"):
            assert pool.create() is None
        assert "ResourceNotReadyWarning" in caplog.text
        assert "frame store" in caplog.text
        assert len(pool) == 0 and len(scene) == 0
        assert pool.last_warning is not None

    def test_missing_template_only(self, scheduler, make_store, caplog):
        pool = InstancePool(Scene(), scheduler, Tweener())
        pool.set_frame_store(make_store())
        with caplog.at_level(logging.WARNING):
            assert pool.create() is None
        assert "template geometry" in caplog.text

    def test_spawned_off_scene_with_zero_scale(self, env):
        pool, scene, tweener, _ = env
        inst = pool.create()
        assert inst.state is InstanceState.SPAWNING
        assert inst.position == (-8.0, 0.0, 0.0)
        assert inst.surface.scale == (0.0, 0.0, 0.0)
        assert inst.surface in scene
        assert inst.intro is not None and inst.intro.active
        assert not inst.clock.running
        assert inst in pool

    def test_shares_geometry_and_clones_material(self, env):
        pool, _, _, _ = env
        geometry, material = pool.template
        a, b = pool.create(), pool.create()
        assert a.surface.geometry is geometry and b.surface.geometry is geometry
        assert a.surface.material is not material
        assert a.surface.material is not b.surface.material
        assert a.surface.material.texture is a.buffer.texture
        assert a.buffer is not b.buffer
        assert a.buffer.store is b.buffer.store is pool.frame_store


class TestActivate:
    def test_intro_completion_starts_drift_exit_and_playback(self, env):
        pool, _, tweener, _ = env
        inst = pool.create()
        _activate(tweener)
        assert inst.state is InstanceState.ACTIVE
        assert inst.position.to_tuple() == pytest.approx((-5.0, 0.0, 0.0))
        assert inst.surface.scale.to_tuple() == pytest.approx((1.0, 1.0, 1.0))
        assert inst.intro is None
        assert inst.drift.active and inst.exit.active
        assert inst.clock.running and inst.playing
        assert inst.buffer.cursor == 0

    def test_drift_stays_within_amplitude(self, env):
        pool, _, tweener, _ = env
        inst = pool.create()
        _activate(tweener)
        for _ in range(200):
            tweener.update(0.05)
            assert -1e-9 <= inst.position.y <= 0.5 + 1e-9

    def test_exit_completion_retires(self, env):
        pool, scene, tweener, scheduler = env
        inst = pool.create()
        _activate(tweener)
        tweener.update(InstanceSettings().exit_duration)
        assert inst.state is InstanceState.RETIRED
        assert inst.position.x == pytest.approx(10.0)
        assert len(pool) == 0
        assert inst.surface not in scene
        assert len(tweener) == 0
        assert not inst.clock.running


class TestRetire:
    def test_releases_owned_resources_only(self, env):
        pool, scene, tweener, _ = env
        geometry, material = pool.template
        inst = pool.create()
        _activate(tweener)
        assert pool.retire(inst) is True
        assert inst.buffer.disposed
        assert inst.surface.material.disposed
        assert not geometry.disposed
        assert not material.disposed
        assert inst.surface not in scene
        assert len(tweener) == 0
        assert inst.intro is None and inst.drift is None and inst.exit is None

    def test_idempotent(self, env):
        pool, _, _, _ = env
        inst = pool.create()
        assert pool.retire(inst) is True
        assert pool.retire(inst) is False
        assert pool.retired == 1
        assert pool.release_failures == 0

    def test_failing_step_does_not_block_others(self, env, caplog):
        pool, scene, _, _ = env
        broken, sibling = pool.create(), pool.create()

        def explode():
            raise RuntimeError("driver lost")

        broken.clock.stop = explode
        with caplog.at_level(logging.WARNING):
            assert pool.clear_all() == 2
        assert "driver lost" in caplog.text
        assert pool.release_failures == 1
        assert broken.state is InstanceState.RETIRED
        assert broken.buffer.disposed and sibling.buffer.disposed
        assert len(scene) == 0

    def test_no_apply_after_retirement_mid_tick(self, env):
        """Exit finishing while a playback tick is pending cancels that tick."""
        pool, _, tweener, scheduler = env
        inst = pool.create()
        _activate(tweener)
        scheduler.advance(150)  # frame 1 applied at t=100, next tick pending at t=200
        assert inst.clock.pending

        applied = []
        original = inst.buffer.apply
        inst.buffer.apply = lambda index: (applied.append(index), original(index))

        tweener.update(InstanceSettings().exit_duration)
        assert inst.state is InstanceState.RETIRED
        assert not inst.clock.pending
        scheduler.advance(10_000)
        assert applied == []


class TestBulk:
    def test_clear_all_counts(self, env):
        pool, scene, _, _ = env
        for _ in range(3):
            pool.create()
        assert pool.clear_all() == 3
        assert len(pool) == 0 and len(scene) == 0
        assert pool.clear_all() == 0

    def test_sweep_retires_past_boundary(self, env):
        pool, _, _, _ = env
        inside, outside = pool.create(), pool.create()
        outside.position.x = 10.6
        inside.position.x = 10.4
        assert pool.sweep() == 1
        assert outside.state is InstanceState.RETIRED
        assert inside.state is InstanceState.SPAWNING
        assert pool.swept == 1

    def test_replacing_frame_store_retires_dependents(self, env, make_store):
        pool, _, _, _ = env
        old = [pool.create(), pool.create()]
        new_store = make_store(durations=(40, 40))
        assert pool.set_frame_store(new_store) == 2
        assert all(inst.state is InstanceState.RETIRED for inst in old)
        inst = pool.create()
        assert inst.buffer.store is new_store

    def test_live_snapshot_and_stats(self, env):
        pool, _, tweener, _ = env
        a = pool.create()
        pool.create()
        _activate(tweener)
        pool.create()
        snapshot = pool.live
        pool.retire(a)
        assert len(snapshot) == 3 and len(pool.live) == 2
        stats = pool.stats()
        assert stats["live"] == 2
        assert stats["states"] == {"active": 1, "spawning": 1}
        assert stats["created"] == 3 and stats["retired"] == 1


class TestLoadAsset:
    def test_builds_template_from_aspect(self, scheduler, make_store):
        pool = InstancePool(Scene(), scheduler, Tweener())
        assert pool.load_asset(make_store(width=8, height=4)) == 0
        geometry, material = pool.template
        assert (geometry.width, geometry.height) == (4.0, 2.0)
        assert pool.create() is not None

    def test_replacement_releases_previous_template(self, env, make_store):
        pool, scene, _, _ = env
        old_geometry, old_material = pool.template
        live = [pool.create(), pool.create()]
        assert pool.load_asset(make_store(durations=(40, 40))) == 2
        assert all(inst.state is InstanceState.RETIRED for inst in live)
        assert old_geometry.disposed and old_material.disposed
        new_geometry, new_material = pool.template
        assert not new_geometry.disposed and not new_material.disposed
        assert len(scene) == 0
        assert pool.release_failures == 0
