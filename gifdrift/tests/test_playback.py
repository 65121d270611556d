"""Tests for the per-instance playback clock."""

import pytest

from gifdrift.content.composite import CompositeBuffer
from gifdrift.engine.playback import ClockState, PlaybackClock


def _clock(store, scheduler, **kwargs):
    visited = []
    clock = PlaybackClock(store, CompositeBuffer(store), scheduler, on_frame=visited.append, **kwargs)
    return clock, visited


class TestTicking:
    def test_scenario_three_frames_after_250ms(self, make_store, scheduler):
        """Ticks at t=0, 100, 200 leave the clock on frame 2."""
        clock, visited = _clock(make_store(durations=(100, 100, 100)), scheduler)
        clock.start()
        scheduler.run_until(250)
        assert visited == [0, 1, 2]
        assert clock.current_index == 2
        assert clock.running

    def test_first_tick_is_synchronous(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler)
        clock.start()
        assert visited == [0]
        assert clock.buffer.cursor == 0

    def test_loop_visits_each_index_once_per_cycle(self, make_store, scheduler):
        store = make_store(durations=(30, 70, 10, 90))
        clock, visited = _clock(store, scheduler)
        clock.start()
        scheduler.run_until(store.total_duration_ms * 3 - 1)
        assert visited == [0, 1, 2, 3] * 3

    def test_delays_follow_frame_durations(self, make_store, scheduler):
        clock, visited = _clock(make_store(durations=(50, 200)), scheduler)
        clock.start()
        scheduler.run_until(49)
        assert visited == [0]
        scheduler.run_until(50)
        assert visited == [0, 1]
        scheduler.run_until(249)
        assert visited == [0, 1]
        scheduler.run_until(250)
        assert visited == [0, 1, 0]

    def test_speed_divides_delay(self, make_store, scheduler):
        clock, visited = _clock(make_store(durations=(100, 100, 100)), scheduler, speed=2.0)
        clock.start()
        scheduler.run_until(100)
        assert visited == [0, 1, 2]

    def test_speed_change_applies_to_next_delay(self, make_store, scheduler):
        clock, visited = _clock(make_store(durations=(100, 100, 100)), scheduler)
        clock.start()
        clock.speed = 4.0  # pending 100 ms tick is kept
        scheduler.run_until(99)
        assert visited == [0]
        scheduler.run_until(100)
        assert visited == [0, 1]
        scheduler.run_until(125)
        assert visited == [0, 1, 2]

    @pytest.mark.parametrize("speed", [0, -1.0, float("inf"), float("nan")])
    def test_invalid_speed(self, make_store, scheduler, speed):
        with pytest.raises(ValueError, match="positive"):
            PlaybackClock(make_store(), CompositeBuffer(make_store()), scheduler, speed=speed)

    def test_infinite_speed_rejected_while_running(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler)
        clock.start()
        with pytest.raises(ValueError):
            clock.speed = float("inf")
        assert clock.speed == 1.0
        scheduler.advance(1)
        assert visited == [0]
        assert scheduler.now_ms() == 1.0


class TestStopAndLoop:
    def test_no_loop_stops_on_last_frame(self, make_store, scheduler):
        finished = []
        clock, visited = _clock(make_store(), scheduler, loop=False)
        clock.on_finished = lambda: finished.append(True)
        clock.start()
        scheduler.run_until(10_000)
        assert visited == [0, 1, 2]
        assert clock.state is ClockState.STOPPED
        assert clock.current_index == 2
        assert finished == [True]
        assert scheduler.pending == 0

    def test_restart_after_finish_replays_from_zero(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler, loop=False)
        clock.start()
        scheduler.run_until(1000)
        clock.start()
        assert visited[-1] == 0

    def test_stop_cancels_pending_tick(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler)
        clock.start()
        assert clock.pending
        clock.stop()
        scheduler.run_until(10_000)
        assert visited == [0]
        assert not clock.pending

    def test_stop_is_idempotent(self, make_store, scheduler):
        clock, _ = _clock(make_store(), scheduler)
        clock.stop()
        clock.start()
        clock.stop()
        clock.stop()
        assert clock.state is ClockState.STOPPED

    def test_start_while_running_is_noop(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler)
        clock.start()
        clock.start()
        assert visited == [0]
        assert scheduler.pending == 1

    def test_resume_continues_from_next_frame(self, make_store, scheduler):
        clock, visited = _clock(make_store(), scheduler)
        clock.start()
        scheduler.run_until(100)
        clock.stop()
        clock.start()
        assert visited == [0, 1, 2]

    def test_stop_from_frame_observer(self, make_store, scheduler):
        store = make_store()
        clock = PlaybackClock(store, CompositeBuffer(store), scheduler)
        clock.on_frame = lambda index: clock.stop() if index == 1 else None
        clock.start()
        scheduler.run_until(1000)
        assert clock.current_index == 1
        assert not clock.running
        assert scheduler.pending == 0
