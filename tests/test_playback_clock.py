import asyncio
import random
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.playback_clock import PlaybackClock, wrap_time, clamp_speed


def _clock(duration=2.0, snap=False, playing=True):
    clock = PlaybackClock(fps=120)
    clock.set_animation_duration(duration)
    clock.set_snap_to_frames(snap)
    clock.set_playing(playing)
    return clock


def test_continuous_advance_wraps_around_duration():
    clock = _clock(duration=2.0)

    clock.advance(1.5)
    clock.advance(1.0)

    assert clock.current_time == pytest.approx(0.5)


def test_tick_clamps_elapsed_wall_time():
    clock = _clock(duration=2.0)

    clock.tick(100.0)  # first tick after start contributes nothing
    assert clock.current_time == 0.0

    clock.tick(101.0)  # 1s gap (suspended tab) is clamped to 0.05s
    assert clock.current_time == pytest.approx(0.05)

    clock.tick(100.5)  # backwards timestamps never rewind
    assert clock.current_time == pytest.approx(0.05)


def test_speed_is_clamped_and_scales_advance():
    clock = _clock(duration=10.0)

    assert clock.set_speed(5.0) == 2.0
    clock.advance(0.5)
    assert clock.current_time == pytest.approx(1.0)

    assert clock.set_speed(0.0) == 0.1
    assert clamp_speed(-3) == 0.1


def test_paused_or_zero_duration_clock_does_not_move():
    clock = _clock(duration=2.0, playing=False)
    clock.advance(0.04)
    assert clock.current_time == 0.0

    clock = _clock(duration=0.0)
    clock.advance(0.04)
    assert clock.current_time == 0.0


def test_snap_mode_advances_whole_frames_and_carries_remainder():
    clock = _clock(duration=2.0, snap=True)
    step = 1.0 / 120

    clock.advance(step * 0.6)
    assert clock.current_time == 0.0
    assert clock.accumulator == pytest.approx(step * 0.6)

    clock.advance(step * 0.6)
    assert clock.current_time == pytest.approx(step)
    assert clock.accumulator == pytest.approx(step * 0.2)

    clock.advance(step * 2.5)
    assert clock.current_time == pytest.approx(step * 3)
    assert clock.accumulator == pytest.approx(step * 0.7)


def test_snap_mode_never_lands_on_loop_boundary():
    step = 1.0 / 120
    clock = _clock(duration=0.5, snap=True)
    clock.seek_absolute(0.5 - step)

    clock.advance(step * 0.999)
    assert clock.current_time <= 0.5 - step / 2

    clock.advance(step)
    assert 0.0 <= clock.current_time < 0.5


def test_accumulator_resets_on_setting_changes():
    clock = _clock(duration=2.0, snap=True)
    step = 1.0 / 120

    clock.advance(step * 0.5)
    assert clock.accumulator > 0
    clock.set_speed(1.5)
    assert clock.accumulator == 0.0

    clock.advance(step * 0.5)
    clock.set_playing(False)
    assert clock.accumulator == 0.0

    clock.set_playing(True)
    clock.advance(step * 0.5)
    clock.set_animation_duration(3.0)
    assert clock.accumulator == 0.0

    clock.advance(step * 0.5)
    clock.set_snap_to_frames(False)
    assert clock.accumulator == 0.0


def test_seek_clamps_then_snaps_to_nearest_frame():
    clock = _clock(duration=2.0, snap=True)

    assert clock.seek_absolute(-1.0) == 0.0
    assert clock.seek_absolute(9.0) == 2.0
    assert clock.seek_absolute(0.0126) == pytest.approx(2 / 120)

    clock.set_snap_to_frames(False)
    assert clock.seek_absolute(0.0126) == pytest.approx(0.0126)


def test_seek_with_unknown_duration_stays_at_zero():
    clock = PlaybackClock()
    assert clock.seek_absolute(1.0) == 0.0


def test_new_duration_rewraps_current_time():
    clock = _clock(duration=4.0)
    clock.seek_absolute(3.5)

    clock.set_animation_duration(2.0)
    assert clock.current_time == pytest.approx(1.5)

    clock.set_animation_duration(0.0)
    assert clock.current_time == 0.0


def test_wrap_time_never_returns_duration():
    assert wrap_time(2.0, 2.0) == 0.0
    assert wrap_time(-1e-18, 2.0) < 2.0
    assert wrap_time(2.5, 2.0) == pytest.approx(0.5)


def test_time_callbacks_fire_and_errors_are_contained():
    clock = _clock(duration=2.0)
    seen = []

    def broken(_t):
        raise RuntimeError("listener failed")

    clock.add_time_callback(broken)
    clock.add_time_callback(seen.append)
    clock.advance(0.04)

    assert seen == [pytest.approx(0.04)]


def test_frame_loop_start_stop_resets_last_timestamp():
    async def scenario():
        queue = asyncio.Queue()

        async def frames():
            return await queue.get()

        async def feed(*timestamps):
            for ts in timestamps:
                queue.put_nowait(ts)
                for _ in range(5):
                    await asyncio.sleep(0)

        clock = PlaybackClock(fps=120, frame_source=frames)
        clock.set_animation_duration(5.0)
        clock.set_snap_to_frames(False)
        clock.set_playing(True)

        clock.start()
        assert clock.is_running
        await feed(10.0, 10.02, 10.04)
        await clock.stop()
        assert not clock.is_running
        first_run = clock.current_time

        clock.start()
        await feed(50.0, 50.02)
        await clock.stop()
        return first_run, clock.current_time

    first_run, second_run = asyncio.run(scenario())

    assert first_run == pytest.approx(0.04)
    # restart at 50.0 contributes zero elapsed, only the 0.02 step counts
    assert second_run == pytest.approx(0.06)


def test_repeating_the_same_duration_changes_nothing():
    clock = _clock(duration=2.0)
    clock.advance(0.7)
    clock.set_animation_duration(2.0)
    assert clock.current_time == pytest.approx(0.7)

    snapped = _clock(duration=2.0, snap=True)
    half_frame = snapped.frame_step / 2
    snapped.advance(half_frame)
    snapped.set_animation_duration(2.0)
    snapped.advance(half_frame)
    # the carried half frame survives the repeated call
    assert snapped.current_time == pytest.approx(snapped.frame_step)


@pytest.mark.parametrize("snap", [False, True])
def test_time_stays_inside_animation_over_long_tick_runs(snap):
    rng = random.Random(7)
    clock = _clock(duration=1.37, snap=snap)
    timestamp = 100.0

    for i in range(5000):
        if i % 500 == 0:
            clock.set_speed(rng.choice([0.1, 0.25, 1.0, 1.7, 2.0]))
        timestamp += rng.uniform(0.0, 0.2)
        clock.tick(timestamp)
        assert 0.0 <= clock.current_time < clock.animation_duration


def test_frame_loop_survives_a_failing_frame():
    async def scenario():
        queue = asyncio.Queue()

        async def frames():
            item = await queue.get()
            if isinstance(item, Exception):
                raise item
            return item

        clock = PlaybackClock(fps=120, frame_source=frames)
        clock.set_animation_duration(5.0)
        clock.set_snap_to_frames(False)
        clock.set_playing(True)

        clock.start()
        for item in (10.0, 10.02, RuntimeError("host frame lost"), 20.0, 20.03):
            queue.put_nowait(item)
            await asyncio.sleep(0.05)
        running = clock.is_running
        await clock.stop()
        return running, clock.current_time

    running, current = asyncio.run(scenario())

    assert running
    # the frame after the failure restarts the elapsed baseline
    assert current == pytest.approx(0.05)
