"""
Playback Clock

Single authoritative "current time" for the animation. Advanced once per
host frame with variable speed and optional snap-to-frames quantization.

Features:
- Speed multiplier clamped to [SPEED_MIN, SPEED_MAX]
- Per-tick wall time clamped to MAX_TICK_ELAPSED_SECONDS (tab suspension, GC stalls)
- Continuous advance with wraparound, or whole-frame advance with a sub-frame carry
- asyncio frame loop with explicit start()/stop()
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Callable, Awaitable, List

from config import FPS, SPEED_MIN, SPEED_MAX, MAX_TICK_ELAPSED_SECONDS, HOST_FRAME_RATE
from core.models import ClockState

logger = logging.getLogger("playback_clock")

FrameSource = Callable[[], Awaitable[float]]
TimeCallback = Callable[[float], None]


def wrap_time(t: float, duration: float) -> float:
    """Wrap ``t`` into [0, duration). Requires duration > 0."""
    wrapped = t % duration
    # float modulo of a tiny negative can land exactly on duration
    return wrapped if wrapped < duration else 0.0


def clamp_speed(speed: float) -> float:
    return min(SPEED_MAX, max(SPEED_MIN, float(speed)))


def make_interval_frame_source(rate: float = HOST_FRAME_RATE) -> FrameSource:
    """Host frame source that yields the event-loop clock every 1/rate seconds."""
    interval = 1.0 / rate if rate > 0 else 1.0 / 60.0

    async def next_frame() -> float:
        await asyncio.sleep(interval)
        return asyncio.get_running_loop().time()

    return next_frame


class PlaybackClock:
    """
    Owns Clock State. Only this class mutates it.

    The sub-frame accumulator is reset whenever speed, snapping, play state
    or animation duration change; the last-timestamp bookkeeping is reset
    whenever the frame loop is (re)started.
    """

    def __init__(
        self,
        fps: int = FPS,
        frame_source: Optional[FrameSource] = None,
    ):
        self.fps = fps
        self.frame_step = 1.0 / fps
        self._state = ClockState()
        self._accumulator: float = 0.0
        self._last_timestamp: Optional[float] = None

        self._frame_source: FrameSource = frame_source or make_interval_frame_source()
        self._loop_task: Optional[asyncio.Task] = None
        self._time_callbacks: List[TimeCallback] = []

    # =========================================================================
    # State accessors
    # =========================================================================

    @property
    def current_time(self) -> float:
        return self._state.current_time

    @property
    def playing(self) -> bool:
        return self._state.playing

    @property
    def speed(self) -> float:
        return self._state.speed

    @property
    def snap_to_frames(self) -> bool:
        return self._state.snap_to_frames

    @property
    def animation_duration(self) -> float:
        return self._state.animation_duration

    @property
    def accumulator(self) -> float:
        return self._accumulator

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def add_time_callback(self, callback: TimeCallback):
        """Register a listener called with the new current time after it changes."""
        self._time_callbacks.append(callback)

    def _set_time(self, t: float):
        if t == self._state.current_time:
            return
        self._state.current_time = t
        for callback in self._time_callbacks:
            try:
                callback(t)
            except Exception as e:
                logger.warning(f"Time callback error: {e}")

    def _reset_accumulator(self):
        self._accumulator = 0.0

    # =========================================================================
    # Setters
    # =========================================================================

    def set_playing(self, playing: bool):
        playing = bool(playing)
        if playing != self._state.playing:
            self._state.playing = playing
            self._reset_accumulator()

    def set_speed(self, speed: float) -> float:
        """Set the speed multiplier, clamped to [SPEED_MIN, SPEED_MAX]. Returns the applied value."""
        speed = clamp_speed(speed)
        if speed != self._state.speed:
            self._state.speed = speed
            self._reset_accumulator()
        return speed

    def set_snap_to_frames(self, snap: bool):
        snap = bool(snap)
        if snap != self._state.snap_to_frames:
            self._state.snap_to_frames = snap
            self._reset_accumulator()

    def set_animation_duration(self, duration: float):
        """
        Set the authoritative animation duration and re-wrap current time into it.
        Called by the rendering surface once per loaded animation asset.
        """
        duration = max(0.0, float(duration))
        if duration != self._state.animation_duration:
            self._state.animation_duration = duration
            self._reset_accumulator()

        if duration > 0:
            self._set_time(wrap_time(self._state.current_time, duration))
        else:
            self._set_time(0.0)

    def seek_absolute(self, t: float) -> float:
        """
        Jump to ``t`` seconds of animation time.

        Clamped to [0, animation_duration]; rounded to the nearest frame when
        snapping. Returns the stored time.
        """
        duration = self._state.animation_duration
        t = max(0.0, min(duration, float(t)))
        if self._state.snap_to_frames:
            t = round(t * self.fps) / self.fps
            # rounding up can overshoot a duration that is not a whole frame count
            t = min(duration, t)
        self._set_time(t)
        return t

    # =========================================================================
    # Advancing
    # =========================================================================

    def tick(self, timestamp: float) -> float:
        """
        Consume one host frame.

        ``timestamp`` is in seconds and must increase monotonically. The first
        tick after a (re)start contributes zero elapsed time.
        """
        if self._last_timestamp is None:
            self._last_timestamp = timestamp
        elapsed = timestamp - self._last_timestamp
        self._last_timestamp = timestamp

        elapsed = min(max(elapsed, 0.0), MAX_TICK_ELAPSED_SECONDS)
        return self.advance(elapsed)

    def advance(self, elapsed: float) -> float:
        """Advance by ``elapsed`` wall seconds (already clamped). Returns current time."""
        state = self._state
        duration = state.animation_duration
        if not state.playing or duration <= 0:
            return state.current_time

        delta = elapsed * state.speed

        if not state.snap_to_frames:
            self._set_time(wrap_time(state.current_time + delta, duration))
            return state.current_time

        self._accumulator += delta
        frames = math.floor(self._accumulator / self.frame_step)
        self._accumulator -= frames * self.frame_step

        if frames <= 0:
            return state.current_time

        nxt = wrap_time(state.current_time + frames * self.frame_step, duration)
        # never land on the loop boundary, it would show frame 0 one tick early
        nxt = min(max(0.0, nxt), max(0.0, duration - self.frame_step / 2))
        self._set_time(nxt)
        return state.current_time

    # =========================================================================
    # Frame loop
    # =========================================================================

    def start(self):
        """(Re)start the frame loop. Must be called from a running event loop."""
        self._cancel_task()
        self._last_timestamp = None
        self._loop_task = asyncio.create_task(self._frame_loop())
        logger.debug("Frame loop started")

    async def stop(self):
        """Cancel the frame loop and wait for it to exit."""
        task = self._loop_task
        self._loop_task = None
        self._last_timestamp = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Frame loop stopped")

    def _cancel_task(self):
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None

    async def _frame_loop(self):
        while True:
            try:
                timestamp = await self._frame_source()
                self.tick(timestamp)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Frame loop error: {e}")
                # skip this frame, do not spin on a failing source
                self._last_timestamp = None
                await asyncio.sleep(1.0 / HOST_FRAME_RATE)

    def get_state(self) -> dict:
        state = self._state.to_dict()
        state["fps"] = self.fps
        state["running"] = self.is_running
        return state
