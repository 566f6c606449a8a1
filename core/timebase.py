"""
Timebase Reconciler

Linear, stateless mapping between the data timebase (reference series,
channel A) and the animation timebase. Both timelines are assumed to start
at 0 and progress at a constant relative rate.
"""

import logging
from typing import Optional, Callable

from core.playback_clock import PlaybackClock

logger = logging.getLogger("timebase")


class TimebaseReconciler:
    """
    Args:
        clock: Playback clock (provides animation duration, receives seeks)
        series_duration: Callable returning the reference series duration
    """

    def __init__(self, clock: PlaybackClock, series_duration: Callable[[], float]):
        self._clock = clock
        self._series_duration = series_duration

    def map_data_time_to_animation_time(self, t_data: float) -> Optional[float]:
        """Data time -> animation time, or None when seeking is impossible."""
        anim = self._clock.animation_duration
        data = self._series_duration()
        if anim > 0 and data > 0:
            return (t_data / data) * anim
        if anim > 0:
            return t_data
        return None

    def map_animation_time_to_data_time(self, t_anim: float) -> Optional[float]:
        """Inverse of map_data_time_to_animation_time."""
        anim = self._clock.animation_duration
        data = self._series_duration()
        if anim > 0 and data > 0:
            return (t_anim / anim) * data
        if anim > 0:
            return t_anim
        return None

    def seek_from_plot(self, t_data: float) -> Optional[float]:
        """Apply a seek expressed in data time; returns the stored animation time."""
        t_anim = self.map_data_time_to_animation_time(t_data)
        if t_anim is None:
            logger.debug(f"Ignoring plot seek to {t_data}: no animation duration yet")
            return None
        return self._clock.seek_absolute(t_anim)

    def cursor_data_time(self) -> Optional[float]:
        """Current clock position expressed in the data timebase (plot cursor)."""
        return self.map_animation_time_to_data_time(self._clock.current_time)
