"""
Viewer Engine

Wires the playback clock, dataset store, timebase reconciler, load
orchestrator and view preferences into one object the outer surfaces
(HTTP, CLI) talk to.

The rendering surface is external: it receives the animation reference via
``animation_ref`` and reports back through ``on_ready_duration`` and
``report_animation_error``.
"""

import logging
from typing import Optional, List, Dict

from config import FPS, PREFERENCES_PATH, DATA_BASE_URL
from core.dataset_store import DatasetStore
from core.load_orchestrator import (
    LoadOrchestrator,
    AssetHandle,
    ManifestFetcher,
    AssetFetcher,
    AnimationCallback,
)
from core.playback_clock import PlaybackClock, FrameSource
from core.preferences import ViewPreferences, PreferenceStore, JsonFilePreferenceStore
from core.timebase import TimebaseReconciler

logger = logging.getLogger("viewer")


class ViewerEngine:
    """
    One viewer instance: one clock, one dataset store, one load slot.
    """

    def __init__(
        self,
        fetch_manifest_fn: Optional[ManifestFetcher] = None,
        fetch_asset_fn: Optional[AssetFetcher] = None,
        on_animation_asset: Optional[AnimationCallback] = None,
        preference_store: Optional[PreferenceStore] = None,
        frame_source: Optional[FrameSource] = None,
        fps: int = FPS,
        strict_series: bool = False,
        base_url: str = DATA_BASE_URL,
        players: Optional[List[str]] = None,
        player_locked: bool = False,
    ):
        self.clock = PlaybackClock(fps=fps, frame_source=frame_source)
        self.store = DatasetStore(strict_series=strict_series)
        self.timebase = TimebaseReconciler(self.clock, lambda: self.store.series_duration)
        self.preferences = ViewPreferences(preference_store or JsonFilePreferenceStore(PREFERENCES_PATH))

        self.loader = LoadOrchestrator(
            self.store,
            fetch_manifest_fn=fetch_manifest_fn,
            fetch_asset_fn=fetch_asset_fn,
            base_url=base_url,
            fps=fps,
            players=players,
            player_locked=player_locked,
            on_animation_asset=on_animation_asset,
            on_playback_restart=self.restart_playback,
            on_failed=self._on_load_failed,
        )

    # =========================================================================
    # Playback controls
    # =========================================================================

    def play(self):
        self.clock.set_playing(True)

    def pause(self):
        self.clock.set_playing(False)

    def set_speed(self, speed: float) -> float:
        return self.clock.set_speed(speed)

    def set_snap_to_frames(self, snap: bool):
        self.clock.set_snap_to_frames(snap)

    def seek(self, t: float) -> float:
        return self.clock.seek_absolute(t)

    def seek_plot(self, t_data: float) -> Optional[float]:
        return self.timebase.seek_from_plot(t_data)

    def restart_playback(self):
        """Fresh content starts playing from the top."""
        self.clock.set_playing(True)
        self.clock.seek_absolute(0.0)

    # =========================================================================
    # Rendering surface callbacks
    # =========================================================================

    @property
    def animation_ref(self) -> Optional[str]:
        return self.loader.animation_ref

    def on_ready_duration(self, duration: float):
        """The rendering surface finished loading an animation of ``duration`` seconds."""
        logger.info(f"Animation ready: duration={duration:.3f}s")
        self.clock.set_animation_duration(duration)

    def report_animation_error(self, message: str):
        self.loader.report_animation_error(message)

    def _on_load_failed(self):
        self.clock.set_animation_duration(0.0)

    # =========================================================================
    # Loads
    # =========================================================================

    async def load_player(self, player: str, session: Optional[str] = None) -> bool:
        return await self.loader.load_player(player, session)

    async def load_session(self, session: str) -> bool:
        return await self.loader.load_session(session)

    async def upload_table(self, data: bytes, filename: str):
        return await self.loader.load_uploaded_table(data, filename)

    def upload_animation(self, data: bytes, filename: str) -> AssetHandle:
        return self.loader.load_uploaded_animation(data, filename)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self):
        """Start the host frame loop (requires a running event loop)."""
        self.clock.start()

    async def close(self):
        await self.clock.stop()
        self.loader.close()
        logger.info("Viewer engine closed")

    def get_state(self) -> Dict:
        return {
            "clock": self.clock.get_state(),
            "data": self.store.get_state(),
            "load": self.loader.get_state(),
            "cursor_data_time": self.timebase.cursor_data_time(),
            "preferences": self.preferences.to_dict(),
        }


# Global instance
_engine: Optional[ViewerEngine] = None


def get_viewer_engine() -> ViewerEngine:
    """Get the global ViewerEngine instance."""
    global _engine
    if _engine is None:
        _engine = ViewerEngine()
    return _engine


def set_viewer_engine(engine: Optional[ViewerEngine]):
    """Replace the global instance (tests, custom wiring)."""
    global _engine
    _engine = engine
