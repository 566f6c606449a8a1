"""
Load Orchestrator

Sequences: resolve player -> fetch manifest -> pick session -> fetch assets
-> parse table -> populate the DatasetStore.

States:
    IDLE -> FETCHING_MANIFEST -> MANIFEST_READY -> FETCHING_ASSETS -> PARSING -> READY
    FAILED is reachable from any fetching/parsing state.

Cancellation is by generation token: every new load (and every upload)
takes a fresh token, and a completion whose token is no longer current is
discarded instead of applied. The underlying I/O is never interrupted.

Any failure resets the dataset collection, channel selections, series and
animation reference to empty rather than leaving them half-applied.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Optional, List, Dict, Callable, Awaitable

from config import DATA_BASE_URL, DEFAULT_PLAYERS, FPS
from collector.manifest_fetcher import fetch_manifest, fetch_asset, with_asset_urls
from collector.table_parser import parse_table, ParsedTable
from core.dataset_store import DatasetStore
from core.errors import ViewerError, AssetFetchError, TableParseError
from core.models import PlayerManifest, SessionAssets

logger = logging.getLogger("load_orchestrator")

ManifestFetcher = Callable[[str], Awaitable[PlayerManifest]]
AssetFetcher = Callable[[str], Awaitable[bytes]]
AnimationCallback = Callable[[Optional[str]], None]


class LoadState(Enum):
    """Load pipeline state."""
    IDLE = "idle"
    FETCHING_MANIFEST = "fetching_manifest"
    MANIFEST_READY = "manifest_ready"
    FETCHING_ASSETS = "fetching_assets"
    PARSING = "parsing"
    READY = "ready"
    FAILED = "failed"


class AssetHandle:
    """
    Temporary file backing an uploaded animation asset.

    Released exactly once: when superseded by another asset or when the
    orchestrator closes.
    """

    def __init__(self, path: str, source_name: str):
        self.path = path
        self.source_name = source_name
        self._released = False

    @classmethod
    def from_bytes(cls, data: bytes, source_name: str) -> "AssetHandle":
        suffix = Path(source_name).suffix
        fd, path = tempfile.mkstemp(prefix="viewer-asset-", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return cls(path, source_name)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def uri(self) -> str:
        return Path(self.path).as_uri()

    def release(self) -> bool:
        """Delete the backing file. Returns False if it was already released."""
        if self._released:
            return False
        self._released = True
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        return True


class LoadOrchestrator:
    """
    Drives manifest/session loads and upload flows into a DatasetStore.

    Args:
        store: DatasetStore to populate (exclusively written from here)
        fetch_manifest_fn: async player -> PlayerManifest
        fetch_asset_fn: async url -> bytes
        on_animation_asset: called with the new animation reference (URL / file URI / None)
        on_playback_restart: called when a fresh load should start playing from 0
        on_failed: called after dependent state was reset by a failed load
    """

    def __init__(
        self,
        store: DatasetStore,
        fetch_manifest_fn: Optional[ManifestFetcher] = None,
        fetch_asset_fn: Optional[AssetFetcher] = None,
        base_url: str = DATA_BASE_URL,
        fps: int = FPS,
        players: Optional[List[str]] = None,
        player_locked: bool = False,
        on_animation_asset: Optional[AnimationCallback] = None,
        on_playback_restart: Optional[Callable[[], None]] = None,
        on_failed: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.base_url = base_url
        self.fps = fps
        self._fetch_manifest: ManifestFetcher = fetch_manifest_fn or partial(fetch_manifest, base_url=base_url)
        self._fetch_asset: AssetFetcher = fetch_asset_fn or fetch_asset
        self._on_animation_asset = on_animation_asset
        self._on_playback_restart = on_playback_restart
        self._on_failed = on_failed

        self.state = LoadState.IDLE
        self.last_error: Optional[str] = None

        self.players: List[str] = list(players or DEFAULT_PLAYERS)
        self.player_locked = player_locked
        self.player: Optional[str] = None
        self.manifest: Optional[PlayerManifest] = None
        self.sessions: List[str] = []
        self.session: Optional[str] = None
        self.assets: Optional[SessionAssets] = None

        self.animation_ref: Optional[str] = None
        self._animation_handle: Optional[AssetHandle] = None

        self._generation = 0

    # =========================================================================
    # Generation tokens
    # =========================================================================

    def _begin(self) -> int:
        """Invalidate any in-flight sequence and return the new token."""
        self._generation += 1
        return self._generation

    def _is_stale(self, token: int, what: str) -> bool:
        if token != self._generation:
            logger.info(f"Discarding stale {what} (load #{token}, current #{self._generation})")
            return True
        return False

    def _transition(self, state: LoadState):
        if state != self.state:
            logger.info(f"Load state: {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, error: ViewerError, clear_manifest: bool = False):
        logger.error(f"Load failed: {error.message}")
        self.last_error = error.message
        self.store.clear()
        self._publish_animation(None)
        if clear_manifest:
            self.manifest = None
            self.sessions = []
            self.session = None
            self.assets = None
        self._transition(LoadState.FAILED)
        if self._on_failed:
            self._on_failed()

    def _restart_playback(self):
        if self._on_playback_restart:
            self._on_playback_restart()

    def _publish_animation(self, reference: Optional[str], handle: Optional[AssetHandle] = None):
        previous = self._animation_handle
        self._animation_handle = handle
        self.animation_ref = reference
        if previous is not None and previous is not handle:
            previous.release()
        if self._on_animation_asset:
            self._on_animation_asset(reference)

    # =========================================================================
    # Manifest / session loads
    # =========================================================================

    async def load_player(self, player: str, session: Optional[str] = None) -> bool:
        """
        Load a player's manifest, pick a session and load its assets.

        ``session`` is kept when the manifest lists it; otherwise the
        previously selected session, the manifest default or the first
        session is used. Returns True when the load completed and was applied.
        """
        token = self._begin()
        self.player = player
        self.last_error = None
        self._transition(LoadState.FETCHING_MANIFEST)
        logger.info(f"Loading manifest for player={player!r}")

        try:
            manifest = await self._fetch_manifest(player)
        except ViewerError as e:
            if self._is_stale(token, f"manifest failure for {player!r}"):
                return False
            self._fail(e, clear_manifest=True)
            return False

        if self._is_stale(token, f"manifest for {player!r}"):
            return False

        self.manifest = manifest
        self.sessions = list(manifest.sessions)
        self.session = manifest.pick_session(session or self.session)
        if self.player_locked:
            self.players = [player]
        elif player not in self.players:
            self.players.append(player)
        self._transition(LoadState.MANIFEST_READY)

        if self.session is None:
            logger.warning(f"Manifest for {player!r} lists no sessions")
            self.assets = None
            self.store.clear()
            self._publish_animation(None)
            return True

        return await self._load_session_assets(token)

    async def load_session(self, session: str) -> bool:
        """Switch to another session of the current manifest."""
        if self.manifest is None:
            raise ValueError("No manifest loaded")
        token = self._begin()
        self.session = session
        self.last_error = None
        return await self._load_session_assets(token)

    async def _load_session_assets(self, token: int) -> bool:
        assets = with_asset_urls(self.manifest.resolve_assets(self.session), self.base_url)
        self.assets = assets
        self._publish_animation(assets.animation_url)
        self._restart_playback()

        self._transition(LoadState.FETCHING_ASSETS)
        try:
            data = await self._fetch_asset(assets.table_url)
        except ViewerError as e:
            if self._is_stale(token, f"table failure for session {assets.session!r}"):
                return False
            self._fail(e)
            return False

        if self._is_stale(token, f"table for session {assets.session!r}"):
            return False

        self._transition(LoadState.PARSING)
        try:
            parsed = await asyncio.to_thread(parse_table, data, assets.table_file, self.fps)
        except TableParseError as e:
            if self._is_stale(token, f"parse failure for session {assets.session!r}"):
                return False
            self._fail(e)
            return False

        if self._is_stale(token, f"parsed table for session {assets.session!r}"):
            return False

        self.store.replace_all(parsed.datasets)
        self._transition(LoadState.READY)
        return True

    # =========================================================================
    # Upload flows
    # =========================================================================

    async def load_uploaded_table(self, data: bytes, filename: str) -> Optional[ParsedTable]:
        """
        Parse an uploaded table and make it the current collection.

        Supersedes any in-flight network load. Returns None if this upload
        was itself superseded while parsing.

        Raises:
            TableParseError: after resetting dependent state, so the caller can
                surface it to the user
        """
        token = self._begin()
        self.last_error = None
        self._transition(LoadState.PARSING)
        try:
            parsed = await asyncio.to_thread(parse_table, data, filename, self.fps)
        except TableParseError as e:
            if not self._is_stale(token, f"upload failure for {filename!r}"):
                self._fail(e)
            raise

        if self._is_stale(token, f"upload {filename!r}"):
            return None

        self.store.replace_all(parsed.datasets)
        # JSON documents leave the clock alone
        if parsed.kind != "json":
            self._restart_playback()
        self._transition(LoadState.READY)
        return parsed

    def load_uploaded_animation(self, data: bytes, filename: str) -> AssetHandle:
        """Back an uploaded animation with a temp file and hand it to the rendering surface."""
        handle = AssetHandle.from_bytes(data, filename)
        self._publish_animation(handle.uri, handle)
        self._restart_playback()
        logger.info(f"Uploaded animation {filename!r} ({len(data)} bytes)")
        return handle

    def report_animation_error(self, message: str):
        """The rendering surface could not load the current animation asset.

        Ends the load that published it: its pending table fetch is discarded.
        """
        self._begin()
        self._fail(AssetFetchError(f"animation: {message}"))

    def close(self):
        """Discard in-flight loads and release transient assets."""
        self._begin()
        if self._animation_handle is not None:
            self._animation_handle.release()
            self._animation_handle = None

    def get_state(self) -> Dict:
        return {
            "state": self.state.value,
            "last_error": self.last_error,
            "players": list(self.players),
            "player_locked": self.player_locked,
            "player": self.player,
            "sessions": list(self.sessions),
            "session": self.session,
            "manifest": self.manifest.to_dict() if self.manifest else None,
            "assets": self.assets.to_dict() if self.assets else None,
            "animation_ref": self.animation_ref,
        }
