"""
Motion Sync Viewer - Manifest & Asset Fetcher
Fetches per-player manifests and session assets over HTTP.

Layout under DATA_BASE_URL:
- data/<player>/index.json             (manifest)
- data/<player>/<session>/<file>       (animation + table assets)
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional
from urllib.parse import quote

import httpx

from config import DATA_BASE_URL, DATA_ROOT, HTTP_TIMEOUT_SECONDS
from core.errors import ManifestFetchError, AssetFetchError
from core.models import PlayerManifest, SessionAssets

logger = logging.getLogger("manifest_fetcher")


def join_path(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def build_manifest_url(player: str, base_url: str = DATA_BASE_URL) -> str:
    return join_path(base_url, f"{DATA_ROOT}/{quote(player)}/index.json")


def build_asset_url(player: str, session: str, filename: str, base_url: str = DATA_BASE_URL) -> str:
    return join_path(base_url, f"{DATA_ROOT}/{quote(player)}/{session}/{quote(filename)}")


def with_asset_urls(assets: SessionAssets, base_url: str = DATA_BASE_URL) -> SessionAssets:
    """Fill in the animation/table URLs for resolved session assets."""
    return SessionAssets(
        player=assets.player,
        session=assets.session,
        animation_file=assets.animation_file,
        table_file=assets.table_file,
        animation_url=build_asset_url(assets.player, assets.session, assets.animation_file, base_url),
        table_url=build_asset_url(assets.player, assets.session, assets.table_file, base_url),
    )


def _client(client: Optional[httpx.AsyncClient]) -> httpx.AsyncClient:
    return client or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True)


async def fetch_manifest(
    player: str,
    base_url: str = DATA_BASE_URL,
    client: Optional[httpx.AsyncClient] = None,
) -> PlayerManifest:
    """
    Fetch and parse a player's manifest.

    A cache-busting ``ts`` query parameter is always sent.

    Raises:
        ManifestFetchError: non-success status, transport failure or malformed JSON
    """
    url = build_manifest_url(player, base_url)
    params = {"ts": str(int(time.time() * 1000))}
    http = _client(client)
    try:
        response = await http.get(url, params=params)
        response.raise_for_status()
        payload = response.json()
        return PlayerManifest.from_dict(payload, player=player)
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise ManifestFetchError(f"manifest {status}", status_code=status) from e
    except httpx.HTTPError as e:
        raise ManifestFetchError(f"manifest request failed: {e}") from e
    except (json.JSONDecodeError, ValueError) as e:
        raise ManifestFetchError(f"malformed manifest: {e}") from e
    finally:
        if client is None:
            await http.aclose()


async def fetch_asset(url: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """
    Fetch a session asset body.

    Raises:
        AssetFetchError: non-success status or transport failure
    """
    http = _client(client)
    try:
        response = await http.get(url)
        response.raise_for_status()
        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise AssetFetchError(f"asset {status}: {url}", status_code=status) from e
    except httpx.HTTPError as e:
        raise AssetFetchError(f"asset request failed: {url}: {e}") from e
    finally:
        if client is None:
            await http.aclose()
