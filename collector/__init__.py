"""
Motion Sync Viewer - Collector Module
Manifest/asset fetching and table parsing.
"""

from .manifest_fetcher import (
    fetch_manifest,
    fetch_asset,
    build_manifest_url,
    build_asset_url,
    with_asset_urls,
)
from .table_parser import parse_table, ParsedTable

__all__ = [
    "fetch_manifest", "fetch_asset",
    "build_manifest_url", "build_asset_url", "with_asset_urls",
    "parse_table", "ParsedTable",
    "collect_session_assets",
]


async def collect_session_assets(player: str, session: str = None, base_url: str = None) -> dict:
    """
    Resolve the assets of one player session.

    Args:
        player: Player name as it appears under data/
        session: Session folder (default: manifest default or first session)
        base_url: Asset server root (default: DATA_BASE_URL)

    Returns:
        Dictionary with the parsed manifest, chosen session and resolved assets
    """
    from config import DATA_BASE_URL

    base_url = base_url or DATA_BASE_URL
    manifest = await fetch_manifest(player, base_url=base_url)
    chosen = manifest.pick_session(session)
    if chosen is None:
        raise ValueError(f"No sessions listed for player: {player}")

    assets = with_asset_urls(manifest.resolve_assets(chosen), base_url)
    return {
        "player": player,
        "session": chosen,
        "manifest": manifest,
        "assets": assets,
    }
