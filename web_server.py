# Load environment variables FIRST (before any other imports)
from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import os
import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

# Silence verbose loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logger = logging.getLogger("web_server")

from config import DATA_DIR
from core.errors import TableParseError
from core.viewer import get_viewer_engine

app = FastAPI(title="Motion Sync Viewer")

# Serve local player manifests/assets the same way the asset host lays them out
if os.path.isdir(DATA_DIR):
    app.mount("/data", StaticFiles(directory=DATA_DIR), name="data")


class PlayerLoad(BaseModel):
    player: str
    session: Optional[str] = None


class SessionSelect(BaseModel):
    session: str


class DatasetSelect(BaseModel):
    name: str


class ChannelSelect(BaseModel):
    channel_a: Optional[str] = None
    channel_b: Optional[str] = None


class PreferencesUpdate(BaseModel):
    show_main_graph: Optional[bool] = None
    show_second_graph: Optional[bool] = None


@app.on_event("startup")
async def startup_event():
    """Start the host frame loop."""
    engine = get_viewer_engine()
    engine.start()
    logger.info("Viewer frame loop started")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the frame loop and release transient assets."""
    await get_viewer_engine().close()


# =============================================================================
# State
# =============================================================================

@app.get("/api/viewer/state")
async def viewer_state():
    """Clock, dataset, load and preference state in one payload."""
    engine = get_viewer_engine()
    state = engine.get_state()
    state["animation_ref"] = engine.animation_ref
    return state


@app.get("/api/viewer/series")
async def viewer_series():
    """Normalized series for channels A and B (plot input)."""
    engine = get_viewer_engine()
    snap = engine.store.snapshot
    return {
        "dataset": snap.active,
        "duration": snap.series_duration,
        "cursor_data_time": engine.timebase.cursor_data_time(),
        "a": snap.series_a.to_dict(),
        "b": snap.series_b.to_dict(),
    }


# =============================================================================
# Loads
# =============================================================================

@app.post("/api/viewer/player")
async def viewer_load_player(body: PlayerLoad):
    """Fetch a player's manifest and load its (chosen) session."""
    engine = get_viewer_engine()
    ok = await engine.load_player(body.player, body.session)
    result = {"success": ok, "load": engine.loader.get_state()}
    if engine.loader.last_error:
        result["error"] = engine.loader.last_error
    return result


@app.post("/api/viewer/session")
async def viewer_load_session(body: SessionSelect):
    """Switch to another session of the loaded manifest."""
    engine = get_viewer_engine()
    try:
        ok = await engine.load_session(body.session)
    except ValueError as e:
        return {"error": str(e)}
    result = {"success": ok, "load": engine.loader.get_state()}
    if engine.loader.last_error:
        result["error"] = engine.loader.last_error
    return result


@app.post("/api/viewer/upload/table")
async def viewer_upload_table(request: Request, filename: str):
    """Parse an uploaded workbook / CSV / JSON body."""
    engine = get_viewer_engine()
    data = await request.body()
    try:
        parsed = await engine.upload_table(data, filename)
    except TableParseError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    if parsed is None:
        return {"success": False, "error": "Upload superseded by a newer load"}
    return {"success": True, "kind": parsed.kind, "datasets": parsed.names, "data": engine.store.get_state()}


@app.post("/api/viewer/upload/animation")
async def viewer_upload_animation(request: Request, filename: str):
    """Hand an uploaded animation file to the rendering surface."""
    engine = get_viewer_engine()
    data = await request.body()
    if not data:
        return JSONResponse(status_code=400, content={"error": "Empty upload"})
    handle = engine.upload_animation(data, filename)
    return {"success": True, "animation_ref": handle.uri, "source_name": handle.source_name}


# =============================================================================
# Rendering surface callbacks
# =============================================================================

@app.post("/api/viewer/animation/duration")
async def viewer_animation_duration(duration: float):
    """Rendering surface reports the loaded animation's native duration."""
    engine = get_viewer_engine()
    engine.on_ready_duration(duration)
    return {"success": True, "clock": engine.clock.get_state()}


@app.post("/api/viewer/animation/error")
async def viewer_animation_error(message: str = "load failed"):
    """Rendering surface could not load the animation asset."""
    engine = get_viewer_engine()
    engine.report_animation_error(message)
    return {"success": True, "load": engine.loader.get_state()}


# =============================================================================
# Playback
# =============================================================================

@app.post("/api/viewer/play")
async def viewer_play():
    engine = get_viewer_engine()
    engine.play()
    return {"success": True, "playing": engine.clock.playing}


@app.post("/api/viewer/pause")
async def viewer_pause():
    engine = get_viewer_engine()
    engine.pause()
    return {"success": True, "playing": engine.clock.playing}


@app.post("/api/viewer/speed")
async def viewer_speed(speed: float):
    """Change playback speed (clamped)."""
    engine = get_viewer_engine()
    applied = engine.set_speed(speed)
    return {"success": True, "speed": applied}


@app.post("/api/viewer/snap")
async def viewer_snap(enabled: bool):
    engine = get_viewer_engine()
    engine.set_snap_to_frames(enabled)
    return {"success": True, "snap_to_frames": engine.clock.snap_to_frames}


@app.post("/api/viewer/seek")
async def viewer_seek(t: float):
    """Seek in animation seconds."""
    engine = get_viewer_engine()
    return {"success": True, "current_time": engine.seek(t)}


@app.post("/api/viewer/seek_plot")
async def viewer_seek_plot(t: float):
    """Seek in data seconds (plot click)."""
    engine = get_viewer_engine()
    applied = engine.seek_plot(t)
    if applied is None:
        return {"success": False, "error": "Animation duration not known yet"}
    return {"success": True, "current_time": applied}


# =============================================================================
# Dataset / channel selection
# =============================================================================

@app.post("/api/viewer/dataset")
async def viewer_select_dataset(body: DatasetSelect):
    engine = get_viewer_engine()
    try:
        engine.store.select_dataset(body.name)
    except KeyError as e:
        return {"error": e.args[0]}
    return {"success": True, "data": engine.store.get_state()}


@app.post("/api/viewer/channels")
async def viewer_select_channels(body: ChannelSelect):
    """Select channel A and/or B; omitted fields keep their selection."""
    engine = get_viewer_engine()
    fields = body.model_fields_set
    try:
        if "channel_a" in fields:
            engine.store.select_channel_a(body.channel_a)
        if "channel_b" in fields:
            engine.store.select_channel_b(body.channel_b)
    except KeyError as e:
        return {"error": e.args[0]}
    return {"success": True, "data": engine.store.get_state()}


@app.get("/api/viewer/export")
async def viewer_export():
    """Download the active dataset as a JSON array."""
    engine = get_viewer_engine()
    payload = engine.store.export_json()
    if payload is None:
        return {"error": "No rows to export"}
    filename = engine.store.export_filename()
    return Response(
        content=payload,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# Preferences
# =============================================================================

@app.get("/api/viewer/preferences")
async def viewer_get_preferences():
    return get_viewer_engine().preferences.to_dict()


@app.post("/api/viewer/preferences")
async def viewer_set_preferences(body: PreferencesUpdate):
    prefs = get_viewer_engine().preferences
    if body.show_main_graph is not None:
        prefs.show_main_graph = body.show_main_graph
    if body.show_second_graph is not None:
        prefs.show_second_graph = body.show_second_graph
    return prefs.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
