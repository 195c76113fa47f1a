"""Now-playing API: playback start/stop/pause/resume notifications, current state and artwork."""
from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel

from auntiebar.app_log import append_app_log
from auntiebar.artwork import clear_cache, resolve_artwork
from auntiebar.models import TrackerState
from auntiebar.now_playing import NowPlayingTracker
from auntiebar.stations import find_station

router = APIRouter(prefix="/api", tags=["now-playing"])


class StartRequest(BaseModel):
    station_id: str = ""
    service_id: str = ""


def _tracker(request: Request) -> NowPlayingTracker:
    return request.app.state.tracker


async def _first_update(request: Request, tracker: NowPlayingTracker) -> TrackerState:
    timeout = request.app.state.settings.request_timeout_seconds * 2
    try:
        return await tracker.wait_for_update(timeout=timeout)
    except asyncio.TimeoutError:
        return tracker.state


def state_payload(state: TrackerState) -> dict:
    """TrackerState as JSON plus the derived fields the UI needs."""
    out = state.model_dump(mode="json")
    snapshot = state.snapshot
    now_next = state.now_next
    out["has_metadata"] = snapshot.has_metadata if snapshot else False
    out["formatted_track_info"] = snapshot.formatted_track_info if snapshot else None
    out["artwork_candidates"] = snapshot.artwork_candidates if snapshot else []
    out["next"] = now_next.next.model_dump(mode="json") if now_next and now_next.next else None
    return out


@router.post("/playback/start")
async def start_playback(body: StartRequest, request: Request) -> dict:
    """Playback began: track the station and return the state after the first fetch."""
    station = None
    service_id = body.service_id.strip()
    if body.station_id.strip():
        station = find_station(body.station_id)
        if station is None:
            raise HTTPException(404, "Station not found")
        service_id = station.service_id
    if not service_id:
        raise HTTPException(400, "station_id or service_id is required")
    tracker = _tracker(request)
    tracker.on_station_started(service_id)
    state = await _first_update(request, tracker)
    return {
        "ok": True,
        "station": station.model_dump(mode="json") if station else None,
        "now_playing": state_payload(state),
    }


@router.post("/playback/stop")
async def stop_playback(request: Request) -> dict:
    _tracker(request).on_station_stopped()
    return {"ok": True}


@router.post("/playback/pause")
async def pause_playback(request: Request) -> dict:
    """Playback paused: stop polling, keep the last published state."""
    tracker = _tracker(request)
    if tracker.service_id is None:
        raise HTTPException(409, "Nothing is playing")
    tracker.on_station_paused()
    return {"ok": True, "now_playing": state_payload(tracker.state)}


@router.post("/playback/resume")
async def resume_playback(request: Request) -> dict:
    """Playback resumed: fetch straight away and return the state after that fetch."""
    tracker = _tracker(request)
    if tracker.service_id is None:
        raise HTTPException(409, "Nothing is playing")
    if not tracker.state.paused:
        return {"ok": True, "now_playing": state_payload(tracker.state)}
    tracker.on_station_resumed()
    state = await _first_update(request, tracker)
    return {"ok": True, "now_playing": state_payload(state)}


@router.get("/now-playing")
async def get_now_playing(request: Request) -> dict:
    return state_payload(_tracker(request).state)


@router.get("/now-playing/artwork")
async def get_artwork(request: Request):
    """PNG of the first artwork candidate that loads."""
    snapshot = _tracker(request).current_snapshot
    if snapshot is None or not snapshot.artwork_candidates:
        raise HTTPException(404, "No artwork")
    cfg = request.app.state.settings
    path = await resolve_artwork(
        request.app.state.http,
        snapshot.artwork_candidates,
        cfg.artwork_dir,
        log_cb=lambda msg: append_app_log(msg, logs_dir=cfg.logs_dir),
        max_files=cfg.artwork_cache_max_files,
    )
    if path is None:
        raise HTTPException(404, "No artwork")
    return FileResponse(path, media_type="image/png", headers={"Cache-Control": "no-cache"})


@router.delete("/now-playing/artwork/cache")
async def delete_artwork_cache(request: Request) -> dict:
    ok, message = clear_cache(request.app.state.settings.artwork_dir)
    if not ok:
        raise HTTPException(500, message)
    return {"ok": True, "message": message}
