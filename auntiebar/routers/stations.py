"""Stations API: catalogue grouped by category, single station, stream bitrate."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from auntiebar.hls import stream_bitrate
from auntiebar.stations import find_station, stations_by_category, uk_only_count

router = APIRouter(prefix="/api/stations", tags=["stations"])


@router.get("")
async def list_stations(hide_uk_only: bool = False) -> dict:
    groups = stations_by_category(hide_uk_only)
    return {
        "categories": [
            {"name": category.value, "stations": [s.model_dump(mode="json") for s in stations]}
            for category, stations in groups.items()
        ],
        "uk_only_count": uk_only_count(),
    }


@router.get("/{station_id}")
async def get_station(station_id: str) -> dict:
    station = find_station(station_id)
    if station is None:
        raise HTTPException(404, "Station not found")
    return station.model_dump(mode="json")


@router.get("/{station_id}/bitrate")
async def get_station_bitrate(station_id: str, request: Request) -> dict:
    """Nominal stream bitrate (bits per second); null when it cannot be determined."""
    station = find_station(station_id)
    if station is None:
        raise HTTPException(404, "Station not found")
    bitrate = await stream_bitrate(
        request.app.state.http,
        station.stream_url,
        timeout=request.app.state.settings.request_timeout_seconds,
    )
    return {
        "station_id": station.id,
        "bitrate": bitrate,
        "kbps": bitrate // 1000 if bitrate else None,
    }
