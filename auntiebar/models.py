"""Pydantic models for now-playing state, stations and the RMS wire format."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

RECIPE_PLACEHOLDER = "{recipe}"
# BBC image service recipes tried for artwork, largest first.
ARTWORK_RECIPES = ("256x256", "192x192", "128x128", "64x64")
PRIMARY_RECIPE = ARTWORK_RECIPES[0]


def fallback_artwork_urls(template: str | None) -> list[str]:
    """Substitute each artwork recipe into an image URL template, in recipe order."""
    if not template:
        return []
    return [template.replace(RECIPE_PLACEHOLDER, recipe) for recipe in ARTWORK_RECIPES]


def artwork_candidates(artwork_url: str | None, template: str | None) -> list[str]:
    """Primary artwork URL first, then the template fallbacks; duplicates dropped, first occurrence wins."""
    out: list[str] = []
    seen: set[str] = set()
    for url in ([artwork_url] if artwork_url else []) + fallback_artwork_urls(template):
        if url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


def format_track_info(artist: str | None, title: str | None) -> str | None:
    if artist is None or title is None:
        return None
    return f"{artist} – {title}"


class TrackInfo(BaseModel):
    """Track from the latest music segment of a service."""
    model_config = ConfigDict(frozen=True)

    artist: str | None = None
    title: str | None = None
    artwork_url: str | None = None
    artwork_url_template: str | None = None

    @property
    def has_metadata(self) -> bool:
        return self.artist is not None or self.title is not None

    @property
    def formatted_track_info(self) -> str | None:
        """'Artist – Title' (en dash) when both are known."""
        return format_track_info(self.artist, self.title)


class ProgrammeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    synopsis: str | None = None


class ProgrammeSlot(BaseModel):
    """One scheduled broadcast."""
    model_config = ConfigDict(frozen=True)

    title: str
    start_time: datetime
    end_time: datetime


class NowNextInfo(BaseModel):
    """The broadcast on air now and those following it, in schedule order."""
    model_config = ConfigDict(frozen=True)

    current: ProgrammeSlot
    upcoming: tuple[ProgrammeSlot, ...] = ()

    @property
    def next(self) -> ProgrammeSlot | None:
        return self.upcoming[0] if self.upcoming else None


class NowPlayingSnapshot(BaseModel):
    """Merged track + programme info for one poll. Only produced when a music segment is on air."""
    model_config = ConfigDict(frozen=True)

    artist: str | None = None
    title: str | None = None
    artwork_url: str | None = None
    artwork_url_template: str | None = None
    programme_title: str | None = None
    programme_synopsis: str | None = None

    @classmethod
    def merge(cls, track: TrackInfo, programme: ProgrammeInfo | None) -> NowPlayingSnapshot:
        return cls(
            artist=track.artist,
            title=track.title,
            artwork_url=track.artwork_url,
            artwork_url_template=track.artwork_url_template,
            programme_title=programme.title if programme else None,
            programme_synopsis=programme.synopsis if programme else None,
        )

    @property
    def has_metadata(self) -> bool:
        return self.artist is not None or self.title is not None

    @property
    def formatted_track_info(self) -> str | None:
        return format_track_info(self.artist, self.title)

    @property
    def fallback_artwork_urls(self) -> list[str]:
        return fallback_artwork_urls(self.artwork_url_template)

    @property
    def artwork_candidates(self) -> list[str]:
        return artwork_candidates(self.artwork_url, self.artwork_url_template)


class TrackerState(BaseModel):
    """Everything the tracker publishes. Replaced as a whole on each change."""
    model_config = ConfigDict(frozen=True)

    service_id: str | None = None
    snapshot: NowPlayingSnapshot | None = None
    now_next: NowNextInfo | None = None
    updated_at: datetime | None = None
    # Polling suspended; values are the last ones published before the pause.
    paused: bool = False
    # Set when the latest tick failed and older values were kept.
    stale_since: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.service_id is not None


class StationCategory(str, Enum):
    NATIONAL = "National"
    REGIONAL = "Regional"
    NATIONS = "Nations & Regions"

    @property
    def sort_order(self) -> int:
        return {
            StationCategory.NATIONAL: 0,
            StationCategory.NATIONS: 1,
            StationCategory.REGIONAL: 2,
        }[self]


class RadioStation(BaseModel):
    """A BBC radio station. id defaults to the service id."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str
    stream_url: str
    category: StationCategory
    is_uk_only: bool = False
    service_id: str

    @model_validator(mode="before")
    @classmethod
    def set_id_from_service_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("id") or "").strip():
            data = {**data, "id": (data.get("service_id") or "").strip()}
        return data


# RMS API wire format. Every field is optional; shape checks happen in auntiebar.rms.

class RMSTitles(BaseModel):
    primary: str | None = None
    secondary: str | None = None


class RMSSynopses(BaseModel):
    short: str | None = None


class RMSSegment(BaseModel):
    segment_type: str | None = None
    titles: RMSTitles | None = None
    image_url: str | None = None


class RMSSegmentsResponse(BaseModel):
    data: list[RMSSegment] = Field(default_factory=list)


class RMSBroadcast(BaseModel):
    titles: RMSTitles | None = None
    synopses: RMSSynopses | None = None
    start: str | None = None
    end: str | None = None


class RMSBroadcastsResponse(BaseModel):
    data: list[RMSBroadcast] = Field(default_factory=list)
