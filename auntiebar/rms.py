"""BBC RMS API client: latest music segment and broadcast (programme) info for a service.

By default all fetches fail quiet: transport errors, non-2xx responses, bad JSON and unexpected
shapes all come back as None. Metadata is best-effort and must never interrupt playback.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from auntiebar.config import settings
from auntiebar.models import (
    PRIMARY_RECIPE,
    RECIPE_PLACEHOLDER,
    NowNextInfo,
    NowPlayingSnapshot,
    ProgrammeInfo,
    ProgrammeSlot,
    RMSBroadcast,
    RMSBroadcastsResponse,
    RMSSegmentsResponse,
    TrackInfo,
)

log = logging.getLogger("auntiebar.rms")

_TIMESTAMP_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RMS ISO-8601 UTC timestamp ('Z' suffix, fractional seconds optional)."""
    if not isinstance(value, str):
        return None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _programme_slot(broadcast: RMSBroadcast) -> ProgrammeSlot | None:
    title = broadcast.titles.primary if broadcast.titles else None
    start = parse_timestamp(broadcast.start)
    end = parse_timestamp(broadcast.end)
    if title is None or start is None or end is None:
        return None
    return ProgrammeSlot(title=title, start_time=start, end_time=end)


class RMSError(Exception):
    """An RMS request failed or came back in a shape we can't read."""


class RMSClient:
    """Queries the segments and broadcasts endpoints. Takes a shared httpx.AsyncClient.

    With raise_errors set, failures raise RMSError instead of returning None, so callers
    can tell "the request failed" apart from "nothing to report" (speech on air, empty
    schedule). A failed programme fetch still only blanks the programme fields.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str | None = None,
        timeout: float | None = None,
        now_next_limit: int | None = None,
        raise_errors: bool = False,
    ) -> None:
        self._http = http
        self.base_url = (base_url or settings.rms_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.now_next_limit = now_next_limit or settings.now_next_limit
        self.raise_errors = raise_errors

    def segments_url(self, service_id: str) -> str:
        return f"{self.base_url}/services/{service_id}/segments/latest"

    def broadcasts_url(self, service_id: str) -> str:
        return f"{self.base_url}/broadcasts/poll/{service_id}"

    def _failed(self, message: str) -> None:
        log.debug(message)
        if self.raise_errors:
            raise RMSError(message)
        return None

    async def _get_json(self, url: str, limit: int) -> Any | None:
        params = {"experience": "domestic", "offset": "0", "limit": str(limit)}
        try:
            r = await self._http.get(url, params=params, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPError, ValueError) as e:
            return self._failed(f"GET {url} failed: {e}")

    async def fetch_track(self, service_id: str) -> TrackInfo | None:
        """Latest music segment; None when the latest segment is speech, continuity etc."""
        data = await self._get_json(self.segments_url(service_id), limit=1)
        if data is None:
            return None
        try:
            response = RMSSegmentsResponse.model_validate(data)
        except ValidationError as e:
            return self._failed(f"segments for {service_id}: unexpected shape: {e}")
        segment = next((s for s in response.data if s.segment_type == "music"), None)
        if segment is None:
            return None
        titles = segment.titles
        artwork_url = None
        if segment.image_url:
            artwork_url = segment.image_url.replace(RECIPE_PLACEHOLDER, PRIMARY_RECIPE)
        return TrackInfo(
            artist=titles.primary if titles else None,
            title=titles.secondary if titles else None,
            artwork_url=artwork_url,
            artwork_url_template=segment.image_url,
        )

    async def fetch_programme(self, service_id: str) -> ProgrammeInfo | None:
        data = await self._get_json(self.broadcasts_url(service_id), limit=1)
        if data is None:
            return None
        try:
            response = RMSBroadcastsResponse.model_validate(data)
        except ValidationError as e:
            return self._failed(f"broadcasts for {service_id}: unexpected shape: {e}")
        if not response.data:
            return None
        broadcast = response.data[0]
        return ProgrammeInfo(
            title=broadcast.titles.primary if broadcast.titles else None,
            synopsis=broadcast.synopses.short if broadcast.synopses else None,
        )

    async def fetch_snapshot(self, service_id: str) -> NowPlayingSnapshot | None:
        """Track and programme fetched together. No track means no snapshot; a failed programme fetch only blanks programme fields."""
        track, programme = await asyncio.gather(
            self.fetch_track(service_id),
            self.fetch_programme(service_id),
            return_exceptions=True,
        )
        if isinstance(programme, RMSError):
            programme = None
        for r in (track, programme):
            if isinstance(r, BaseException):
                raise r
        if track is None:
            return None
        return NowPlayingSnapshot.merge(track, programme)

    async def fetch_now_next(self, service_id: str, limit: int | None = None) -> NowNextInfo | None:
        """Current broadcast plus every well-formed broadcast after it, in response order."""
        data = await self._get_json(self.broadcasts_url(service_id), limit=limit or self.now_next_limit)
        if data is None:
            return None
        try:
            response = RMSBroadcastsResponse.model_validate(data)
        except ValidationError as e:
            return self._failed(f"now/next for {service_id}: unexpected shape: {e}")
        if not response.data:
            return None
        current = _programme_slot(response.data[0])
        if current is None:
            return None
        upcoming = tuple(
            slot for slot in (_programme_slot(b) for b in response.data[1:]) if slot is not None
        )
        return NowNextInfo(current=current, upcoming=upcoming)
