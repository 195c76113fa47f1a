"""Nominal bitrate of a station stream, from its URL or its HLS master manifest."""
from __future__ import annotations

import logging
import re

import httpx

log = logging.getLogger("auntiebar.hls")

_AVERAGE_BANDWIDTH_RE = re.compile(r"AVERAGE-BANDWIDTH\s*=\s*(\d+)")
_BANDWIDTH_RE = re.compile(r"(?<![-\w])BANDWIDTH\s*=\s*(\d+)")
# BBC stream URLs carry the bitrate as audio%3d320000 (or audio=320000 unescaped).
_URL_BITRATE_RE = re.compile(r"audio(?:%3[dD]|=)(\d+)")


def parse_nominal_bitrate(manifest: str) -> int | None:
    """AVERAGE-BANDWIDTH if present, otherwise the largest BANDWIDTH, in bits per second."""
    if not manifest:
        return None
    m = _AVERAGE_BANDWIDTH_RE.search(manifest)
    if m:
        return int(m.group(1))
    bandwidths = [int(v) for v in _BANDWIDTH_RE.findall(manifest)]
    return max(bandwidths) if bandwidths else None


def parse_bitrate_from_url(url: str) -> int | None:
    m = _URL_BITRATE_RE.search(url or "")
    return int(m.group(1)) if m else None


async def fetch_nominal_bitrate(http: httpx.AsyncClient, url: str, timeout: float = 10.0) -> int | None:
    """Download the manifest at url and parse its bitrate. None on any error."""
    try:
        r = await http.get(url, timeout=timeout)
        r.raise_for_status()
        manifest = r.text
    except httpx.HTTPError as e:
        log.debug("manifest %s failed: %s", url, e)
        return None
    return parse_nominal_bitrate(manifest)


async def stream_bitrate(http: httpx.AsyncClient, url: str, timeout: float = 10.0) -> int | None:
    """Bitrate from the URL when it carries one, else from the manifest."""
    return parse_bitrate_from_url(url) or await fetch_nominal_bitrate(http, url, timeout=timeout)
