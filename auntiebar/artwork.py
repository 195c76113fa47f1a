"""Artwork: download the first reachable candidate URL, normalise to PNG and cache it on disk."""
from __future__ import annotations

import hashlib
import io
import logging
import os
import shutil
from pathlib import Path
from typing import Callable

import httpx
from PIL import Image

log = logging.getLogger("auntiebar.artwork")

# Cached PNGs kept on disk; the least recently used go first.
MAX_CACHED_IMAGES = 200


def _image_filename(url: str) -> str:
    """Safe filename for a cached image (same URL => same file)."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:32] + ".png"


def cached_path(url: str, cache_dir: Path) -> Path | None:
    path = cache_dir / _image_filename(url)
    return path if path.is_file() else None


def _save_png(content: bytes, dest: Path) -> None:
    img = Image.open(io.BytesIO(content))
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    tmp = dest.with_name(dest.name + ".tmp")
    img.save(tmp, "PNG")
    os.replace(tmp, dest)


async def resolve_artwork(
    http: httpx.AsyncClient,
    candidates: list[str],
    cache_dir: Path,
    timeout: float = 6.0,
    log_cb: Callable[[str], None] | None = None,
    max_files: int = MAX_CACHED_IMAGES,
) -> Path | None:
    """Try candidates in order; return the cached PNG of the first one that downloads and decodes.

    A cache hit is touched so it counts as recently used; a new download prunes the cache
    down to max_files.
    """
    if not candidates:
        return None
    cache_dir.mkdir(parents=True, exist_ok=True)
    for url in candidates:
        hit = cached_path(url, cache_dir)
        if hit is not None:
            try:
                os.utime(hit)
            except OSError as e:
                log.debug("artwork touch %s: %s", hit, e)
            return hit
        try:
            r = await http.get(url, timeout=timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            log.debug("artwork %s: %s", url, e)
            continue
        if r.status_code != 200:
            log.debug("artwork %s: HTTP %s", url, r.status_code)
            continue
        dest = cache_dir / _image_filename(url)
        try:
            _save_png(r.content, dest)
        except (OSError, ValueError) as e:
            log.debug("artwork %s: not an image: %s", url, e)
            continue
        prune_cache(cache_dir, keep=max_files, current=dest)
        return dest
    if log_cb:
        log_cb(f"artwork: none of {len(candidates)} candidate(s) could be loaded")
    return None


def clear_cache(cache_dir: Path) -> tuple[bool, str]:
    """Remove all cached artwork. Returns (success, message)."""
    try:
        if cache_dir.exists():
            shutil.rmtree(cache_dir)
        return True, "Artwork cache cleared."
    except OSError as e:
        return False, f"Could not clear cache: {e}"


def prune_cache(cache_dir: Path, keep: int = MAX_CACHED_IMAGES, current: Path | None = None) -> int:
    """Delete the least recently used PNGs beyond keep. Returns the number removed.

    current (the image just written) always survives and counts towards keep.
    """
    if current is not None:
        keep -= 1
    files = []
    for path in cache_dir.glob("*.png"):
        if path == current:
            continue
        try:
            files.append((path.stat().st_mtime, path))
        except OSError:
            continue
    files.sort(key=lambda item: item[0], reverse=True)
    removed = 0
    for _mtime, path in files[max(keep, 0):]:
        try:
            path.unlink()
            removed += 1
        except OSError as e:
            log.debug("artwork prune %s: %s", path, e)
    if removed:
        log.info("artwork: pruned %d cached image(s)", removed)
    return removed
