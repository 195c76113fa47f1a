"""Application log for troubleshooting: station start/stop, artwork and poll events."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from auntiebar.config import settings

APP_LOG_FILENAME = "app.log"
MAX_APP_LOG_BYTES = 2 * 1024 * 1024
TRIM_KEEP_BYTES = 1 * 1024 * 1024


def get_app_log_path(logs_dir: Path | None = None) -> Path:
    root = logs_dir or settings.logs_dir
    assert root
    return root / APP_LOG_FILENAME


def _trim_if_needed(path: Path) -> None:
    """If the log exceeds MAX_APP_LOG_BYTES, keep only the last TRIM_KEEP_BYTES (from a line start)."""
    if not path.exists():
        return
    try:
        if path.stat().st_size <= MAX_APP_LOG_BYTES:
            return
        tail = path.read_bytes()[-TRIM_KEEP_BYTES:]
        newline_at = tail.find(b"\n")
        if newline_at != -1:
            tail = tail[newline_at + 1:]
        path.write_bytes(tail)
    except OSError:
        pass


def append_app_log(message: str, logs_dir: Path | None = None) -> None:
    """Append a timestamped line to the application log."""
    path = get_app_log_path(logs_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _trim_if_needed(path)
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        with path.open("a", encoding="utf-8") as f:
            f.write(f"[{ts}] {message.strip()}\n")
    except OSError:
        pass


def read_app_log(tail: int = 500, logs_dir: Path | None = None) -> str:
    """Return the last `tail` lines of the application log (all lines when tail is 0)."""
    path = get_app_log_path(logs_dir)
    if not path.exists():
        return ""
    lines = path.read_text(encoding="utf-8", errors="replace").strip().splitlines()
    return "\n".join(lines[-tail:]) if tail else "\n".join(lines)


def clear_app_log(logs_dir: Path | None = None) -> None:
    path = get_app_log_path(logs_dir)
    if path.exists():
        path.write_text("", encoding="utf-8")
