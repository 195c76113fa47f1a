"""Live logs API: tail or clear the application log."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from auntiebar.app_log import clear_app_log, read_app_log

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("/app", response_class=PlainTextResponse)
async def get_app_log(request: Request, tail: int = 500) -> str:
    """Return the last N lines of the application log."""
    return read_app_log(tail, logs_dir=request.app.state.settings.logs_dir)


@router.delete("/app")
async def delete_app_log(request: Request) -> dict:
    """Truncate the application log."""
    try:
        clear_app_log(logs_dir=request.app.state.settings.logs_dir)
    except OSError as e:
        raise HTTPException(500, f"Could not clear log: {e}") from e
    return {"ok": True}
