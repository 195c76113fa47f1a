"""auntiebar - FastAPI application."""
from __future__ import annotations

from contextlib import asynccontextmanager
from functools import partial

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auntiebar.app_log import append_app_log
from auntiebar.config import Settings, settings as default_settings
from auntiebar.now_playing import NowPlayingTracker
from auntiebar.rms import RMSClient
from auntiebar.routers import logs, now_playing, stations


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app. The HTTP client, RMS client and tracker live on app.state for the app's lifetime."""
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg.ensure_dirs()
        http = httpx.AsyncClient(
            timeout=cfg.request_timeout_seconds,
            headers={"User-Agent": cfg.user_agent},
            transport=transport,
        )
        rms = RMSClient(
            http,
            base_url=cfg.rms_base_url,
            timeout=cfg.request_timeout_seconds,
            now_next_limit=cfg.now_next_limit,
            raise_errors=True,
        )
        tracker = NowPlayingTracker(
            rms,
            interval_seconds=cfg.poll_interval_seconds,
            preserve_on_failure=cfg.preserve_on_failure,
            tick_timeout=cfg.request_timeout_seconds * 2,
            on_log=partial(append_app_log, logs_dir=cfg.logs_dir),
        )
        app.state.settings = cfg
        app.state.http = http
        app.state.rms = rms
        app.state.tracker = tracker
        append_app_log("auntiebar started", logs_dir=cfg.logs_dir)
        try:
            yield
        finally:
            await tracker.aclose()
            await http.aclose()

    app = FastAPI(
        title="auntiebar",
        description="BBC radio now-playing tracker",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(stations.router)
    app.include_router(now_playing.router)
    app.include_router(logs.router)
    return app


app = create_app()
