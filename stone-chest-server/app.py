"""FastAPI application factory for the stone chest server."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import game_config as config
from engine import ServerShuttingDown, SessionEngine
from handler import router
from session_hub import SessionHub
from timers import IdleReaperRunner, StatusTickRunner

log = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ServerShuttingDown)
    async def _shutting_down(request: Request, exc: ServerShuttingDown) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _generic(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": f"internal server error: {exc}"})


def create_app(
    engine: SessionEngine | None = None,
    hub: SessionHub | None = None,
    run_timers: bool | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without arguments (production) the hub, engine and both runners are
    built here and the runners live for the duration of the lifespan.
    When an engine is passed in (tests), it is used as-is and runners are
    only started if ``run_timers`` asks for them.
    """
    if engine is None:
        hub = hub or SessionHub()
        engine = SessionEngine(outbound=hub)
        run_timers = True if run_timers is None else run_timers
    else:
        if hub is None:
            hub = engine.outbound if isinstance(engine.outbound, SessionHub) else SessionHub()
        if engine.outbound is None:
            engine.outbound = hub
    _engine = engine
    _hub = hub
    _run_timers = bool(run_timers)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if not _run_timers:
            yield
            return

        idle_reaper = IdleReaperRunner(_engine, interval_seconds=config.IDLE_SWEEP_INTERVAL_SECONDS)
        status_tick = StatusTickRunner(_engine, interval_seconds=config.STATUS_INTERVAL_SECONDS)
        idle_reaper.start()
        status_tick.start()
        app.state.idle_reaper = idle_reaper
        app.state.status_tick = status_tick
        log.info(
            "Runners started (idle sweep every %ss, timeout %ss; status every %ss)",
            idle_reaper.interval_seconds,
            _engine.idle_timeout_seconds,
            status_tick.interval_seconds,
        )
        yield
        if _engine.shutdown():
            await asyncio.sleep(config.SHUTDOWN_GRACE_SECONDS)
        idle_reaper.stop()
        status_tick.stop()
        await _hub.close_all()

    app = FastAPI(title="Stone Chest Server", version=config.SERVER_VERSION, lifespan=lifespan)
    app.state.engine = _engine
    app.state.hub = _hub
    app.state.idle_reaper = None
    app.state.status_tick = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=600,
    )

    _register_exception_handlers(app)

    app.include_router(router)

    return app
