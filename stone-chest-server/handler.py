"""FastAPI router: the WebSocket session endpoint and HTTP inspection views."""

from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from engine import SessionEngine
from session_hub import SessionHub
from timers import PeriodicRunner

log = logging.getLogger(__name__)

router = APIRouter()

# WebSocket close code for "try again later".
_CLOSE_TRY_AGAIN_LATER = 1013

# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_engine(request: Request) -> SessionEngine:
    return request.app.state.engine  # type: ignore[no-any-return]


def get_hub(request: Request) -> SessionHub:
    return request.app.state.hub  # type: ignore[no-any-return]


def get_runner(request: Request, name: str) -> PeriodicRunner | None:
    return getattr(request.app.state, name, None)


# ---------------------------------------------------------------------------
# Message decoding
# ---------------------------------------------------------------------------


def decode_message(raw: str) -> tuple[str, dict[str, object]] | None:
    """Parse an inbound frame ``{"event": str, "data": {...}}``.

    Anything else yields ``None``; a non-object ``data`` becomes ``{}``.
    """
    try:
        obj = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    if not isinstance(obj, dict):
        return None
    event = obj.get("event")
    if not isinstance(event, str) or not event.strip():
        return None
    data = obj.get("data")
    return event.strip(), data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def session_socket(websocket: WebSocket) -> None:
    engine: SessionEngine = websocket.app.state.engine
    hub: SessionHub = websocket.app.state.hub

    if not engine.accepting:
        await websocket.close(code=_CLOSE_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    channel_id = uuid.uuid4().hex
    await hub.connect(channel_id, websocket)
    log.info("Connection opened: %s", channel_id)

    try:
        while websocket.client_state == WebSocketState.CONNECTED:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            decoded = decode_message(raw) if isinstance(raw, str) else None
            if decoded is None:
                log.debug("Ignoring malformed frame from %s", channel_id)
                continue
            event, data = decoded
            engine.handle(channel_id, event, data)
    except WebSocketDisconnect:
        pass
    finally:
        engine.disconnect(channel_id)
        await hub.disconnect(channel_id)
        log.info("Connection closed: %s", channel_id)


# ---------------------------------------------------------------------------
# HTTP inspection
# ---------------------------------------------------------------------------


@router.get("/")
async def index() -> dict[str, object]:
    return {
        "message": "Stone chest server is running",
        "endpoints": {
            "websocket": "/ws",
            "health": "/health",
            "status": "/status",
            "players": "/players",
            "containers": "/containers",
            "reset": "POST /containers/reset",
            "timers": "/timers",
        },
    }


@router.get("/health")
async def health(engine: SessionEngine = Depends(get_engine)) -> dict[str, object]:
    status = engine.status_view()
    return {
        "status": "ok" if engine.accepting else "draining",
        "players": status["players"],
        "uptime": status["uptime"],
        "timestamp": status["serverTime"],
    }


@router.get("/status")
async def status(
    engine: SessionEngine = Depends(get_engine),
    hub: SessionHub = Depends(get_hub),
) -> dict[str, object]:
    return {**engine.status_view(), "connections": hub.connection_count}


@router.get("/players")
async def players(engine: SessionEngine = Depends(get_engine)) -> dict[str, object]:
    return engine.participants_view()


@router.get("/containers")
async def containers(engine: SessionEngine = Depends(get_engine)) -> dict[str, object]:
    return engine.containers_view()


@router.post("/containers/reset")
async def reset_containers(engine: SessionEngine = Depends(get_engine)) -> dict[str, object]:
    return {"message": "Containers reset", "containers": engine.reset_containers()}


@router.get("/timers")
async def timers_status(request: Request) -> dict[str, object]:
    out: dict[str, object] = {}
    for name in ("idle_reaper", "status_tick"):
        runner = get_runner(request, name)
        out[name] = runner.describe() if runner is not None else {"running": False}
    return out
