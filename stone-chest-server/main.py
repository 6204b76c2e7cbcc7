#!/usr/bin/env python3
"""Stone chest session server.

Usage:
    python3 main.py
    # Clients connect to ws://localhost:3000/ws
"""

from __future__ import annotations

import asyncio
import logging
from types import FrameType

import uvicorn

import game_config as config
from app import create_app
from engine import SessionEngine
from session_hub import SessionHub

log = logging.getLogger("stone_chest.server")


class DrainingServer(uvicorn.Server):
    """Tells every participant about shutdown before uvicorn drops connections.

    The first signal broadcasts ``server-shutdown`` and stops mutations, then
    hands over to uvicorn after the grace period. A second signal exits at once.
    """

    def __init__(self, server_config: uvicorn.Config, engine: SessionEngine, grace_seconds: float) -> None:
        super().__init__(server_config)
        self._engine = engine
        self._grace_seconds = grace_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._draining = False

    async def startup(self, sockets: list | None = None) -> None:  # type: ignore[override]
        self._loop = asyncio.get_running_loop()
        await super().startup(sockets=sockets)

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        loop = self._loop
        if self._draining or loop is None or loop.is_closed():
            super().handle_exit(sig, frame)
            return
        self._draining = True
        log.info("Received signal %s, draining for %ss", sig, self._grace_seconds)

        def _drain() -> None:
            self._engine.shutdown()
            loop.call_later(self._grace_seconds, super(DrainingServer, self).handle_exit, sig, frame)

        loop.call_soon_threadsafe(_drain)


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    hub = SessionHub()
    engine = SessionEngine(outbound=hub)
    app = create_app(engine=engine, hub=hub, run_timers=True)

    server_config = uvicorn.Config(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
    server = DrainingServer(server_config, engine=engine, grace_seconds=config.SHUTDOWN_GRACE_SECONDS)
    print(
        f"""
  Stone chest server
  http://{config.HOST}:{config.PORT}
  WS   /ws
  GET  /health
  GET  /status
  GET  /players
  GET  /containers
  POST /containers/reset
  GET  /timers
"""
    )
    server.run()


if __name__ == "__main__":
    main()
