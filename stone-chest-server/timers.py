"""Background runners for idle eviction and periodic status broadcasts."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from engine import SessionEngine

log = logging.getLogger(__name__)


class PeriodicRunner(ABC):
    """Calls ``run_once`` every ``interval_seconds`` on the running event loop.

    The runner shares the loop with message handling, so a tick never
    interleaves with an in-flight mutation. ``tick`` runs one iteration
    synchronously and is what tests drive instead of sleeping.
    """

    name = "periodic"

    def __init__(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval_seconds = float(interval_seconds)
        self._task: asyncio.Task[None] | None = None
        self.last_run_at: str | None = None
        self.last_result: dict[str, object] | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    def run_once(self) -> dict[str, object]: ...

    def tick(self) -> dict[str, object] | None:
        try:
            self.last_result = self.run_once()
        except Exception:
            log.exception("%s runner iteration failed", self.name)
            return None
        finally:
            self.last_run_at = datetime.now(UTC).isoformat()
        return self.last_result

    def start(self) -> None:
        if self.is_running:
            return

        async def _loop() -> None:
            while True:
                await asyncio.sleep(self._interval_seconds)
                self.tick()

        self._task = asyncio.get_running_loop().create_task(_loop())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def describe(self) -> dict[str, object]:
        return {
            "running": self.is_running,
            "interval_seconds": self._interval_seconds,
            "last_run_at": self.last_run_at,
            "last_result": self.last_result,
        }


class IdleReaperRunner(PeriodicRunner):
    """Evicts participants idle for longer than the engine's timeout."""

    name = "idle-reaper"

    def __init__(self, engine: SessionEngine, interval_seconds: float) -> None:
        super().__init__(interval_seconds)
        self._engine = engine

    def run_once(self) -> dict[str, object]:
        issued = self._engine.reap_idle()
        evicted = [n.payload["id"] for n in issued if n.event == "participant-left"]
        if evicted:
            log.info("Idle sweep evicted %d participant(s)", len(evicted))
        return {"evicted": evicted, "active": self._engine.store.participant_count()}


class StatusTickRunner(PeriodicRunner):
    """Broadcasts aggregate server status to every Active channel."""

    name = "status-tick"

    def __init__(self, engine: SessionEngine, interval_seconds: float) -> None:
        super().__init__(interval_seconds)
        self._engine = engine

    def run_once(self) -> dict[str, object]:
        issued = self._engine.status_tick()
        return {"notified": bool(issued), "active": self._engine.store.participant_count()}
