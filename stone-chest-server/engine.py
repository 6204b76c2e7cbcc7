"""Session engine: the one entry point through which world state changes."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Protocol

import game_config as config
import transactions
from dispatcher import Notification, addressees, notifications_for
from models import Shutdown, StatusTick, Transition, utc_now
from sessions import SessionManager
from world_store import WorldStore

log = logging.getLogger(__name__)

INBOUND_EVENTS = frozenset({"join", "move", "place-token", "request-count", "refill"})


class ServerShuttingDown(RuntimeError):
    """Raised for administrative writes attempted after shutdown began."""


class Outbound(Protocol):
    def send(self, channel_id: str, message: dict[str, Any]) -> bool: ...

    def close(self, channel_id: str) -> None: ...


class SessionEngine:
    """Serializes every mutation and publishes the notifications it implies.

    Each public method runs to completion without awaiting, mutates the
    store through ``SessionManager``/``transactions``, and returns the
    notifications it issued. Delivery is handed to ``outbound`` which only
    enqueues. Invalid input is never an error here: it produces no state
    change and no notifications.

    After ``shutdown`` the only notification ever issued is the shutdown
    notice itself. ``disconnect`` still removes the departing participant
    while draining, but tells nobody.
    """

    def __init__(
        self,
        store: WorldStore | None = None,
        outbound: Outbound | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
        idle_timeout_seconds: float | None = None,
    ) -> None:
        self.store = store or WorldStore()
        self.outbound = outbound
        self._clock = clock
        self.sessions = SessionManager(self.store, clock=clock, rng=rng)
        self.idle_timeout_seconds = (
            config.IDLE_TIMEOUT_SECONDS if idle_timeout_seconds is None else idle_timeout_seconds
        )
        self.started_at = clock()
        self.accepting = True

    # -- inbound -----------------------------------------------------------

    def handle(self, channel_id: str, event: str, data: object = None) -> list[Notification]:
        if not self.accepting:
            log.debug("Ignoring %s from %s: shutting down", event, channel_id)
            return []
        if event not in INBOUND_EVENTS:
            log.debug("Ignoring unknown event %r from %s", event, channel_id)
            return []
        payload: Mapping[str, object] = data if isinstance(data, Mapping) else {}

        if event == "join":
            return self._publish(self.sessions.join(channel_id, payload.get("username")))

        if not self.sessions.touch(channel_id):
            log.debug("Ignoring %s from inactive channel %s", event, channel_id)
            return []

        if event == "move":
            return self._publish(self.sessions.move(channel_id, payload))
        if event == "place-token":
            return self._publish(transactions.place_token(self.store, channel_id, payload.get("containerId")))
        if event == "refill":
            return self._publish(transactions.replenish(self.store, channel_id))
        return self._publish(self.sessions.request_count(channel_id))

    def disconnect(self, channel_id: str) -> list[Notification]:
        """Called by the connection boundary when a channel goes away."""
        left = self.sessions.leave(channel_id, reason="disconnect")
        self.sessions.forget(channel_id)
        return self._publish(left) if self.accepting else []

    # -- scheduled ---------------------------------------------------------

    def reap_idle(self, now: datetime | None = None) -> list[Notification]:
        if not self.accepting:
            return []
        now = now or self._clock()
        issued: list[Notification] = []
        for left in self.sessions.evict_idle(now, self.idle_timeout_seconds):
            log.info("Evicted idle participant %s (%s)", left.username, left.participant_id)
            issued.extend(self._publish(left))
            if self.outbound is not None:
                self.outbound.close(left.participant_id)
        return issued

    def status_tick(self, now: datetime | None = None) -> list[Notification]:
        if not self.accepting:
            return []
        return self._publish(
            StatusTick(active_count=self.store.participant_count(), uptime_seconds=self.uptime_seconds(now))
        )

    # -- administrative ----------------------------------------------------

    def reset_containers(self) -> dict[str, dict[str, object]]:
        if not self.accepting:
            raise ServerShuttingDown("server is shutting down")
        reset = transactions.reset_containers(self.store)
        self._publish(reset)
        return reset.containers

    def shutdown(self, message: str = "Server is shutting down") -> list[Notification]:
        if not self.accepting:
            return []
        log.info("Shutdown requested, notifying %d participants", self.store.participant_count())
        issued = self._publish(Shutdown(message=message, timestamp=self._clock().isoformat()))
        self.accepting = False
        return issued

    # -- read views --------------------------------------------------------

    def uptime_seconds(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        return max(int((now - self.started_at).total_seconds()), 0)

    def participants_view(self) -> dict[str, object]:
        players = [
            {
                "id": p.participant_id,
                "username": p.username,
                "x": p.x,
                "y": p.y,
                "z": p.z,
                "tokens": p.tokens,
                "color": p.color,
            }
            for p in self.store.list_participants()
        ]
        return {"players": players, "count": len(players)}

    def containers_view(self) -> dict[str, object]:
        return {"containers": self.store.containers_view()}

    def status_view(self) -> dict[str, object]:
        now = self._clock()
        return {
            "online": self.accepting,
            "players": self.store.participant_count(),
            "uptime": self.uptime_seconds(now),
            "version": config.SERVER_VERSION,
            "serverTime": now.isoformat(),
            "allowedOrigins": list(config.ALLOWED_ORIGINS),
            "tokensInCirculation": self.store.token_total(),
        }

    # -- delivery ----------------------------------------------------------

    def _publish(self, transition: Transition | None) -> list[Notification]:
        if transition is None:
            return []
        notes = notifications_for(transition)
        if self.outbound is not None:
            active = self.store.participant_ids()
            for note in notes:
                message = note.envelope()
                for channel_id in addressees(note, active):
                    self.outbound.send(channel_id, message)
        return notes
