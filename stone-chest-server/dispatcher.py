"""Map state transitions to addressed outbound notifications.

Everything here is pure: ``notifications_for`` turns a transition record into
the list of notifications it implies, and ``addressees`` resolves a
notification's audience against the channels that are Active right now.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from models import (
    ContainersReset,
    CountRequested,
    Joined,
    Left,
    Moved,
    Replenished,
    Shutdown,
    StatusTick,
    TokenPlaced,
    Transition,
)


class Audience(str, Enum):
    SENDER = "sender"
    OTHERS = "others"
    ALL = "all"


@dataclass(frozen=True)
class Notification:
    event: str
    payload: dict[str, object] = field(default_factory=dict)
    audience: Audience = Audience.ALL
    origin: str | None = None

    def envelope(self) -> dict[str, object]:
        return {"event": self.event, "data": self.payload}


def addressees(notification: Notification, active_ids: Iterable[str]) -> list[str]:
    active = list(active_ids)
    origin = notification.origin
    if notification.audience is Audience.SENDER:
        return [origin] if origin is not None and origin in active else []
    if notification.audience is Audience.OTHERS:
        return [cid for cid in active if cid != origin]
    return active


def _count(active_count: int) -> Notification:
    return Notification("count-updated", {"count": active_count}, Audience.ALL)


def notifications_for(transition: Transition) -> list[Notification]:
    if isinstance(transition, Joined):
        me = transition.participant
        pid = str(me["id"])
        own_fields = {k: v for k, v in me.items() if k != "id"}
        return [
            Notification(
                "init-snapshot",
                {
                    "playerId": pid,
                    **own_fields,
                    "maxTokens": transition.max_tokens,
                    "containers": transition.snapshot.containers,
                    "otherPlayers": transition.snapshot.others(pid),
                },
                Audience.SENDER,
                pid,
            ),
            Notification("participant-joined", dict(me), Audience.OTHERS, pid),
            _count(transition.active_count),
        ]

    if isinstance(transition, Moved):
        pid = transition.participant_id
        return [
            Notification(
                "participant-moved",
                {
                    "id": pid,
                    "x": transition.x,
                    "y": transition.y,
                    "z": transition.z,
                    "rotation": transition.rotation,
                },
                Audience.OTHERS,
                pid,
            )
        ]

    if isinstance(transition, TokenPlaced):
        pid = transition.participant_id
        return [
            Notification(
                "token-accepted",
                {
                    "containerId": transition.container_id,
                    "tokensLeft": transition.balance,
                    "containerTokens": transition.container_tokens,
                },
                Audience.SENDER,
                pid,
            ),
            Notification(
                "container-updated",
                {"id": transition.container_id, "tokens": transition.container_tokens},
                Audience.ALL,
                pid,
            ),
            Notification("balance-updated", {"id": pid, "tokens": transition.balance}, Audience.OTHERS, pid),
        ]

    if isinstance(transition, Replenished):
        pid = transition.participant_id
        return [
            Notification("tokens-replenished", {"tokens": transition.balance}, Audience.SENDER, pid),
            Notification("balance-updated", {"id": pid, "tokens": transition.balance}, Audience.OTHERS, pid),
        ]

    if isinstance(transition, CountRequested):
        return [
            Notification(
                "count-updated",
                {"count": transition.active_count},
                Audience.SENDER,
                transition.participant_id,
            )
        ]

    if isinstance(transition, Left):
        pid = transition.participant_id
        return [
            Notification("participant-left", {"id": pid}, Audience.OTHERS, pid),
            _count(transition.active_count),
        ]

    if isinstance(transition, ContainersReset):
        return [Notification("containers-reset", {"containers": transition.containers}, Audience.ALL)]

    if isinstance(transition, StatusTick):
        return [
            Notification(
                "server-status",
                {"count": transition.active_count, "uptime": transition.uptime_seconds},
                Audience.ALL,
            )
        ]

    if isinstance(transition, Shutdown):
        return [
            Notification(
                "server-shutdown",
                {"message": transition.message, "timestamp": transition.timestamp},
                Audience.ALL,
            )
        ]

    raise TypeError(f"unsupported transition: {type(transition).__name__}")
