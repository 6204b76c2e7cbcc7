"""Per-connection lifecycle: join, activity tracking, leave and idle eviction."""

from __future__ import annotations

import logging
import math
import random
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

import game_config as config
from models import CountRequested, Joined, Left, Moved, ParticipantState, utc_now
from world_store import WorldStore

log = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u2028-\u202f\u2060-\u206f\ufeff]")


def safe_float(value: object, default: float) -> float:
    """Convert a payload value to a finite float, or return ``default``."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return number


def sanitize_name(raw: object, channel_id: str) -> str:
    fallback = f"Player_{channel_id[:5]}"
    if not isinstance(raw, str):
        return fallback
    name = _CONTROL_CHARS.sub("", raw)
    name = " ".join(name.split())
    name = name[: config.MAX_NAME_LENGTH].strip()
    return name or fallback


class SessionManager:
    """Moves channels through Unjoined -> Active -> Closed.

    A channel is Active while the store holds its participant. Closed is
    terminal: a channel that left or was evicted cannot join again.
    """

    def __init__(
        self,
        store: WorldStore,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
        palette: Sequence[str] = config.COLOR_PALETTE,
        world_extent: float = config.WORLD_EXTENT,
    ) -> None:
        if not palette:
            raise ValueError("palette must not be empty")
        self._store = store
        self._clock = clock
        self._rng = rng or random.Random()
        self._palette = tuple(palette)
        self._world_extent = world_extent
        self._closed: set[str] = set()

    def is_active(self, channel_id: str) -> bool:
        return self._store.has_participant(channel_id)

    def join(self, channel_id: str, requested_name: object = None) -> Joined | None:
        if channel_id in self._closed or self._store.has_participant(channel_id):
            log.debug("join from %s ignored: channel already joined or closed", channel_id)
            return None

        now = self._clock()
        extent = self._world_extent
        participant = ParticipantState(
            participant_id=channel_id,
            username=sanitize_name(requested_name, channel_id),
            color=self._rng.choice(self._palette),
            tokens=self._store.max_tokens,
            x=self._rng.uniform(-extent, extent),
            y=config.SPAWN_HEIGHT,
            z=self._rng.uniform(-extent, extent),
            rotation=self._rng.uniform(0.0, 2 * math.pi),
            connected_at=now,
            last_active=now,
        )
        if not self._store.add_participant(participant):
            return None

        log.info("%s joined (%s)", participant.username, channel_id)
        return Joined(
            participant=participant.public_view(),
            snapshot=self._store.snapshot(),
            max_tokens=self._store.max_tokens,
            active_count=self._store.participant_count(),
        )

    def touch(self, channel_id: str) -> bool:
        return self._store.update_participant(channel_id, last_active=self._clock()) is not None

    def move(self, channel_id: str, data: Mapping[str, object]) -> Moved | None:
        current = self._store.get_participant(channel_id)
        if current is None:
            return None
        updated = self._store.update_participant(
            channel_id,
            x=safe_float(data.get("x"), current.x),
            y=safe_float(data.get("y"), current.y),
            z=safe_float(data.get("z"), current.z),
            rotation=safe_float(data.get("rotation"), current.rotation),
            last_active=self._clock(),
        )
        if updated is None:
            return None
        return Moved(
            participant_id=channel_id,
            x=updated.x,
            y=updated.y,
            z=updated.z,
            rotation=updated.rotation,
        )

    def request_count(self, channel_id: str) -> CountRequested | None:
        if not self._store.has_participant(channel_id):
            return None
        return CountRequested(participant_id=channel_id, active_count=self._store.participant_count())

    def leave(self, channel_id: str, reason: str = "disconnect") -> Left | None:
        participant = self._store.remove_participant(channel_id)
        if participant is None:
            return None
        self._closed.add(channel_id)
        log.info(
            "%s left (%s, reason=%s, %d tokens discarded)",
            participant.username,
            channel_id,
            reason,
            participant.tokens,
        )
        return Left(
            participant_id=channel_id,
            username=participant.username,
            reason=reason,
            discarded_tokens=participant.tokens,
            active_count=self._store.participant_count(),
        )

    def forget(self, channel_id: str) -> None:
        """Drop Closed bookkeeping once the connection itself is gone."""
        self._closed.discard(channel_id)

    def evict_idle(self, now: datetime, threshold_seconds: float) -> list[Left]:
        stale = [
            p.participant_id
            for p in self._store.list_participants()
            if (now - p.last_active).total_seconds() > threshold_seconds
        ]
        evicted: list[Left] = []
        for channel_id in stale:
            left = self.leave(channel_id, reason="idle")
            if left is not None:
                evicted.append(left)
        return evicted
