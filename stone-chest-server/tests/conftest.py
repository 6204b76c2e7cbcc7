"""Pytest fixtures for stone chest server tests. Puts the server modules on sys.path."""

from __future__ import annotations

import random
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from engine import SessionEngine  # noqa: E402
from world_store import WorldStore  # noqa: E402


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class RecordingOutbound:
    """Collects what the engine would have delivered, per channel."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.closed: list[str] = []

    def send(self, channel_id: str, message: dict[str, Any]) -> bool:
        self.sent.append((channel_id, message))
        return True

    def close(self, channel_id: str) -> None:
        self.closed.append(channel_id)

    def events_for(self, channel_id: str) -> list[str]:
        return [str(m["event"]) for cid, m in self.sent if cid == channel_id]

    def messages_for(self, channel_id: str, event: str) -> list[dict[str, Any]]:
        return [m["data"] for cid, m in self.sent if cid == channel_id and m["event"] == event]

    def clear(self) -> None:
        self.sent.clear()
        self.closed.clear()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> WorldStore:
    return WorldStore()


@pytest.fixture()
def outbound() -> RecordingOutbound:
    return RecordingOutbound()


@pytest.fixture()
def engine(store: WorldStore, outbound: RecordingOutbound, clock: FakeClock) -> SessionEngine:
    return SessionEngine(
        store=store,
        outbound=outbound,
        clock=clock,
        rng=random.Random(7),
        idle_timeout_seconds=600,
    )
