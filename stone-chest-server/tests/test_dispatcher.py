"""Tests for the transition -> notification table."""

from __future__ import annotations

import pytest

from dispatcher import Audience, Notification, addressees, notifications_for
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
    WorldSnapshot,
)


def _shape(notes: list[Notification]) -> list[tuple[str, Audience]]:
    return [(n.event, n.audience) for n in notes]


def test_join_notifications() -> None:
    me = {"id": "a", "x": 1.0, "y": 1.0, "z": 2.0, "rotation": 0.5, "username": "A", "color": "#FFD166", "tokens": 5}
    other = {"id": "b", "x": 0.0, "y": 1.0, "z": 0.0, "rotation": 0.0, "username": "B", "color": "#06D6A0", "tokens": 3}
    snapshot = WorldSnapshot(
        participants={"a": me, "b": other},
        containers={"chest1": {"tokens": 2, "position": {"x": 10.0, "z": 10.0}}},
    )

    notes = notifications_for(Joined(participant=me, snapshot=snapshot, max_tokens=5, active_count=2))

    assert _shape(notes) == [
        ("init-snapshot", Audience.SENDER),
        ("participant-joined", Audience.OTHERS),
        ("count-updated", Audience.ALL),
    ]
    init = notes[0].payload
    assert init["playerId"] == "a"
    assert init["tokens"] == 5
    assert init["maxTokens"] == 5
    assert init["otherPlayers"] == {"b": other}
    assert init["containers"] == snapshot.containers
    assert "id" not in init
    assert notes[1].payload == me
    assert notes[2].payload == {"count": 2}
    assert all(n.origin == "a" for n in notes[:2])


def test_move_goes_to_others_only() -> None:
    notes = notifications_for(Moved(participant_id="a", x=1.0, y=2.0, z=3.0, rotation=0.25))
    assert _shape(notes) == [("participant-moved", Audience.OTHERS)]
    assert notes[0].payload == {"id": "a", "x": 1.0, "y": 2.0, "z": 3.0, "rotation": 0.25}


def test_token_placed_notifications() -> None:
    notes = notifications_for(TokenPlaced(participant_id="a", container_id="chest1", balance=4, container_tokens=1))

    assert _shape(notes) == [
        ("token-accepted", Audience.SENDER),
        ("container-updated", Audience.ALL),
        ("balance-updated", Audience.OTHERS),
    ]
    assert notes[0].payload == {"containerId": "chest1", "tokensLeft": 4, "containerTokens": 1}
    assert notes[1].payload == {"id": "chest1", "tokens": 1}
    assert notes[2].payload == {"id": "a", "tokens": 4}


def test_replenish_and_count_request() -> None:
    assert _shape(notifications_for(Replenished(participant_id="a", balance=5))) == [
        ("tokens-replenished", Audience.SENDER),
        ("balance-updated", Audience.OTHERS),
    ]
    notes = notifications_for(CountRequested(participant_id="a", active_count=3))
    assert _shape(notes) == [("count-updated", Audience.SENDER)]
    assert notes[0].payload == {"count": 3}


def test_leave_notifications() -> None:
    notes = notifications_for(Left(participant_id="a", username="A", reason="idle", discarded_tokens=2, active_count=1))
    assert _shape(notes) == [("participant-left", Audience.OTHERS), ("count-updated", Audience.ALL)]
    assert notes[0].payload == {"id": "a"}
    assert notes[1].payload == {"count": 1}


def test_server_wide_notifications() -> None:
    assert _shape(notifications_for(ContainersReset(containers={}))) == [("containers-reset", Audience.ALL)]
    status = notifications_for(StatusTick(active_count=4, uptime_seconds=90))
    assert status[0].payload == {"count": 4, "uptime": 90}
    shutdown = notifications_for(Shutdown(message="bye", timestamp="2026-01-01T00:00:00+00:00"))
    assert _shape(shutdown) == [("server-shutdown", Audience.ALL)]


def test_unknown_transition_rejected() -> None:
    with pytest.raises(TypeError):
        notifications_for(object())  # type: ignore[arg-type]


def test_addressees() -> None:
    active = ["a", "b", "c"]
    assert addressees(Notification("x", audience=Audience.SENDER, origin="b"), active) == ["b"]
    assert addressees(Notification("x", audience=Audience.SENDER, origin="gone"), active) == []
    assert addressees(Notification("x", audience=Audience.OTHERS, origin="b"), active) == ["a", "c"]
    assert addressees(Notification("x", audience=Audience.ALL, origin="b"), active) == active
    assert addressees(Notification("x", audience=Audience.OTHERS, origin="gone"), active) == active


def test_envelope() -> None:
    note = Notification("container-updated", {"id": "chest1", "tokens": 2})
    assert note.envelope() == {"event": "container-updated", "data": {"id": "chest1", "tokens": 2}}
