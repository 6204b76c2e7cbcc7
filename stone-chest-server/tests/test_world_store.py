"""Tests for the authoritative world store."""

from __future__ import annotations

import pytest

from models import ParticipantState
from world_store import WorldStore


def _participant(pid: str = "p1", tokens: int = 5) -> ParticipantState:
    return ParticipantState(participant_id=pid, username=f"user-{pid}", color="#FF6B6B", tokens=tokens)


def test_starts_with_fixed_containers_at_zero(store: WorldStore) -> None:
    containers = store.containers_view()
    assert set(containers) == {"chest1", "chest2", "chest3", "chest4"}
    assert all(c["tokens"] == 0 for c in containers.values())
    assert containers["chest2"]["position"] == {"x": -10.0, "z": 10.0}


def test_missing_records_are_none(store: WorldStore) -> None:
    assert store.get_participant("ghost") is None
    assert store.get_container("chest99") is None
    assert store.update_participant("ghost", x=1.0) is None
    assert store.remove_participant("ghost") is None
    assert store.refill_tokens("ghost") is None


def test_add_participant_rejects_duplicate_id(store: WorldStore) -> None:
    assert store.add_participant(_participant("p1", tokens=5))
    assert not store.add_participant(_participant("p1", tokens=1))
    fetched = store.get_participant("p1")
    assert fetched is not None
    assert fetched.tokens == 5
    assert store.participant_count() == 1


def test_reads_are_copies(store: WorldStore) -> None:
    store.add_participant(_participant("p1"))
    copy = store.get_participant("p1")
    assert copy is not None
    copy.tokens = 0
    copy.x = 999.0

    fresh = store.get_participant("p1")
    assert fresh is not None
    assert fresh.tokens == 5
    assert fresh.x == 0.0


def test_update_participant_only_allows_position_and_activity(store: WorldStore) -> None:
    store.add_participant(_participant("p1"))
    updated = store.update_participant("p1", x=1.5, rotation=3.0)
    assert updated is not None
    assert (updated.x, updated.rotation) == (1.5, 3.0)

    with pytest.raises(ValueError):
        store.update_participant("p1", tokens=99)


def test_transfer_moves_exactly_one_token(store: WorldStore) -> None:
    store.add_participant(_participant("p1", tokens=2))
    before = store.token_total()

    result = store.transfer_token("p1", "chest3")

    assert result is not None
    participant, container = result
    assert participant.tokens == 1
    assert container.tokens == 1
    assert store.token_total() == before


def test_transfer_with_empty_balance_changes_nothing(store: WorldStore) -> None:
    store.add_participant(_participant("p1", tokens=0))
    assert store.transfer_token("p1", "chest1") is None
    chest = store.get_container("chest1")
    assert chest is not None and chest.tokens == 0


def test_transfer_to_unknown_container_changes_nothing(store: WorldStore) -> None:
    store.add_participant(_participant("p1", tokens=3))
    assert store.transfer_token("p1", "vault") is None
    participant = store.get_participant("p1")
    assert participant is not None and participant.tokens == 3


def test_refill_and_reset_break_conservation_deliberately(store: WorldStore) -> None:
    store.add_participant(_participant("p1", tokens=5))
    store.transfer_token("p1", "chest1")
    store.transfer_token("p1", "chest1")
    assert store.token_total() == 5

    refilled = store.refill_tokens("p1")
    assert refilled is not None and refilled.tokens == store.max_tokens
    assert store.token_total() == 7

    view = store.reset_containers()
    assert view["chest1"]["tokens"] == 0
    assert store.token_total() == 5


def test_snapshot_is_frozen_in_time(store: WorldStore) -> None:
    store.add_participant(_participant("p1"))
    store.add_participant(_participant("p2"))
    snap = store.snapshot()

    store.transfer_token("p1", "chest1")

    assert snap.participants["p1"]["tokens"] == 5
    assert snap.containers["chest1"]["tokens"] == 0
    assert set(snap.others("p1")) == {"p2"}


def test_custom_layout_and_limit() -> None:
    store = WorldStore(container_layout={"only": (0, 0)}, max_tokens=2)
    assert list(store.containers_view()) == ["only"]
    assert store.max_tokens == 2
    with pytest.raises(ValueError):
        WorldStore(max_tokens=-1)
