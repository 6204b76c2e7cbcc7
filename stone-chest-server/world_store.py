"""Authoritative in-memory world state."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import replace

import game_config as config
from models import ContainerState, ParticipantState, WorldSnapshot

_UPDATABLE_FIELDS = frozenset({"x", "y", "z", "rotation", "last_active"})


class WorldStore:
    """Owns every participant and container record.

    All reads hand out copies and all writes go through the methods below,
    each of which holds the store lock for its whole body. Missing records
    come back as ``None`` so callers can treat a raced disconnect as a no-op.
    """

    def __init__(
        self,
        container_layout: Mapping[str, tuple[float, float]] | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._max_tokens = config.MAX_TOKENS if max_tokens is None else max_tokens
        if self._max_tokens < 0:
            raise ValueError("max_tokens must be >= 0")
        layout = config.CONTAINER_LAYOUT if container_layout is None else container_layout
        self._participants: dict[str, ParticipantState] = {}
        self._containers: dict[str, ContainerState] = {
            container_id: ContainerState(container_id=container_id, x=float(x), z=float(z))
            for container_id, (x, z) in layout.items()
        }

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    # -- participants ------------------------------------------------------

    def add_participant(self, participant: ParticipantState) -> bool:
        with self._lock:
            if participant.participant_id in self._participants:
                return False
            self._participants[participant.participant_id] = replace(participant)
            return True

    def get_participant(self, participant_id: str) -> ParticipantState | None:
        with self._lock:
            participant = self._participants.get(participant_id)
            return replace(participant) if participant else None

    def has_participant(self, participant_id: str) -> bool:
        with self._lock:
            return participant_id in self._participants

    def update_participant(self, participant_id: str, **changes: object) -> ParticipantState | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update participant fields: {sorted(unknown)}")
        with self._lock:
            participant = self._participants.get(participant_id)
            if not participant:
                return None
            for name, value in changes.items():
                setattr(participant, name, value)
            return replace(participant)

    def remove_participant(self, participant_id: str) -> ParticipantState | None:
        with self._lock:
            return self._participants.pop(participant_id, None)

    def participant_ids(self) -> list[str]:
        with self._lock:
            return list(self._participants.keys())

    def participant_count(self) -> int:
        with self._lock:
            return len(self._participants)

    def list_participants(self) -> list[ParticipantState]:
        with self._lock:
            return [replace(p) for p in self._participants.values()]

    # -- containers --------------------------------------------------------

    def get_container(self, container_id: str) -> ContainerState | None:
        with self._lock:
            container = self._containers.get(container_id)
            return replace(container) if container else None

    def containers_view(self) -> dict[str, dict[str, object]]:
        with self._lock:
            return {cid: c.public_view() for cid, c in self._containers.items()}

    # -- token accounting --------------------------------------------------

    def transfer_token(
        self, participant_id: str, container_id: str
    ) -> tuple[ParticipantState, ContainerState] | None:
        """Move one token from a participant into a container, or do nothing."""
        with self._lock:
            participant = self._participants.get(participant_id)
            container = self._containers.get(container_id)
            if not participant or not container or participant.tokens <= 0:
                return None
            participant.tokens -= 1
            container.tokens += 1
            return replace(participant), replace(container)

    def refill_tokens(self, participant_id: str) -> ParticipantState | None:
        with self._lock:
            participant = self._participants.get(participant_id)
            if not participant:
                return None
            participant.tokens = self._max_tokens
            return replace(participant)

    def reset_containers(self) -> dict[str, dict[str, object]]:
        with self._lock:
            for container in self._containers.values():
                container.tokens = 0
            return {cid: c.public_view() for cid, c in self._containers.items()}

    def token_total(self) -> int:
        with self._lock:
            return sum(p.tokens for p in self._participants.values()) + sum(
                c.tokens for c in self._containers.values()
            )

    def snapshot(self) -> WorldSnapshot:
        with self._lock:
            return WorldSnapshot(
                participants={pid: p.public_view() for pid, p in self._participants.items()},
                containers={cid: c.public_view() for cid, c in self._containers.items()},
            )
