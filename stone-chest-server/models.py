"""World state dataclass definitions and transition records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ParticipantState:
    participant_id: str
    username: str
    color: str
    tokens: int
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0
    connected_at: datetime = field(default_factory=utc_now)
    last_active: datetime = field(default_factory=utc_now)

    def public_view(self) -> dict[str, object]:
        return {
            "id": self.participant_id,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "rotation": self.rotation,
            "username": self.username,
            "color": self.color,
            "tokens": self.tokens,
        }


@dataclass
class ContainerState:
    container_id: str
    x: float
    z: float
    tokens: int = 0

    def public_view(self) -> dict[str, object]:
        return {"tokens": self.tokens, "position": {"x": self.x, "z": self.z}}


@dataclass(frozen=True)
class WorldSnapshot:
    """Read-only composition of every participant and container at one instant."""

    participants: dict[str, dict[str, object]]
    containers: dict[str, dict[str, object]]

    def others(self, participant_id: str) -> dict[str, dict[str, object]]:
        return {pid: view for pid, view in self.participants.items() if pid != participant_id}


# ---------------------------------------------------------------------------
# Transition records
#
# One record per accepted state change. The dispatcher maps each of them to
# addressed notifications; counts are taken right after the change.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Joined:
    participant: dict[str, object]
    snapshot: WorldSnapshot
    max_tokens: int
    active_count: int


@dataclass(frozen=True)
class Moved:
    participant_id: str
    x: float
    y: float
    z: float
    rotation: float


@dataclass(frozen=True)
class TokenPlaced:
    participant_id: str
    container_id: str
    balance: int
    container_tokens: int


@dataclass(frozen=True)
class Replenished:
    participant_id: str
    balance: int


@dataclass(frozen=True)
class CountRequested:
    participant_id: str
    active_count: int


@dataclass(frozen=True)
class Left:
    participant_id: str
    username: str
    reason: str
    discarded_tokens: int
    active_count: int


@dataclass(frozen=True)
class ContainersReset:
    containers: dict[str, dict[str, object]]


@dataclass(frozen=True)
class StatusTick:
    active_count: int
    uptime_seconds: int


@dataclass(frozen=True)
class Shutdown:
    message: str
    timestamp: str


Transition = (
    Joined
    | Moved
    | TokenPlaced
    | Replenished
    | CountRequested
    | Left
    | ContainersReset
    | StatusTick
    | Shutdown
)
