"""Token transfers between participants and containers."""

from __future__ import annotations

import logging

from models import ContainersReset, Replenished, TokenPlaced
from world_store import WorldStore

log = logging.getLogger(__name__)


def place_token(store: WorldStore, participant_id: str, container_id: object) -> TokenPlaced | None:
    """Deposit one of the participant's tokens into a container.

    Returns ``None`` without touching state when the participant is gone,
    has an empty balance, or names a container that does not exist.
    """
    if not isinstance(container_id, str) or not container_id:
        log.debug("place-token from %s ignored: bad container id %r", participant_id, container_id)
        return None

    result = store.transfer_token(participant_id, container_id)
    if result is None:
        log.debug("place-token from %s into %s rejected", participant_id, container_id)
        return None

    participant, container = result
    log.info(
        "transfer: %s -> %s (balance=%d, container=%d)",
        participant.username,
        container_id,
        participant.tokens,
        container.tokens,
    )
    return TokenPlaced(
        participant_id=participant_id,
        container_id=container_id,
        balance=participant.tokens,
        container_tokens=container.tokens,
    )


def replenish(store: WorldStore, participant_id: str) -> Replenished | None:
    participant = store.refill_tokens(participant_id)
    if participant is None:
        return None
    log.warning(
        "conservation bypass: refill set %s balance to %d",
        participant.username,
        participant.tokens,
    )
    return Replenished(participant_id=participant_id, balance=participant.tokens)


def reset_containers(store: WorldStore) -> ContainersReset:
    containers = store.reset_containers()
    log.warning("conservation bypass: all %d containers reset to zero", len(containers))
    return ContainersReset(containers=containers)
