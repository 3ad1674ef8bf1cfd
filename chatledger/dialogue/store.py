"""
Dialogue State Persistence

At most one clarification per conversation, kept in the ephemeral store
under `dialogue:{conversation_id}` and expiring after the dialogue TTL.
An expired state is simply absent: the next message is treated as fresh.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from chatledger.models.dialogue import DialogueState
from chatledger.services.storage.interface import EphemeralStore

logger = structlog.get_logger("chatledger.dialogue")


def state_key(conversation_id: str) -> str:
    return f"dialogue:{conversation_id}"


class DialogueStateStore:
    """Load, save and drop DialogueStates as JSON."""

    def __init__(self, ephemeral: EphemeralStore, ttl_seconds: int = 900):
        self._ephemeral = ephemeral
        self._ttl = ttl_seconds

    def load(self, conversation_id: str) -> Optional[DialogueState]:
        """The active state, or None when there is none (or it expired)."""
        raw = self._ephemeral.get(state_key(conversation_id))
        if raw is None:
            return None
        try:
            return DialogueState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "dialogue_state_discarded",
                conversation_id=conversation_id,
                error=str(e),
            )
            self.remove(conversation_id)
            return None

    def save(self, state: DialogueState) -> None:
        """Replace the conversation's state and restart its TTL."""
        self._ephemeral.put(
            state_key(state.conversation_id),
            state.model_dump_json(),
            self._ttl,
        )

    def remove(self, conversation_id: str) -> None:
        self._ephemeral.remove(state_key(conversation_id))
