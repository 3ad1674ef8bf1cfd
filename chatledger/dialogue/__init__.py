"""Multi-turn clarification of incomplete transactions."""

from chatledger.dialogue.machine import DialogueMachine, is_cancel
from chatledger.dialogue.store import DialogueStateStore, state_key

__all__ = [
    "DialogueMachine",
    "DialogueStateStore",
    "is_cancel",
    "state_key",
]
