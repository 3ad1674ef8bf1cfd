"""
Message Channel Interface

The channel delivers replies to the user. Formatting and transport belong
to the channel; the conversation flow only hands over text and options.
"""

from abc import ABC, abstractmethod
from typing import Optional

from chatledger.models.messages import OutboundMessage


class MessageChannel(ABC):
    """Abstract outbound message channel."""

    @abstractmethod
    def send(
        self,
        conversation_id: str,
        text: str,
        options: Optional[list[str]] = None,
    ) -> None:
        """
        Deliver a reply.

        Args:
            conversation_id: Conversation to reply in
            text: Reply text
            options: Choices the user can pick by index
        """
        pass


class RecordingChannel(MessageChannel):
    """Keeps every reply in memory (tests and the Streamlit page read them back)."""

    def __init__(self):
        self.sent: list[OutboundMessage] = []

    def send(
        self,
        conversation_id: str,
        text: str,
        options: Optional[list[str]] = None,
    ) -> None:
        self.sent.append(OutboundMessage(
            conversation_id=conversation_id,
            text=text,
            options=list(options or []),
        ))

    def for_conversation(self, conversation_id: str) -> list[OutboundMessage]:
        return [m for m in self.sent if m.conversation_id == conversation_id]
