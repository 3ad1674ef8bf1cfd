"""
Channel Message Models

Inbound events arrive either as free text or as an "option selected"
signal pointing into the last option list the user was shown.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class InboundEvent(BaseModel):
    """A single inbound event from the message channel."""

    event_id: str = Field(..., min_length=1, description="Channel-unique event id")
    conversation_id: str = Field(..., min_length=1)
    text: Optional[str] = None
    selected_option: Optional[int] = Field(
        default=None,
        ge=0,
        description="0-based index into the last offered option list"
    )
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_payload(self) -> 'InboundEvent':
        if self.selected_option is None and not (self.text or "").strip():
            raise ValueError("An inbound event needs text or a selected option")
        return self

    @property
    def is_option_selection(self) -> bool:
        return self.selected_option is not None


class OutboundMessage(BaseModel):
    """A reply to be delivered through the message channel."""

    conversation_id: str
    text: str
    options: list[str] = Field(default_factory=list)
    in_reply_to: Optional[str] = None
