"""
Dialogue Models for Chat Ledger

A clarification in progress is a DialogueState: the draft being filled plus
exactly one pending question. The pending question is a tagged variant, one
model per missing field, each carrying only what resolving that field needs.

DESIGN DECISION: These models round-trip through JSON because the dialogue
must survive between independent invocations. The ephemeral store only ever
holds `DialogueState.model_dump_json()` output.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from chatledger.models.transaction import TransactionDraft


class AwaitingAmount(BaseModel):
    """The amount was missing or not positive."""
    waiting_for: Literal["amount"] = "amount"

    @property
    def options(self) -> list[str]:
        return []


class AwaitingAccount(BaseModel):
    """No account (or transfer origin) could be resolved."""
    waiting_for: Literal["account"] = "account"
    options: list[str] = Field(default_factory=list)


class AwaitingDestination(BaseModel):
    """A transfer has an origin but no destination."""
    waiting_for: Literal["destination"] = "destination"
    options: list[str] = Field(default_factory=list)


class AwaitingCategory(BaseModel):
    """No category could be resolved."""
    waiting_for: Literal["category"] = "category"
    options: list[str] = Field(default_factory=list)


class AwaitingSubcategory(BaseModel):
    """The category is known but has several subcategories."""
    waiting_for: Literal["subcategory"] = "subcategory"
    category: str
    options: list[str] = Field(default_factory=list)


class AwaitingMethod(BaseModel):
    """No payment method could be resolved."""
    waiting_for: Literal["method"] = "method"
    options: list[str] = Field(default_factory=list)


PendingField = Annotated[
    Union[
        AwaitingAmount,
        AwaitingAccount,
        AwaitingDestination,
        AwaitingCategory,
        AwaitingSubcategory,
        AwaitingMethod,
    ],
    Field(discriminator="waiting_for"),
]


class DialogueState(BaseModel):
    """
    One active clarification for one conversation.

    Created when a required field cannot be resolved, replaced on every
    accepted answer, removed on completion, cancellation or expiry.
    """

    conversation_id: str
    origin_message_id: str
    draft: TransactionDraft
    pending: PendingField
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DialogueStatus(str, Enum):
    """Result of feeding one input to the dialogue machine."""
    AWAITING = "awaiting"      # A (new) question was asked
    REPROMPT = "reprompt"      # The answer did not resolve the field
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DialogueReply(BaseModel):
    """What the dialogue machine decided for one input."""

    status: DialogueStatus
    state: Optional[DialogueState] = None
    draft: Optional[TransactionDraft] = None
    prompt: str = ""
    options: list[str] = Field(default_factory=list)
