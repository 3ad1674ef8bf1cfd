"""
Core Data Models for Chat Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Money is always Decimal with two places.
Float amounts only exist inside the amount parser; everything that touches
a balance is exact, so full recompute and incremental updates agree.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

CENT = Decimal("0.01")
DESCRIPTION_MAX_LENGTH = 200


def to_money(value) -> Decimal:
    """Quantize any numeric value to a two-place Decimal."""
    return Decimal(str(value)).quantize(CENT)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """What kind of money movement a message describes."""
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"
    INVESTMENT_BUY = "investment_buy"
    INVESTMENT_SELL = "investment_sell"


class TransactionStatus(str, Enum):
    """
    Ledger entry status.

    Reversed entries stay in the log but no longer count towards balances.
    """
    POSTED = "posted"      # Settled against a checking/cash account
    PENDING = "pending"    # Charged to a card, awaiting invoice payment
    REVERSED = "reversed"


class TransferDirection(str, Enum):
    """Which leg of a transfer an entry is."""
    OUT = "out"
    IN = "in"


class AccountKind(str, Enum):
    """
    Supported account kinds.

    CONSOLIDATED_INVOICE is virtual: it only aggregates the pending totals
    of the cards grouped under it and never receives direct entries.
    """
    CHECKING = "checking"
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    CONSOLIDATED_INVOICE = "consolidated_invoice"


class ClosingPolicy(str, Enum):
    """How a card assigns purchases to a statement."""
    STANDARD = "standard"                  # After the closing day -> next statement
    PREVIOUS_CLOSING = "previous_closing"  # Always the transaction's own month


class LexiconTag(str, Enum):
    """Row tags of the editable keyword table."""
    KIND = "kind"
    PAYMENT_METHOD = "payment_method"
    SUBCATEGORY = "subcategory"


class PaymentMethod:
    """Well-known payment method values (the lexicon may add more)."""
    NONE = "none"
    CREDIT = "credit"
    DEBIT = "debit"
    CASH = "cash"
    TRANSFER = "transfer"


TRANSFER_CATEGORY = "Transfer"

INFLOW_KINDS = frozenset({TransactionKind.INCOME, TransactionKind.INVESTMENT_SELL})
OUTFLOW_KINDS = frozenset({TransactionKind.EXPENSE, TransactionKind.INVESTMENT_BUY})


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(BaseModel):
    """
    A ledger account.

    Looked up by its normalized name (accent and case insensitive).
    `balance` is the stored running value: the balance for checking/cash,
    the pending invoice total for cards and consolidated invoices.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    aliases: list[str] = Field(
        default_factory=list,
        description="Secondary names users may type"
    )
    kind: AccountKind = AccountKind.CHECKING
    opening_balance: Decimal = Field(default=Decimal("0.00"), decimal_places=2)
    balance: Decimal = Field(
        default=Decimal("0.00"),
        decimal_places=2,
        description="Stored running value; checking/cash accounts start from opening_balance"
    )
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    closing_policy: ClosingPolicy = ClosingPolicy.STANDARD
    parent: Optional[str] = Field(
        default=None,
        description="Consolidated-invoice account this card rolls up into"
    )

    @property
    def key(self) -> str:
        """Normalized lookup key."""
        from chatledger.interpretation.normalizer import keyword_profile
        return keyword_profile(self.name)

    @property
    def is_card(self) -> bool:
        return self.kind == AccountKind.CREDIT_CARD

    @property
    def is_consolidated(self) -> bool:
        return self.kind == AccountKind.CONSOLIDATED_INVOICE

    @model_validator(mode='before')
    @classmethod
    def default_balance(cls, data):
        """An account with no stored value yet holds its opening balance."""
        if isinstance(data, dict) and data.get("balance") in (None, ""):
            data = {k: v for k, v in data.items() if k != "balance"}
            kind = data.get("kind", AccountKind.CHECKING)
            if kind in (AccountKind.CHECKING, AccountKind.CASH):
                data["balance"] = data.get("opening_balance") or Decimal("0.00")
        return data

    @model_validator(mode='after')
    def validate_billing_cycle(self) -> 'Account':
        """Cards need a billing cycle to compute due dates."""
        if self.is_card and (self.closing_day is None or self.due_day is None):
            raise ValueError("Credit card accounts need closing_day and due_day")
        if self.is_consolidated and self.parent:
            raise ValueError("A consolidated invoice cannot have a parent")
        return self


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry.

    A transfer is always stored as two entries (OUT of the origin, IN to
    the destination) that point at each other through `linked_id`.
    An installment purchase is stored as one entry per installment.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(default_factory=uuid4)

    occurred_on: date = Field(
        ...,
        description="Transaction date (drives chronological recompute)"
    )
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    category: str = Field(..., min_length=1, max_length=100)
    subcategory: Optional[str] = Field(default=None, max_length=100)
    original_category: Optional[str] = Field(
        default=None,
        description="Category detected from the message before any correction"
    )
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: str = Field(default=PaymentMethod.NONE)
    account: str = Field(..., min_length=1)

    # Transfers
    counterpart_account: Optional[str] = None
    transfer_direction: Optional[TransferDirection] = None
    linked_id: Optional[UUID] = None

    # Installments
    installment_current: int = Field(default=1, ge=1)
    installment_total: int = Field(default=1, ge=1)
    due_date: Optional[date] = None

    status: TransactionStatus = TransactionStatus.POSTED
    registered_by: str = Field(default="", description="Conversation that registered it")
    registered_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        if isinstance(v, (int, float, str)):
            return to_money(v)
        return v

    @model_validator(mode='after')
    def validate_shape(self) -> 'Transaction':
        """Validate transfer legs and installment numbering."""
        if self.kind == TransactionKind.TRANSFER:
            if self.transfer_direction is None or not self.counterpart_account:
                raise ValueError("Transfer entries need a direction and a counterpart account")
        elif self.transfer_direction is not None:
            raise ValueError("Only transfer entries carry a direction")

        if self.installment_current > self.installment_total:
            raise ValueError("Installment number cannot exceed the installment count")

        return self

    @property
    def is_inflow(self) -> bool:
        """Does money enter `account` with this entry?"""
        if self.kind == TransactionKind.TRANSFER:
            return self.transfer_direction == TransferDirection.IN
        return self.kind in INFLOW_KINDS


# =============================================================================
# INTERPRETATION MODELS
# =============================================================================

class LexiconRow(BaseModel):
    """
    One row of the editable keyword table.

    Columns: tag, keyword, interpreted value, optional required kind.
    For SUBCATEGORY rows the value is "Category > Subcategory".
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    tag: LexiconTag
    keyword: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)
    required_kind: Optional[TransactionKind] = None

    @field_validator('required_kind', mode='before')
    @classmethod
    def blank_kind_is_none(cls, v):
        if v == "":
            return None
        return v

    def category_parts(self) -> tuple[str, Optional[str]]:
        """Split a "Category > Subcategory" value."""
        category, _, subcategory = self.value.partition(">")
        return category.strip(), (subcategory.strip() or None)


class LearnedAssociation(BaseModel):
    """A keyword -> category mapping reinforced by user corrections."""

    keyword: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    confidence: int = Field(default=1, ge=1)
    last_updated: datetime = Field(default_factory=datetime.utcnow)


class TransactionDraft(BaseModel):
    """
    A partially interpreted transaction.

    Every field the dialogue may ask for is optional here; a draft becomes
    ledger entries only once the dialogue machine finds nothing missing.
    """

    kind: TransactionKind
    amount: Optional[Decimal] = None
    account: Optional[str] = None
    destination_account: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    original_category: Optional[str] = None
    payment_method: Optional[str] = None
    installments: int = Field(default=1, ge=1)
    description: str
    occurred_on: date
    message: str = Field(default="", description="Original message text")

    @property
    def has_amount(self) -> bool:
        return self.amount is not None and self.amount > 0


# =============================================================================
# DERIVED BALANCES
# =============================================================================

class AccountBalance(BaseModel):
    """Per-account figures produced by a full recompute."""

    account: str
    kind: AccountKind
    balance: Decimal = Decimal("0.00")
    pending_total: Decimal = Decimal("0.00")
    current_statement: Decimal = Decimal("0.00")

    @property
    def stored_value(self) -> Decimal:
        """The value written back to the account row."""
        if self.kind in (AccountKind.CREDIT_CARD, AccountKind.CONSOLIDATED_INVOICE):
            return self.pending_total
        return self.balance


class AccountBalanceSnapshot(BaseModel):
    """
    Read-only result of a full recompute.

    Passed explicitly to whoever needs balances; never shared globally.
    """
    model_config = ConfigDict(frozen=True)

    as_of: date
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    balances: dict[str, AccountBalance] = Field(default_factory=dict)
    transaction_count: int = 0

    def get(self, account_name: str) -> Optional[AccountBalance]:
        from chatledger.interpretation.normalizer import keyword_profile
        return self.balances.get(keyword_profile(account_name))
