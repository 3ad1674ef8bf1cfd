"""
Posting

Turns a completed draft into the ledger entries that represent it:

- a transfer becomes two linked legs (OUT of the origin, IN to the destination)
- a card purchase in N installments becomes N pending entries, one per
  statement, the remainder cent(s) on the last one
- anything else becomes a single entry
"""

from decimal import ROUND_DOWN, Decimal
from typing import Optional
from uuid import uuid4

from chatledger.ledger.billing import installment_due_dates, statement_due_date
from chatledger.ledger.errors import LedgerError
from chatledger.models.transaction import (
    CENT,
    Account,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionKind,
    TransactionStatus,
    TransferDirection,
    TRANSFER_CATEGORY,
    to_money,
)


def split_amount(total: Decimal, count: int) -> list[Decimal]:
    """
    Split `total` into `count` parts to the cent.

    Parts are rounded down and the last one takes the remainder, so the
    parts always add up to the total. When a part would be zero the total
    is not split at all.

    >>> split_amount(Decimal("100.00"), 3)
    [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')]
    """
    total = to_money(total)
    if count <= 1:
        return [total]
    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    if base <= 0:
        return [total]
    return [base] * (count - 1) + [total - base * (count - 1)]


def _check_complete(draft: TransactionDraft) -> None:
    missing = [
        name for name, value in (
            ("amount", draft.amount if draft.has_amount else None),
            ("account", draft.account),
            ("category", draft.category),
            ("payment_method", draft.payment_method),
        )
        if not value
    ]
    if draft.kind == TransactionKind.TRANSFER and not draft.destination_account:
        missing.append("destination_account")
    if missing:
        raise LedgerError(f"Draft is incomplete: missing {', '.join(missing)}")


def _transfer_legs(
    draft: TransactionDraft,
    origin: Account,
    destination: Account,
    registered_by: str,
) -> list[Transaction]:
    out_id, in_id = uuid4(), uuid4()
    common = dict(
        occurred_on=draft.occurred_on,
        description=draft.description,
        category=TRANSFER_CATEGORY,
        original_category=draft.original_category,
        kind=TransactionKind.TRANSFER,
        amount=draft.amount,
        payment_method=PaymentMethod.TRANSFER,
        status=TransactionStatus.POSTED,
        registered_by=registered_by,
    )
    return [
        Transaction(
            id=out_id,
            account=origin.name,
            counterpart_account=destination.name,
            transfer_direction=TransferDirection.OUT,
            linked_id=in_id,
            **common,
        ),
        Transaction(
            id=in_id,
            account=destination.name,
            counterpart_account=origin.name,
            transfer_direction=TransferDirection.IN,
            linked_id=out_id,
            **common,
        ),
    ]


def build_entries(
    draft: TransactionDraft,
    origin: Account,
    destination: Optional[Account] = None,
    registered_by: str = "",
) -> list[Transaction]:
    """
    Ledger entries for a completed draft.

    Raises:
        LedgerError: If the draft is incomplete or targets a consolidated invoice
    """
    _check_complete(draft)
    for account in (origin, destination):
        if account is not None and account.is_consolidated:
            raise LedgerError(f"{account.name} is a consolidated invoice and takes no direct entries")

    if draft.kind == TransactionKind.TRANSFER:
        if destination is None:
            raise LedgerError("Transfer needs a destination account")
        if destination.key == origin.key:
            raise LedgerError("Transfer origin and destination are the same account")
        return _transfer_legs(draft, origin, destination, registered_by)

    common = dict(
        occurred_on=draft.occurred_on,
        description=draft.description,
        category=draft.category,
        subcategory=draft.subcategory,
        original_category=draft.original_category,
        kind=draft.kind,
        payment_method=draft.payment_method,
        account=origin.name,
        registered_by=registered_by,
    )

    if not origin.is_card:
        return [Transaction(amount=draft.amount, status=TransactionStatus.POSTED, **common)]

    first_due = statement_due_date(
        draft.occurred_on,
        origin.closing_day,
        origin.due_day,
        origin.closing_policy,
    )
    # Refunds and other inflows on a card are never split
    count = 1 if draft.kind in (TransactionKind.INCOME, TransactionKind.INVESTMENT_SELL) else draft.installments
    amounts = split_amount(draft.amount, count)
    due_dates = installment_due_dates(first_due, len(amounts), origin.due_day)

    return [
        Transaction(
            amount=amount,
            installment_current=idx,
            installment_total=len(amounts),
            due_date=due_date,
            status=TransactionStatus.PENDING,
            **common,
        )
        for idx, (amount, due_date) in enumerate(zip(amounts, due_dates), start=1)
    ]
