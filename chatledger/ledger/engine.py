"""
Ledger Reconciliation Engine

Keeps every account's stored value consistent with the transaction log.

Two paths lead to the same numbers:

1. Full recompute - start from opening balances, replay every
   non-reversed entry in date order, write every account back.
2. Incremental - read one account's stored value, add the signed delta
   of a single new (or reversed) entry, write it back.

Stored value per account kind:
- checking / cash: the balance (inflows add, outflows subtract)
- credit card: the pending invoice total (outflows add, inflows subtract)
- consolidated invoice: sum of the pending totals of the cards under it

DESIGN DECISION: Every mutation runs under one ledger-wide lock with a
bounded wait. When the wait runs out nothing has been applied yet and
LedgerLockTimeout is raised, so the caller can just ask the user to retry.
Amounts are Decimal throughout, so both paths agree to the cent.
"""

import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterable, Iterator, Optional
from uuid import UUID

import structlog
from dateutil.relativedelta import relativedelta

from chatledger.audit.logger import AuditLogger
from chatledger.interpretation.normalizer import keyword_profile
from chatledger.ledger.errors import LedgerError, LedgerLockTimeout
from chatledger.ledger.posting import build_entries
from chatledger.models.transaction import (
    Account,
    AccountBalance,
    AccountBalanceSnapshot,
    Transaction,
    TransactionDraft,
    TransactionStatus,
    to_money,
)
from chatledger.services.storage.interface import (
    AccountRepository,
    NotFoundError,
    StorageError,
    TransactionRepository,
)

logger = structlog.get_logger("chatledger.ledger")


def signed_delta(transaction: Transaction, account: Account) -> Decimal:
    """Change `transaction` makes to `account`'s stored value."""
    amount = to_money(transaction.amount)
    if account.is_card:
        return -amount if transaction.is_inflow else amount
    return amount if transaction.is_inflow else -amount


def _in_month(value: Optional[date], month_start: date) -> bool:
    return value is not None and (value.year, value.month) == (month_start.year, month_start.month)


def compute_balances(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    as_of: date,
) -> AccountBalanceSnapshot:
    """
    Replay the whole log from opening balances.

    Pure: reads nothing, writes nothing. Reversed entries are skipped,
    the rest are applied in occurred_on order (stable on log order).
    A card outflow due in the month after `as_of` also counts towards
    the card's current statement.
    """
    accounts = list(accounts)
    balances: dict[str, AccountBalance] = {
        account.key: AccountBalance(
            account=account.name,
            kind=account.kind,
            balance=to_money(account.opening_balance),
        )
        for account in accounts
    }
    by_key = {account.key: account for account in accounts}
    statement_month = as_of.replace(day=1) + relativedelta(months=1)

    active = [t for t in transactions if t.status != TransactionStatus.REVERSED]
    active.sort(key=lambda t: t.occurred_on)

    for transaction in active:
        key = keyword_profile(transaction.account)
        account = by_key.get(key)
        if account is None:
            logger.warning("entry_for_unknown_account", transaction_id=str(transaction.id),
                           account=transaction.account)
            continue
        if account.is_consolidated:
            logger.warning("direct_entry_on_consolidated_invoice", transaction_id=str(transaction.id),
                           account=account.name)
            continue

        balance = balances[key]
        delta = signed_delta(transaction, account)
        if account.is_card:
            balance.pending_total += delta
            if not transaction.is_inflow and _in_month(transaction.due_date, statement_month):
                balance.current_statement += transaction.amount
        else:
            balance.balance += delta

    for account in accounts:
        if not account.is_card or not account.parent:
            continue
        parent_key = keyword_profile(account.parent)
        parent = balances.get(parent_key)
        if parent is None or not by_key[parent_key].is_consolidated:
            logger.warning("card_parent_not_consolidated", card=account.name, parent=account.parent)
            continue
        card = balances[account.key]
        parent.pending_total += card.pending_total
        parent.current_statement += card.current_statement

    return AccountBalanceSnapshot(
        as_of=as_of,
        balances=balances,
        transaction_count=len(active),
    )


class LedgerEngine:
    """
    The only writer of balances.

    Example:
        engine = LedgerEngine(accounts_repo, transactions_repo)
        entries = engine.post_draft(draft, conversation_id="chat-1")
        snapshot = engine.full_recompute()
    """

    def __init__(
        self,
        accounts: AccountRepository,
        transactions: TransactionRepository,
        lock: Optional[threading.Lock] = None,
        lock_timeout_seconds: float = 30.0,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._accounts = accounts
        self._transactions = transactions
        self._lock = lock or threading.Lock()
        self._lock_timeout = lock_timeout_seconds
        self._audit = audit_logger

    @contextmanager
    def _locked(self, operation: str, conversation_id: Optional[str] = None) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            if self._audit:
                self._audit.log_lock_timeout(operation, self._lock_timeout, conversation_id)
            raise LedgerLockTimeout(
                f"Ledger busy: could not start '{operation}' within {self._lock_timeout}s"
            )
        try:
            yield
        finally:
            self._lock.release()

    # =========================================================================
    # POSTING
    # =========================================================================

    def post_draft(self, draft: TransactionDraft, conversation_id: str = "") -> list[Transaction]:
        """
        Build the entries for a completed draft and record them.

        Raises:
            LedgerError: Incomplete draft or unknown account
            LedgerLockTimeout: Ledger busy, nothing recorded
        """
        origin = self._require_account(draft.account)
        destination = self._require_account(draft.destination_account) if draft.destination_account else None
        entries = build_entries(draft, origin, destination, registered_by=conversation_id)
        self.record(entries, conversation_id)
        return entries

    def record(self, entries: list[Transaction], conversation_id: Optional[str] = None) -> dict[str, Decimal]:
        """
        Append entries in one write and update the affected balances.

        Returns:
            New stored value per touched account name
        """
        if not entries:
            return {}
        for entry in entries:
            account = self._require_account(entry.account)
            if account.is_consolidated:
                raise LedgerError(f"{account.name} is a consolidated invoice and takes no direct entries")

        with self._locked("record", conversation_id):
            self._transactions.append_many(entries)
            try:
                updated: dict[str, Decimal] = {}
                for entry in entries:
                    updated.update(self._apply(entry))
            except StorageError as e:
                logger.warning("incremental_update_failed", error=str(e), conversation_id=conversation_id)
                snapshot = self._recompute(date.today())
                updated = {b.account: b.stored_value for b in snapshot.balances.values()}

        if self._audit:
            self._audit.log_transactions_saved(entries, conversation_id or "")
        return updated

    def apply_incremental(self, entry: Transaction, reverse: bool = False) -> dict[str, Decimal]:
        """Apply (or undo) one already-stored entry to the stored balances."""
        with self._locked("apply_incremental", entry.registered_by or None):
            return self._apply(entry, reverse=reverse)

    def reverse(self, transaction_id: UUID, conversation_id: Optional[str] = None) -> list[Transaction]:
        """
        Mark an entry (and its linked transfer leg) reversed.

        Raises:
            NotFoundError: Unknown transaction id
            LedgerError: Already reversed
        """
        with self._locked("reverse", conversation_id):
            entry = self._transactions.get(transaction_id)
            if entry is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            if entry.status == TransactionStatus.REVERSED:
                raise LedgerError(f"Transaction already reversed: {transaction_id}")

            entries = [entry]
            if entry.linked_id is not None:
                linked = self._transactions.get(entry.linked_id)
                if linked is not None and linked.status != TransactionStatus.REVERSED:
                    entries.append(linked)

            for item in entries:
                self._transactions.update_status(item.id, TransactionStatus.REVERSED)
                self._apply(item, reverse=True)

        if self._audit:
            self._audit.log_transaction_reversed(transaction_id, len(entries), conversation_id)
        return [item.model_copy(update={"status": TransactionStatus.REVERSED}) for item in entries]

    # =========================================================================
    # RECOMPUTE
    # =========================================================================

    def transactions(self) -> list[Transaction]:
        return self._transactions.list_all()

    def snapshot(self, as_of: Optional[date] = None) -> AccountBalanceSnapshot:
        """Recompute without writing anything back."""
        return compute_balances(
            self._accounts.list_accounts(),
            self._transactions.list_all(),
            as_of or date.today(),
        )

    def full_recompute(self, as_of: Optional[date] = None) -> AccountBalanceSnapshot:
        """Recompute every account from the log and write the results back."""
        with self._locked("full_recompute"):
            snapshot = self._recompute(as_of or date.today())

        if self._audit:
            self._audit.log_ledger_recomputed(snapshot.transaction_count, len(snapshot.balances))
        return snapshot

    def _recompute(self, as_of: date) -> AccountBalanceSnapshot:
        snapshot = compute_balances(
            self._accounts.list_accounts(),
            self._transactions.list_all(),
            as_of,
        )
        for balance in snapshot.balances.values():
            self._accounts.set_account_balance(balance.account, balance.stored_value)
        return snapshot

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_account(self, name: Optional[str]) -> Account:
        account = self._accounts.get_account(name) if name else None
        if account is None:
            raise LedgerError(f"Unknown account: {name}")
        return account

    def _apply(self, entry: Transaction, reverse: bool = False) -> dict[str, Decimal]:
        account = self._require_account(entry.account)
        if account.is_consolidated:
            raise LedgerError(f"{account.name} is a consolidated invoice and takes no direct entries")

        delta = signed_delta(entry, account)
        if reverse:
            delta = -delta

        updated = {account.name: to_money(account.balance + delta)}
        self._accounts.set_account_balance(account.name, updated[account.name])

        if account.is_card and account.parent:
            parent = self._accounts.get_account(account.parent)
            if parent is not None and parent.is_consolidated:
                updated[parent.name] = to_money(parent.balance + delta)
                self._accounts.set_account_balance(parent.name, updated[parent.name])
        return updated
