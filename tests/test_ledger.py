"""
Tests for posting and the ledger reconciliation engine.
"""

import threading
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from chatledger.ledger import (
    LedgerEngine,
    LedgerError,
    LedgerLockTimeout,
    build_entries,
    compute_balances,
)
from chatledger.models.audit import AuditEventType
from chatledger.models.transaction import (
    Account,
    Transaction,
    TransactionDraft,
    TransactionKind,
    TransactionStatus,
    TransferDirection,
)
from chatledger.services.storage import (
    InMemoryAccountRepository,
    NotFoundError,
    StorageError,
)

from conftest import TODAY, sample_accounts


def _draft(**overrides):
    data = dict(
        kind=TransactionKind.EXPENSE,
        amount=Decimal("100.00"),
        account="Main Checking",
        category="Food",
        subcategory="Groceries",
        payment_method="debit",
        description="Groceries",
        occurred_on=TODAY,
    )
    data.update(overrides)
    return TransactionDraft(**data)


def _transfer(amount="200.00", origin="Main Checking", destination="Savings"):
    return _draft(
        kind=TransactionKind.TRANSFER,
        amount=Decimal(amount),
        account=origin,
        destination_account=destination,
        category="Transfer",
        subcategory=None,
        payment_method="transfer",
        description="Moving money",
    )


def _balances(account_repo):
    return {a.name: a.balance for a in account_repo.list_accounts()}


class TestBuildEntries:
    """Tests for turning drafts into entries."""

    def test_checking_expense_is_one_posted_entry(self, account_repo):
        """Test a plain expense."""
        entries = build_entries(_draft(), account_repo.get_account("Main Checking"))

        assert len(entries) == 1
        assert entries[0].status == TransactionStatus.POSTED
        assert entries[0].due_date is None

    def test_transfer_legs_are_linked(self, account_repo):
        """Test that a transfer becomes an OUT and an IN leg pointing at each other."""
        out_leg, in_leg = build_entries(
            _transfer(),
            account_repo.get_account("Main Checking"),
            account_repo.get_account("Savings"),
        )

        assert out_leg.transfer_direction == TransferDirection.OUT
        assert in_leg.transfer_direction == TransferDirection.IN
        assert out_leg.linked_id == in_leg.id
        assert in_leg.linked_id == out_leg.id
        assert out_leg.counterpart_account == "Savings"
        assert in_leg.account == "Savings"
        assert out_leg.amount == in_leg.amount == Decimal("200.00")

    def test_card_installments(self, account_repo):
        """Test that a card purchase is split into pending installments."""
        entries = build_entries(
            _draft(account="Nubank", amount=Decimal("100.00"), installments=3, payment_method="credit"),
            account_repo.get_account("Nubank"),
        )

        assert [e.amount for e in entries] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert [e.installment_current for e in entries] == [1, 2, 3]
        assert all(e.installment_total == 3 for e in entries)
        assert all(e.status == TransactionStatus.PENDING for e in entries)
        # Bought on Mar 20, after the closing day 15
        assert [e.due_date for e in entries] == [date(2024, 5, 10), date(2024, 6, 10), date(2024, 7, 10)]

    def test_card_refund_not_split(self, account_repo):
        """Test that an inflow on a card is a single entry."""
        entries = build_entries(
            _draft(kind=TransactionKind.INCOME, account="Nubank", installments=3, payment_method="credit"),
            account_repo.get_account("Nubank"),
        )
        assert len(entries) == 1

    def test_incomplete_draft_rejected(self, account_repo):
        """Test that a draft with missing fields cannot be posted."""
        with pytest.raises(LedgerError, match="payment_method"):
            build_entries(_draft(payment_method=None), account_repo.get_account("Main Checking"))

    def test_transfer_to_same_account_rejected(self, account_repo):
        """Test that a transfer needs two different accounts."""
        checking = account_repo.get_account("Main Checking")
        with pytest.raises(LedgerError):
            build_entries(_transfer(destination="Main Checking"), checking, checking)

    def test_consolidated_invoice_rejected(self, account_repo):
        """Test that consolidated invoices take no direct entries."""
        with pytest.raises(LedgerError):
            build_entries(_draft(account="Cards Invoice"), account_repo.get_account("Cards Invoice"))


class TestLedgerEngine:
    """Tests for posting through the engine."""

    def test_expense_reduces_balance(self, engine, account_repo, transaction_repo):
        """Test an expense on a checking account."""
        engine.post_draft(_draft(), conversation_id="c1")

        assert account_repo.get_account("Main Checking").balance == Decimal("900.00")
        assert len(transaction_repo.list_all()) == 1
        assert transaction_repo.list_all()[0].registered_by == "c1"

    def test_income_increases_balance(self, engine, account_repo):
        """Test an income on a checking account."""
        engine.post_draft(_draft(kind=TransactionKind.INCOME, account="Savings", category="Income"))
        assert account_repo.get_account("Savings").balance == Decimal("100.00")

    def test_transfer_moves_money(self, engine, account_repo):
        """Test that a transfer changes both accounts."""
        engine.post_draft(_transfer())

        balances = _balances(account_repo)
        assert balances["Main Checking"] == Decimal("800.00")
        assert balances["Savings"] == Decimal("200.00")

    def test_card_purchase_rolls_up(self, engine, account_repo):
        """Test that card debt shows on the card and on its consolidated invoice."""
        engine.post_draft(_draft(account="Nubank", amount=Decimal("300.00"), installments=3))
        engine.post_draft(_draft(account="Santander Card", amount=Decimal("50.00")))

        balances = _balances(account_repo)
        assert balances["Nubank"] == Decimal("300.00")
        assert balances["Santander Card"] == Decimal("50.00")
        assert balances["Cards Invoice"] == Decimal("350.00")
        assert balances["Main Checking"] == Decimal("1000.00")

    def test_incremental_matches_full_recompute(self, engine, account_repo):
        """Test that incremental updates and a full recompute agree to the cent."""
        engine.post_draft(_draft(amount=Decimal("45.90")))
        engine.post_draft(_transfer(amount="120.35"))
        engine.post_draft(_draft(account="Nubank", amount=Decimal("100.00"), installments=3))
        engine.post_draft(_draft(kind=TransactionKind.INCOME, account="Santander Card",
                                 amount=Decimal("20.00"), category="Income"))
        engine.post_draft(_draft(account="Wallet", amount=Decimal("12.50"), payment_method="cash"))
        incremental = _balances(account_repo)

        engine.full_recompute(TODAY)

        assert _balances(account_repo) == incremental
        assert incremental["Cards Invoice"] == Decimal("80.00")
        assert incremental["Wallet"] == Decimal("37.50")

    def test_opening_balance_without_stored_value(self, transaction_repo):
        """Test that an account configured with only an opening balance converges."""
        accounts = InMemoryAccountRepository([
            Account(name="Main Checking", opening_balance=Decimal("1000.00")),
        ])
        engine = LedgerEngine(accounts, transaction_repo)

        engine.post_draft(_draft(amount=Decimal("50.00")))
        incremental = accounts.get_account("Main Checking").balance
        engine.full_recompute(TODAY)

        assert incremental == Decimal("950.00")
        assert accounts.get_account("Main Checking").balance == incremental

    def test_direct_entry_on_consolidated_invoice(self, engine, transaction_repo):
        """Test that recording straight onto a consolidated invoice is refused."""
        entry = Transaction(
            occurred_on=TODAY,
            description="Invoice",
            category="Bills",
            kind=TransactionKind.EXPENSE,
            amount="10",
            account="Cards Invoice",
        )
        with pytest.raises(LedgerError):
            engine.record([entry])
        assert transaction_repo.list_all() == []

    def test_unknown_account(self, engine):
        """Test posting to an account that does not exist."""
        with pytest.raises(LedgerError, match="Unknown account"):
            engine.post_draft(_draft(account="Ghost Bank"))

    def test_lock_timeout(self, account_repo, transaction_repo, audit_logger, audit_storage):
        """Test that a busy ledger raises without writing anything."""
        lock = threading.Lock()
        lock.acquire()
        engine = LedgerEngine(
            account_repo, transaction_repo,
            lock=lock, lock_timeout_seconds=0.05, audit_logger=audit_logger,
        )

        with pytest.raises(LedgerLockTimeout):
            engine.post_draft(_draft(), conversation_id="c1")

        assert transaction_repo.list_all() == []
        assert account_repo.get_account("Main Checking").balance == Decimal("1000.00")
        timeouts = [e for e in audit_storage.events if e.event_type == AuditEventType.LEDGER_LOCK_TIMEOUT]
        assert len(timeouts) == 1
        assert timeouts[0].conversation_id == "c1"

    def test_concurrent_postings(self, engine, account_repo):
        """Test that concurrent postings do not lose updates."""
        def post():
            for _ in range(5):
                engine.post_draft(_draft(amount=Decimal("10.00")))

        threads = [threading.Thread(target=post) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert account_repo.get_account("Main Checking").balance == Decimal("600.00")
        assert engine.snapshot(TODAY).get("Main Checking").balance == Decimal("600.00")

    def test_save_is_audited(self, engine, audit_storage):
        """Test that a posting leaves one audit event for all its entries."""
        engine.post_draft(_transfer(), conversation_id="c1")

        saved = [e for e in audit_storage.events if e.event_type == AuditEventType.TRANSACTION_SAVED]
        assert len(saved) == 1
        assert saved[0].details["entry_count"] == 2
        assert saved[0].details["amount"] == "200.00"


class TestReverse:
    """Tests for reversing entries."""

    def test_reverse_restores_balance(self, engine, account_repo, transaction_repo):
        """Test that a reversed expense no longer counts."""
        entry = engine.post_draft(_draft())[0]

        engine.reverse(entry.id)

        assert account_repo.get_account("Main Checking").balance == Decimal("1000.00")
        assert transaction_repo.get(entry.id).status == TransactionStatus.REVERSED
        assert engine.snapshot(TODAY).transaction_count == 0

    def test_reverse_transfer_reverses_both_legs(self, engine, account_repo):
        """Test that reversing one leg of a transfer reverses the other."""
        out_leg, _ = engine.post_draft(_transfer())

        reversed_entries = engine.reverse(out_leg.id)

        assert len(reversed_entries) == 2
        balances = _balances(account_repo)
        assert balances["Main Checking"] == Decimal("1000.00")
        assert balances["Savings"] == Decimal("0.00")

    def test_double_reverse(self, engine):
        """Test that an entry cannot be reversed twice."""
        entry = engine.post_draft(_draft())[0]
        engine.reverse(entry.id)
        with pytest.raises(LedgerError):
            engine.reverse(entry.id)

    def test_reverse_unknown(self, engine):
        """Test reversing an id that was never stored."""
        with pytest.raises(NotFoundError):
            engine.reverse(uuid4())


class TestRecompute:
    """Tests for the pure recompute."""

    def test_current_statement(self, engine):
        """Test that only installments due next month count as the current statement."""
        engine.post_draft(_draft(account="Nubank", amount=Decimal("300.00"), installments=3))

        snapshot = engine.snapshot(date(2024, 4, 1))

        nubank = snapshot.get("Nubank")
        assert nubank.pending_total == Decimal("300.00")
        assert nubank.current_statement == Decimal("100.00")
        assert snapshot.get("Cards Invoice").current_statement == Decimal("100.00")

    def test_unknown_and_consolidated_entries_skipped(self):
        """Test that stray entries do not break a recompute."""
        entries = [
            Transaction(occurred_on=TODAY, description="x", category="Food",
                        kind=TransactionKind.EXPENSE, amount="10", account="Ghost Bank"),
            Transaction(occurred_on=TODAY, description="x", category="Food",
                        kind=TransactionKind.EXPENSE, amount="10", account="Cards Invoice"),
        ]

        snapshot = compute_balances(sample_accounts(), entries, TODAY)

        assert snapshot.get("Cards Invoice").pending_total == Decimal("0.00")
        assert snapshot.get("Main Checking").balance == Decimal("1000.00")

    def test_recompute_from_opening_balances(self, account_repo, transaction_repo):
        """Test that a drifted stored balance is repaired by a recompute."""
        account_repo.set_account_balance("Main Checking", Decimal("1.00"))
        engine = LedgerEngine(account_repo, transaction_repo)

        engine.full_recompute(TODAY)

        assert account_repo.get_account("Main Checking").balance == Decimal("1000.00")


class FlakyAccountRepository(InMemoryAccountRepository):
    """Fails the first balance write, then behaves."""

    def __init__(self, accounts):
        super().__init__(accounts)
        self.failures = 1

    def set_account_balance(self, name, value):
        if self.failures:
            self.failures -= 1
            raise StorageError("sheet unavailable")
        super().set_account_balance(name, value)


def test_failed_incremental_update_falls_back_to_recompute(transaction_repo):
    """Test that balances are rebuilt when an incremental write fails."""
    accounts = FlakyAccountRepository(sample_accounts())
    engine = LedgerEngine(accounts, transaction_repo)

    entries = engine.post_draft(_draft(account="Nubank", amount=Decimal("90.00")))

    assert len(entries) == 1
    assert accounts.get_account("Nubank").balance == Decimal("90.00")
    assert accounts.get_account("Cards Invoice").balance == Decimal("90.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
