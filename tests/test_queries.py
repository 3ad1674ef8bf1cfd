"""
Tests for the read-only ledger queries.
"""

import pytest
from datetime import date
from decimal import Decimal

from chatledger.models.transaction import TransactionDraft, TransactionKind
from chatledger.queries import LedgerQueryExecutor

from conftest import TODAY


def _post(engine, **overrides):
    data = dict(
        kind=TransactionKind.EXPENSE,
        amount=Decimal("45.90"),
        account="Main Checking",
        category="Food",
        subcategory="Groceries",
        payment_method="debit",
        description="Groceries",
        occurred_on=TODAY,
    )
    data.update(overrides)
    return engine.post_draft(TransactionDraft(**data))


@pytest.fixture
def posted(engine):
    _post(engine)
    _post(engine, account="Nubank", amount=Decimal("300.00"), installments=3,
          category="Home", subcategory=None, payment_method="credit", description="Sofa")
    return engine


def _executor(engine, as_of=TODAY):
    return LedgerQueryExecutor(engine.snapshot(as_of), engine.transactions())


class TestLedgerQueries:
    """Tests for the derived aggregates."""

    def test_net_worth(self, posted):
        """Test assets minus card debt."""
        result = _executor(posted).execute("net_worth")

        assert result.success is True
        assert result.aggregation_result["assets"] == Decimal("1004.10")
        assert result.aggregation_result["card_debt"] == Decimal("300.00")
        assert result.aggregation_result["net_worth"] == Decimal("704.10")

    def test_account_balances(self, posted):
        """Test the per-account listing."""
        result = _executor(posted).execute("account_balances")

        rows = {row["account"]: row for row in result.results}
        assert result.result_count == 6
        assert rows["Main Checking"]["balance"] == Decimal("954.10")
        assert rows["Cards Invoice"]["balance"] == Decimal("300.00")
        assert rows["Nubank"]["kind"] == "credit_card"

    def test_spending_by_category(self, posted):
        """Test monthly spending, largest category first."""
        result = _executor(posted).execute("spending_by_category", year=2024, month=3)

        assert [row["category"] for row in result.results] == ["Home", "Food"]
        assert result.aggregation_result["total_amount"] == Decimal("345.90")
        assert result.result_count == 4
        assert result.query_description == "Spending by category in March 2024"

    def test_spending_excludes_reversed(self, engine):
        """Test that reversed entries are not counted."""
        entry = _post(engine)[0]
        engine.reverse(entry.id)

        result = _executor(engine).execute("spending_by_category", year=2024, month=3)

        assert result.data_found is False
        assert result.aggregation_result["total_amount"] == Decimal("0.00")

    def test_card_statement(self, posted):
        """Test the entries due on a card's next statement."""
        result = _executor(posted, as_of=date(2024, 4, 1)).execute("card_statement", card_name="nubank")

        assert result.result_count == 1
        assert result.results[0]["installment"] == "1/3"
        assert result.aggregation_result["due_date"] == "2024-05-10"
        assert result.aggregation_result["pending_total"] == Decimal("300.00")


class TestQueryFailures:
    """Tests for queries that cannot run."""

    def test_unknown_query(self, engine):
        """Test an unknown query name."""
        result = _executor(engine).execute("forecast")
        assert result.success is False
        assert "Unknown query type" in result.error_message

    def test_invalid_month(self, engine):
        """Test a month outside 1-12."""
        result = _executor(engine).execute("spending_by_category", year=2024, month=13)
        assert result.success is False

    def test_missing_parameters(self, engine):
        """Test a query called without its parameters."""
        assert _executor(engine).execute("spending_by_category").success is False

    def test_statement_of_non_card(self, engine):
        """Test a statement request for a checking account."""
        result = _executor(engine).execute("card_statement", card_name="Savings")
        assert result.success is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
