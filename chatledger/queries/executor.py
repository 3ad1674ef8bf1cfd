"""
Ledger Query Executor

DESIGN DECISION: Queries are DETERMINISTIC and read-only.
They run over an AccountBalanceSnapshot handed in by the caller (the
result of a recompute) plus the transaction log. Nothing here reaches
for global state, and nothing here writes.

Every query returns a QueryResult, including failures: a bad query
produces success=False with an error message instead of an exception.
"""

from calendar import month_name
from decimal import Decimal
from typing import Iterable

from dateutil.relativedelta import relativedelta

from chatledger.interpretation.normalizer import keyword_profile
from chatledger.models.query import QueryResult
from chatledger.models.transaction import (
    AccountBalanceSnapshot,
    AccountKind,
    Transaction,
    TransactionKind,
    TransactionStatus,
)

ZERO = Decimal("0.00")


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class LedgerQueryExecutor:
    """
    Derived aggregates over a balance snapshot.

    Example:
        executor = LedgerQueryExecutor(engine.snapshot(), transactions.list_all())
        executor.execute("net_worth")
        executor.execute("spending_by_category", year=2024, month=3)
    """

    def __init__(self, snapshot: AccountBalanceSnapshot, transactions: Iterable[Transaction]):
        self._snapshot = snapshot
        self._transactions = [
            t for t in transactions if t.status != TransactionStatus.REVERSED
        ]

    def execute(self, query_type: str, **params) -> QueryResult:
        """Run a query by name; failures come back as unsuccessful results."""
        handlers = {
            "net_worth": self.net_worth,
            "account_balances": self.account_balances,
            "spending_by_category": self.spending_by_category,
            "card_statement": self.card_statement,
        }
        try:
            handler = handlers.get(query_type)
            if handler is None:
                raise QueryExecutionError(f"Unknown query type: {query_type}")
            return handler(**params)
        except (QueryExecutionError, TypeError, ValueError) as e:
            return QueryResult(
                success=False,
                error_message=str(e),
                data_found=False,
                query_description=f"Query failed: {str(e)}",
            )

    def net_worth(self) -> QueryResult:
        """Checking and cash balances minus what is owed on cards."""
        assets = ZERO
        card_debt = ZERO
        for balance in self._snapshot.balances.values():
            if balance.kind in (AccountKind.CHECKING, AccountKind.CASH):
                assets += balance.balance
            elif balance.kind == AccountKind.CREDIT_CARD:
                card_debt += balance.pending_total

        return QueryResult(
            success=True,
            data_found=bool(self._snapshot.balances),
            result_count=len(self._snapshot.balances),
            aggregation_result={
                "assets": assets,
                "card_debt": card_debt,
                "net_worth": assets - card_debt,
            },
            query_description=f"Net worth as of {self._snapshot.as_of.strftime('%d %b %Y')}",
        )

    def account_balances(self) -> QueryResult:
        results = [
            {
                "account": balance.account,
                "kind": balance.kind.value,
                "balance": balance.stored_value,
                "pending_total": balance.pending_total,
                "current_statement": balance.current_statement,
            }
            for balance in self._snapshot.balances.values()
        ]
        return QueryResult(
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description="Listing account balances",
        )

    def spending_by_category(self, year: int, month: int) -> QueryResult:
        """Expense totals per category for one calendar month."""
        if not 1 <= month <= 12:
            raise QueryExecutionError(f"Invalid month: {month}")

        breakdown: dict[str, Decimal] = {}
        count = 0
        for transaction in self._transactions:
            if transaction.kind != TransactionKind.EXPENSE:
                continue
            if (transaction.occurred_on.year, transaction.occurred_on.month) != (year, month):
                continue
            breakdown[transaction.category] = breakdown.get(transaction.category, ZERO) + transaction.amount
            count += 1

        ordered = dict(sorted(breakdown.items(), key=lambda item: item[1], reverse=True))
        return QueryResult(
            success=True,
            data_found=count > 0,
            result_count=count,
            results=[{"category": k, "total_amount": v} for k, v in ordered.items()],
            aggregation_result={
                "total_amount": sum(ordered.values(), ZERO),
                "breakdown": ordered,
            },
            query_description=f"Spending by category in {month_name[month]} {year}",
        )

    def card_statement(self, card_name: str) -> QueryResult:
        """Entries due on the card's next statement plus its pending total."""
        balance = self._snapshot.get(card_name)
        if balance is None or balance.kind != AccountKind.CREDIT_CARD:
            raise QueryExecutionError(f"Not a credit card account: {card_name}")

        statement_month = self._snapshot.as_of.replace(day=1) + relativedelta(months=1)
        key = keyword_profile(card_name)
        entries = [
            t for t in self._transactions
            if keyword_profile(t.account) == key
            and not t.is_inflow
            and t.due_date is not None
            and (t.due_date.year, t.due_date.month) == (statement_month.year, statement_month.month)
        ]
        due_date = min((t.due_date for t in entries), default=None)

        return QueryResult(
            success=True,
            data_found=len(entries) > 0,
            result_count=len(entries),
            results=[self._entry_to_dict(t) for t in entries],
            aggregation_result={
                "current_statement": balance.current_statement,
                "pending_total": balance.pending_total,
                "due_date": due_date.isoformat() if due_date else None,
            },
            query_description=f"{balance.account} statement due in {statement_month.strftime('%B %Y')}",
        )

    def _entry_to_dict(self, transaction: Transaction) -> dict:
        return {
            "id": str(transaction.id),
            "description": transaction.description,
            "category": transaction.category,
            "amount": transaction.amount,
            "occurred_on": transaction.occurred_on.isoformat(),
            "due_date": transaction.due_date.isoformat() if transaction.due_date else None,
            "installment": f"{transaction.installment_current}/{transaction.installment_total}",
        }
