"""Ledger query package."""

from chatledger.queries.executor import LedgerQueryExecutor, QueryExecutionError

__all__ = ["LedgerQueryExecutor", "QueryExecutionError"]
