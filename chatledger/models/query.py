"""
Query Result Model

Ledger queries never compute anything from the chat text; they only
report what the snapshot and the transaction log contain.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class QueryResult(BaseModel):
    """Result of running one ledger query."""

    query_id: UUID = Field(default_factory=uuid4)
    executed_at: datetime = Field(default_factory=datetime.utcnow)

    # Success/failure
    success: bool
    error_message: Optional[str] = None

    # Results
    data_found: bool = Field(
        ...,
        description="Was any data found?"
    )
    result_count: int = Field(
        default=0,
        ge=0,
        description="Number of result rows"
    )
    results: list[dict] = Field(
        default_factory=list,
        description="Result rows as dicts"
    )

    # Aggregation result if applicable
    aggregation_result: Optional[dict] = None

    query_description: str = Field(
        ...,
        description="Human-readable description of what was queried"
    )
