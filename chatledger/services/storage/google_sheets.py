"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view and edit their ledger, accounts and keyword table directly
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: multi-row writes go through a single append_rows call
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chatledger.config import get_settings
from chatledger.interpretation.lexicon import DEFAULT_LEXICON
from chatledger.interpretation.normalizer import keyword_profile
from chatledger.models.audit import AuditEvent
from chatledger.models.transaction import (
    Account,
    AccountKind,
    ClosingPolicy,
    LearnedAssociation,
    LexiconRow,
    LexiconTag,
    Transaction,
    TransactionKind,
    TransactionStatus,
    TransferDirection,
    to_money,
)
from chatledger.services.storage.interface import (
    AccountRepository,
    AuditStorageInterface,
    ConnectionError,
    LearnedAssociationRepository,
    LexiconRepository,
    NotFoundError,
    StorageError,
    TransactionRepository,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "occurred_on",
    "description",
    "category",
    "subcategory",
    "original_category",
    "kind",
    "amount",
    "payment_method",
    "account",
    "counterpart_account",
    "transfer_direction",
    "linked_id",
    "installment_current",
    "installment_total",
    "due_date",
    "status",
    "registered_by",
    "registered_at",
]

# Column mappings for Accounts sheet
ACCOUNT_COLUMNS = [
    "name",
    "aliases",
    "kind",
    "opening_balance",
    "balance",
    "credit_limit",
    "closing_day",
    "due_day",
    "closing_policy",
    "parent",
]

LEXICON_COLUMNS = ["tag", "keyword", "value", "required_kind"]

LEARNED_COLUMNS = ["keyword", "category", "subcategory", "confidence", "last_updated"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "operation",
    "conversation_id",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

SHEETS_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(NotFoundError),
    reraise=True,
)


def _safe_getter(row: list):
    """Index into a row, tolerating short rows and blank cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, creates missing worksheets with their headers,
    and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(**SHEETS_RETRY)
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
        seed: Optional[list[list]] = None,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_rows([columns] + (seed or []), value_input_option="RAW")
            logger.info("worksheet_created", title=title, seeded_rows=len(seed or []))
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=5000,
        )

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create(
            self._settings.accounts_sheet_name,
            ACCOUNT_COLUMNS,
            rows=100,
        )

    def get_lexicon_sheet(self) -> gspread.Worksheet:
        """Get or create the Lexicon worksheet, seeded with the default table."""
        seed = [
            [row.tag.value, row.keyword, row.value,
             row.required_kind.value if row.required_kind else ""]
            for row in DEFAULT_LEXICON
        ]
        return self._get_or_create(
            self._settings.lexicon_sheet_name,
            LEXICON_COLUMNS,
            rows=500,
            seed=seed,
        )

    def get_learned_sheet(self) -> gspread.Worksheet:
        """Get or create the Learned worksheet."""
        return self._get_or_create(
            self._settings.learned_sheet_name,
            LEARNED_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTransactionRepository(TransactionRepository):
    """
    Google Sheets implementation of the transaction log.

    One ledger entry per row, appended in registration order.
    """

    STATUS_COLUMN = TRANSACTION_COLUMNS.index("status") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, tx: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            str(tx.id),
            tx.occurred_on.isoformat(),
            tx.description,
            tx.category,
            tx.subcategory or "",
            tx.original_category or "",
            tx.kind.value,
            str(tx.amount),
            tx.payment_method,
            tx.account,
            tx.counterpart_account or "",
            tx.transfer_direction.value if tx.transfer_direction else "",
            str(tx.linked_id) if tx.linked_id else "",
            tx.installment_current,
            tx.installment_total,
            tx.due_date.isoformat() if tx.due_date else "",
            tx.status.value,
            tx.registered_by,
            tx.registered_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        safe_get = _safe_getter(row)

        return Transaction(
            id=UUID(safe_get(0)),
            occurred_on=date.fromisoformat(safe_get(1)),
            description=safe_get(2),
            category=safe_get(3),
            subcategory=safe_get(4) or None,
            original_category=safe_get(5) or None,
            kind=TransactionKind(safe_get(6)),
            amount=Decimal(safe_get(7)),
            payment_method=safe_get(8, "none"),
            account=safe_get(9),
            counterpart_account=safe_get(10) or None,
            transfer_direction=TransferDirection(safe_get(11)) if safe_get(11) else None,
            linked_id=UUID(safe_get(12)) if safe_get(12) else None,
            installment_current=int(safe_get(13, "1")),
            installment_total=int(safe_get(14, "1")),
            due_date=date.fromisoformat(safe_get(15)) if safe_get(15) else None,
            status=TransactionStatus(safe_get(16, "posted")),
            registered_by=safe_get(17),
            registered_at=datetime.fromisoformat(safe_get(18)),
        )

    def append(self, transaction: Transaction) -> None:
        self.append_many([transaction])

    @retry(**SHEETS_RETRY)
    def append_many(self, transactions: list[Transaction]) -> None:
        """Append every entry with one API call, so a transfer never lands half-written."""
        try:
            sheet = self._client.get_transactions_sheet()
            rows = [self._transaction_to_row(tx) for tx in transactions]
            sheet.append_rows(rows, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to append transactions: {e}")

    @retry(**SHEETS_RETRY)
    def list_all(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for idx, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception as e:
                logger.warning("malformed_transaction_row", row_number=idx, error=str(e))
        return transactions

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        for tx in self.list_all():
            if tx.id == transaction_id:
                return tx
        return None

    @retry(**SHEETS_RETRY)
    def update_status(self, transaction_id: UUID, status: TransactionStatus) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            # Start from 2 (row 1 is header)
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(transaction_id):
                    sheet.update_cell(idx, self.STATUS_COLUMN, status.value)
                    return

            raise NotFoundError(f"Transaction not found: {transaction_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")


class GoogleSheetsAccountRepository(AccountRepository):
    """
    Google Sheets implementation of accounts.

    Users maintain the account rows themselves; the ledger only ever
    writes the balance column.
    """

    BALANCE_COLUMN = ACCOUNT_COLUMNS.index("balance") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_account(self, row: list) -> Account:
        safe_get = _safe_getter(row)

        return Account(
            name=safe_get(0),
            aliases=[alias.strip() for alias in safe_get(1).split(",") if alias.strip()],
            kind=AccountKind(safe_get(2, "checking")),
            opening_balance=to_money(safe_get(3, "0")),
            balance=to_money(safe_get(4)) if safe_get(4) else None,
            credit_limit=to_money(safe_get(5)) if safe_get(5) else None,
            closing_day=int(safe_get(6)) if safe_get(6) else None,
            due_day=int(safe_get(7)) if safe_get(7) else None,
            closing_policy=ClosingPolicy(safe_get(8, "standard")),
            parent=safe_get(9) or None,
        )

    @retry(**SHEETS_RETRY)
    def _rows(self) -> list[list]:
        try:
            return self._client.get_accounts_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to read accounts: {e}")

    def list_accounts(self) -> list[Account]:
        accounts = []
        for idx, row in enumerate(self._rows()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                accounts.append(self._row_to_account(row))
            except Exception as e:
                logger.warning("malformed_account_row", row_number=idx, error=str(e))
        return accounts

    def get_account(self, name: str) -> Optional[Account]:
        key = keyword_profile(name)
        for account in self.list_accounts():
            if account.key == key:
                return account
        return None

    @retry(**SHEETS_RETRY)
    def set_account_balance(self, name: str, value: Decimal) -> None:
        key = keyword_profile(name)
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and keyword_profile(row[0]) == key:
                    sheet.update_cell(idx, self.BALANCE_COLUMN, str(to_money(value)))
                    return

            raise NotFoundError(f"Account not found: {name}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update balance: {e}")


class GoogleSheetsLexiconRepository(LexiconRepository):
    """The keyword table, read in sheet order."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(**SHEETS_RETRY)
    def list_rows(self) -> list[LexiconRow]:
        try:
            all_rows = self._client.get_lexicon_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read lexicon: {e}")

        rows = []
        for idx, row in enumerate(all_rows, start=2):
            safe_get = _safe_getter(row)
            if not safe_get(0) or not safe_get(1):
                continue
            try:
                rows.append(LexiconRow(
                    tag=LexiconTag(safe_get(0).strip().lower()),
                    keyword=safe_get(1),
                    value=safe_get(2),
                    required_kind=safe_get(3).strip().lower() or None,
                ))
            except Exception as e:
                logger.warning("malformed_lexicon_row", row_number=idx, error=str(e))
        return rows


class GoogleSheetsLearnedAssociationRepository(LearnedAssociationRepository):
    """Learned associations, one row per normalized keyword."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _association_to_row(self, association: LearnedAssociation) -> list:
        return [
            association.keyword,
            association.category,
            association.subcategory or "",
            association.confidence,
            association.last_updated.isoformat(),
        ]

    @retry(**SHEETS_RETRY)
    def list_associations(self) -> list[LearnedAssociation]:
        try:
            all_rows = self._client.get_learned_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read learned associations: {e}")

        associations = []
        for row in all_rows:
            safe_get = _safe_getter(row)
            if not safe_get(0):
                continue
            try:
                associations.append(LearnedAssociation(
                    keyword=safe_get(0),
                    category=safe_get(1),
                    subcategory=safe_get(2) or None,
                    confidence=int(safe_get(3, "1")),
                    last_updated=datetime.fromisoformat(safe_get(4)),
                ))
            except Exception as e:
                logger.warning("malformed_learned_row", keyword=safe_get(0), error=str(e))
        return associations

    @retry(**SHEETS_RETRY)
    def save_association(self, association: LearnedAssociation) -> None:
        key = keyword_profile(association.keyword)
        new_row = self._association_to_row(association)
        try:
            sheet = self._client.get_learned_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and keyword_profile(row[0]) == key:
                    sheet.update(range_name=f"A{idx}", values=[new_row])
                    return

            sheet.append_row(new_row, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save learned association: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(**SHEETS_RETRY)
    def _append(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e), event_id=str(event.event_id))
            return False
