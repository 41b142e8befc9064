"""Transaction data models for statement imports."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from import_reconciler.errors import MalformedPreviewError
from import_reconciler.utils.date_utils import parse_date
from import_reconciler.utils.decimal_utils import to_decimal


class TransactionType(Enum):
    """Direction of a transaction, shared by transactions and categories."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"  # Ledger history only; never learned from

    @classmethod
    def parse(cls, value: object) -> "TransactionType":
        """Parse a type string case-insensitively.

        Raises:
            ValueError: If the value is not a known type.
        """
        return cls(str(value).strip().upper())


@dataclass(frozen=True)
class SuggestedCategory:
    """Category proposed by the external classifier.

    Attributes:
        category_name: Name of the suggested category.
        confidence: Classifier confidence, clamped to 0.0-1.0.
        category_id: ID of an existing category, if the classifier matched one.
    """

    category_name: str
    confidence: float
    category_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SuggestedCategory":
        """Create from a preview payload entry.

        Raises:
            MalformedPreviewError: If the entry is not an object or the
                confidence is not a number.
        """
        if not isinstance(data, dict):
            raise MalformedPreviewError(f"Suggested category must be an object, got {type(data).__name__}")
        try:
            raw_confidence = float(data.get("confidence", 0.0) or 0.0)
        except (TypeError, ValueError) as e:
            raise MalformedPreviewError(f"Invalid suggestion confidence: {data.get('confidence')!r}") from e
        category_id = data.get("categoryId")
        return cls(
            category_name=str(data.get("categoryName") or ""),
            confidence=max(0.0, min(1.0, raw_confidence)),
            category_id=str(category_id) if category_id else None,
        )


@dataclass(frozen=True)
class CandidateTransaction:
    """A parsed, not-yet-committed statement row.

    Immutable once received. ``hash`` is the identity used by every
    downstream component.

    Attributes:
        hash: Stable fingerprint of date, amount and description (opaque).
        description: Statement description, may be None.
        amount: Amount as Decimal (sign as produced by the parser).
        transaction_type: INCOME or EXPENSE.
        original_date: Date the transaction occurred.
        is_duplicate: Whether the hash matches an already-imported row.
        suggested_category: Optional classifier suggestion.
    """

    hash: str
    description: Optional[str]
    amount: Decimal
    transaction_type: TransactionType
    original_date: date
    is_duplicate: bool = False
    suggested_category: Optional[SuggestedCategory] = None

    @property
    def is_income(self) -> bool:
        return self.transaction_type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.transaction_type == TransactionType.EXPENSE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateTransaction":
        """Create from a preview payload entry.

        Raises:
            MalformedPreviewError: If a required field is missing or invalid.
        """
        if not isinstance(data, dict):
            raise MalformedPreviewError(f"Transaction entry must be an object, got {type(data).__name__}")

        tx_hash = data.get("hash")
        if not tx_hash:
            raise MalformedPreviewError("Transaction entry has no hash")

        try:
            amount = to_decimal(data.get("amount"))
            transaction_type = TransactionType.parse(data.get("type"))
            original_date = parse_date(data.get("originalDate") or data.get("date"))
        except ValueError as e:
            raise MalformedPreviewError(f"Transaction {tx_hash}: {e}") from e

        suggestion = None
        if data.get("suggestedCategory"):
            suggestion = SuggestedCategory.from_dict(data["suggestedCategory"])

        description = data.get("description")
        return cls(
            hash=str(tx_hash),
            description=str(description) if description is not None else None,
            amount=amount,
            transaction_type=transaction_type,
            original_date=original_date,
            is_duplicate=bool(data.get("isDuplicate", False)),
            suggested_category=suggestion,
        )

    def __repr__(self) -> str:
        description = (self.description or "")[:30]
        return (
            f"CandidateTransaction(hash={self.hash!r}, "
            f"description={description!r}, amount={self.amount}, "
            f"type={self.transaction_type.value})"
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range covered by a statement."""

    start: Optional[date] = None
    end: Optional[date] = None


@dataclass
class ImportPreview:
    """Parsed statement as returned by the preview endpoint.

    Attributes:
        transactions: Candidate transactions in statement order.
        total_transactions: Row count reported by the parser.
        duplicates_found: Number of candidates flagged as duplicates.
        detected_format: Bank format detected by the parser.
        detected_currency: Currency detected by the parser.
        date_range: Dates covered by the statement.
        filename: Uploaded file name.
    """

    transactions: list[CandidateTransaction]
    total_transactions: int = 0
    duplicates_found: int = 0
    detected_format: str = ""
    detected_currency: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    filename: str = ""

    def __post_init__(self) -> None:
        if not self.total_transactions:
            self.total_transactions = len(self.transactions)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportPreview":
        """Create from a preview endpoint response.

        Raises:
            MalformedPreviewError: If the payload has no usable transactions.
        """
        if not isinstance(data, dict):
            raise MalformedPreviewError("Preview must be an object")

        raw_transactions = data.get("transactions")
        if not isinstance(raw_transactions, list):
            raise MalformedPreviewError("Preview has no transaction list")

        transactions = [CandidateTransaction.from_dict(item) for item in raw_transactions]

        date_range = DateRange()
        raw_range = data.get("dateRange") or {}
        if isinstance(raw_range, dict) and raw_range.get("from") and raw_range.get("to"):
            try:
                date_range = DateRange(
                    start=parse_date(raw_range["from"]),
                    end=parse_date(raw_range["to"]),
                )
            except ValueError as e:
                raise MalformedPreviewError(f"Invalid date range: {e}") from e

        duplicates_found = data.get("duplicatesFound")
        if duplicates_found is None:
            duplicates_found = sum(1 for t in transactions if t.is_duplicate)

        try:
            total_transactions = int(data.get("totalTransactions") or len(transactions))
            duplicates_found = int(duplicates_found)
        except (TypeError, ValueError) as e:
            raise MalformedPreviewError(f"Invalid preview counts: {e}") from e

        return cls(
            transactions=transactions,
            total_transactions=total_transactions,
            duplicates_found=duplicates_found,
            detected_format=str(data.get("detectedFormat") or ""),
            detected_currency=str(data.get("detectedCurrency") or ""),
            date_range=date_range,
            filename=str(data.get("filename") or ""),
        )


@dataclass(frozen=True)
class HistoricalTransaction:
    """A confirmed ledger transaction used to learn categorizations.

    Attributes:
        id: Ledger transaction ID.
        description: Description as stored in the ledger.
        transaction_type: INCOME, EXPENSE or TRANSFER.
        category_id: Category assigned in the ledger (None if uncategorized).
        occurred_at: Transaction date, if known.
    """

    id: str
    description: Optional[str]
    transaction_type: TransactionType
    category_id: Optional[str] = None
    occurred_at: Optional[date] = None

    @property
    def is_transfer(self) -> bool:
        return self.transaction_type == TransactionType.TRANSFER

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoricalTransaction":
        """Create from a ledger transaction payload.

        Raises:
            ValueError: If the type is missing or unknown.
        """
        category_id = data.get("categoryId")
        if not category_id and isinstance(data.get("category"), dict):
            category_id = data["category"].get("id")

        occurred_at = None
        if data.get("occurredAt"):
            try:
                occurred_at = parse_date(data["occurredAt"])
            except ValueError:
                occurred_at = None

        return cls(
            id=str(data.get("id", "")),
            description=data.get("description"),
            transaction_type=TransactionType.parse(data.get("type")),
            category_id=str(category_id) if category_id else None,
            occurred_at=occurred_at,
        )
