"""Shared fixtures: an in-memory ledger and transaction builders."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import pytest

from import_reconciler.errors import LedgerError
from import_reconciler.models.category import Category
from import_reconciler.models.session import ChunkResult
from import_reconciler.models.transaction import (
    CandidateTransaction,
    HistoricalTransaction,
    ImportPreview,
    SuggestedCategory,
    TransactionType,
)


class FakeLedger:
    """In-memory ledger recording every call it receives."""

    def __init__(
        self,
        categories: Optional[list[Category]] = None,
        history: Optional[list[HistoricalTransaction]] = None,
        preview: Optional[ImportPreview] = None,
    ):
        self.categories = list(categories or [])
        self.history = list(history or [])
        self.preview = preview
        self.create_calls: list[tuple[str, TransactionType, Optional[str]]] = []
        self.confirm_calls: list[list[dict[str, Any]]] = []
        self.failing_names: set[str] = set()
        self.fail_on_chunk: Optional[int] = None
        self.skipped_per_chunk = 0
        self.on_confirm = None
        self._next_id = 1

    def preview_import(self, file_path: Path, account_id: str) -> ImportPreview:
        if self.preview is None:
            raise LedgerError("No preview configured")
        return self.preview

    def list_categories(self) -> list[Category]:
        return list(self.categories)

    def create_category(
        self,
        name: str,
        category_type: TransactionType,
        color: Optional[str] = None,
    ) -> Category:
        self.create_calls.append((name, category_type, color))
        if name in self.failing_names:
            raise LedgerError(f"Cannot create {name}")
        category = Category(
            id=f"new_{self._next_id}",
            name=name,
            category_type=category_type,
            color=color,
        )
        self._next_id += 1
        self.categories.append(category)
        return category

    def list_recent_transactions(self, limit: int) -> list[HistoricalTransaction]:
        return self.history[:limit]

    def confirm_import(self, account_id: str, transactions: list[dict[str, Any]]) -> ChunkResult:
        self.confirm_calls.append(transactions)
        if self.on_confirm:
            self.on_confirm()
        if self.fail_on_chunk == len(self.confirm_calls):
            raise LedgerError("Server error")
        skipped = min(self.skipped_per_chunk, len(transactions))
        return ChunkResult(imported=len(transactions) - skipped, skipped=skipped)


def make_txn(
    tx_hash: str,
    description: Optional[str] = "COMPRA",
    amount: str = "-10.00",
    transaction_type: TransactionType = TransactionType.EXPENSE,
    is_duplicate: bool = False,
    suggestion: Optional[SuggestedCategory] = None,
    original_date: date = date(2026, 3, 1),
) -> CandidateTransaction:
    """Build a candidate transaction with sensible defaults."""
    return CandidateTransaction(
        hash=tx_hash,
        description=description,
        amount=Decimal(amount),
        transaction_type=transaction_type,
        original_date=original_date,
        is_duplicate=is_duplicate,
        suggested_category=suggestion,
    )


def make_preview(transactions: list[CandidateTransaction]) -> ImportPreview:
    return ImportPreview(
        transactions=transactions,
        duplicates_found=sum(1 for t in transactions if t.is_duplicate),
        detected_format="santander",
        detected_currency="EUR",
        filename="movimientos.xlsx",
    )


@pytest.fixture
def expense_categories() -> list[Category]:
    return [
        Category(id="C1", name="Suscripciones", category_type=TransactionType.EXPENSE),
        Category(id="C2", name="Supermercado", category_type=TransactionType.EXPENSE),
        Category(id="C3", name="Café Madrid", category_type=TransactionType.EXPENSE),
        Category(id="I1", name="Salario", category_type=TransactionType.INCOME),
    ]


@pytest.fixture
def fake_ledger(expense_categories: list[Category]) -> FakeLedger:
    return FakeLedger(categories=expense_categories)
