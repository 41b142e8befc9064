"""Tests for the batch commit pipeline."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from conftest import FakeLedger, make_preview, make_txn
from import_reconciler.errors import CommitError, LedgerError, NothingSelectedError
from import_reconciler.models.category import Category
from import_reconciler.models.session import BatchProgress, Selection
from import_reconciler.models.transaction import SuggestedCategory, TransactionType
from import_reconciler.processing.commit import BatchCommitPipeline, chunk, transaction_to_payload
from import_reconciler.processing.selection import SelectionStore


def build(count: int, duplicates: int = 0):
    transactions = [make_txn(f"h{i:03d}", f"COMERCIO {i}") for i in range(count)]
    transactions += [make_txn(f"d{i}", "REPETIDO", is_duplicate=True) for i in range(duplicates)]
    preview = make_preview(transactions)
    return preview, SelectionStore.from_preview(transactions)


class TestTransactionToPayload:
    """Tests for transaction_to_payload."""

    def test_full_payload(self) -> None:
        """Test every field of a categorized row with a suggestion."""
        txn = make_txn(
            "h1",
            "PAGO NETFLIX",
            "-9.99",
            suggestion=SuggestedCategory(category_name="Suscripciones", confidence=0.9, category_id="C1"),
            original_date=date(2026, 2, 14),
        )
        payload = transaction_to_payload(txn, Selection(selected=True, description="Netflix"), "C1")
        assert payload == {
            "hash": "h1",
            "categoryId": "C1",
            "description": "Netflix",
            "date": "2026-02-14",
            "amount": -9.99,
            "type": "EXPENSE",
            "suggestedCategoryId": "C1",
            "confidence": 0.9,
        }

    def test_optional_keys_omitted(self) -> None:
        """Test that absent optional values are left out."""
        txn = make_txn("h1", None)
        payload = transaction_to_payload(txn, Selection(selected=True, description=None))
        assert set(payload) == {"hash", "description", "date", "amount", "type"}
        assert payload["description"] == ""

    def test_suggestion_without_id(self) -> None:
        """Test that a name-only suggestion still sends its confidence."""
        txn = make_txn("h1", "X", suggestion=SuggestedCategory(category_name="Otros", confidence=0.3))
        payload = transaction_to_payload(txn, Selection(selected=True, description="X"))
        assert "suggestedCategoryId" not in payload
        assert payload["confidence"] == 0.3


class TestChunk:
    """Tests for chunk."""

    def test_sizes(self) -> None:
        """Test that the last chunk holds the remainder."""
        assert [len(c) for c in chunk(list(range(250)), 100)] == [100, 100, 50]

    def test_invalid_size(self) -> None:
        """Test that non-positive sizes are rejected."""
        with pytest.raises(ValueError):
            chunk([1], 0)


class TestBatchCommitPipeline:
    """Tests for BatchCommitPipeline.commit."""

    def test_chunks_in_order_with_progress(self) -> None:
        """Test 250 selected rows commit as 100, 100, 50 in preview order."""
        preview, store = build(250)
        ledger = FakeLedger()
        progress: list[BatchProgress] = []

        result = BatchCommitPipeline(ledger, "acc1", chunk_size=100).commit(
            preview, store, [], on_progress=progress.append
        )

        assert [len(c) for c in ledger.confirm_calls] == [100, 100, 50]
        hashes = [row["hash"] for c in ledger.confirm_calls for row in c]
        assert hashes == [txn.hash for txn in preview.transactions]
        assert progress == [BatchProgress(1, 3), BatchProgress(2, 3), BatchProgress(3, 3)]
        assert result.imported == 250
        assert result.skipped == 0

    def test_skipped_counts_deselected_and_server_skips(self) -> None:
        """Test that skipped adds deselected rows to server-side skips."""
        preview, store = build(10, duplicates=2)
        store.set_selected("h000", False)
        ledger = FakeLedger()
        ledger.skipped_per_chunk = 1

        result = BatchCommitPipeline(ledger, "acc1", chunk_size=4).commit(preview, store, [])

        # 12 rows, 9 selected in chunks of 4, 4, 1; one server skip per chunk
        assert result.imported == 6
        assert result.skipped == 3 + 3
        assert result.duplicates_found == 2

    def test_partial_failure(self) -> None:
        """Test that a failing second chunk stops with the first chunk's count."""
        preview, store = build(250)
        ledger = FakeLedger()
        ledger.fail_on_chunk = 2
        progress: list[BatchProgress] = []

        with pytest.raises(CommitError) as exc_info:
            BatchCommitPipeline(ledger, "acc1", chunk_size=100).commit(
                preview, store, [], on_progress=progress.append
            )

        error = exc_info.value
        assert error.imported == 100
        assert error.failed_chunk == 2
        assert error.total_chunks == 3
        assert isinstance(error.__cause__, LedgerError)
        assert len(ledger.confirm_calls) == 2
        assert progress == [BatchProgress(1, 3)]

    def test_nothing_selected(self) -> None:
        """Test that an empty selection is rejected before any request."""
        preview, store = build(3)
        store.select_all(False)
        ledger = MagicMock()

        with pytest.raises(NothingSelectedError):
            BatchCommitPipeline(ledger, "acc1").commit(preview, store, [])

        ledger.confirm_import.assert_not_called()

    def test_late_name_resolution(self) -> None:
        """Test that uncategorized rows get a category created since review."""
        transactions = [
            make_txn("h1", "GIMNASIO 22 - CENTRO"),
            make_txn("h2", "ALGO", suggestion=SuggestedCategory(category_name="Gimnasio", confidence=0.5)),
            make_txn("h3", "DESCONOCIDO"),
        ]
        preview = make_preview(transactions)
        store = SelectionStore.from_preview(transactions)
        categories = [Category(id="G1", name="Gimnasio", category_type=TransactionType.EXPENSE)]
        ledger = FakeLedger()

        BatchCommitPipeline(ledger, "acc1").commit(preview, store, categories)

        rows = ledger.confirm_calls[0]
        assert rows[0]["categoryId"] == "G1"
        assert rows[1]["categoryId"] == "G1"
        assert "categoryId" not in rows[2]
        # Review state is left untouched
        assert store.get("h1").category_id is None

    def test_uses_edited_description(self) -> None:
        """Test that the reviewed description is committed."""
        preview, store = build(1)
        store.set_description("h000", "Cena cumpleaños")
        ledger = FakeLedger()

        BatchCommitPipeline(ledger, "acc1").commit(preview, store, [])

        assert ledger.confirm_calls[0][0]["description"] == "Cena cumpleaños"
