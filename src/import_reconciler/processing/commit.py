"""Chunked commit of the reviewed selection to the ledger."""

from typing import Any, Callable, Optional

from import_reconciler.errors import CommitError, NothingSelectedError
from import_reconciler.ledger import LedgerClient
from import_reconciler.models.category import Category
from import_reconciler.models.session import BatchProgress, ImportResult, Selection
from import_reconciler.models.transaction import CandidateTransaction, ImportPreview
from import_reconciler.processing.resolver import (
    build_category_index,
    candidate_category_name,
    find_category_by_name,
)
from import_reconciler.processing.selection import SelectionStore
from import_reconciler.utils.date_utils import date_to_iso
from import_reconciler.utils.logging_config import get_logger
from import_reconciler.utils.text import DERIVED_NAME_MAX_LENGTH

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


def transaction_to_payload(
    txn: CandidateTransaction,
    selection: Selection,
    category_id: Optional[str] = None,
) -> dict[str, Any]:
    """Convert a selected transaction to the confirm payload format.

    Optional keys are left out rather than sent as null.
    """
    payload: dict[str, Any] = {"hash": txn.hash}
    if category_id:
        payload["categoryId"] = category_id

    description = selection.description if selection.description is not None else txn.description
    payload["description"] = description or ""
    payload["date"] = date_to_iso(txn.original_date)
    payload["amount"] = float(txn.amount)
    payload["type"] = txn.transaction_type.value

    suggestion = txn.suggested_category
    if suggestion:
        if suggestion.category_id:
            payload["suggestedCategoryId"] = suggestion.category_id
        payload["confidence"] = suggestion.confidence

    return payload


def chunk(items: list[Any], size: int) -> list[list[Any]]:
    """Split a list into consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


class BatchCommitPipeline:
    """Commits selected transactions in fixed-size chunks, one at a time.

    Chunks are submitted in preview order. The first failing chunk stops the
    batch; chunks already accepted stay committed and their counts are
    reported on the raised CommitError. Re-running is safe because committed
    rows come back from the parser as duplicates.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        account_id: str,
        chunk_size: int = 100,
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
    ):
        """Initialize pipeline.

        Args:
            ledger: Ledger client.
            account_id: Account receiving the transactions.
            chunk_size: Transactions per confirm request.
            max_name_length: Maximum length of derived names.
        """
        self.ledger = ledger
        self.account_id = account_id
        self.chunk_size = chunk_size
        self.max_name_length = max_name_length

    def build_payloads(
        self,
        store: SelectionStore,
        categories: list[Category],
    ) -> list[dict[str, Any]]:
        """Build confirm payloads for the selected rows.

        Rows still lacking a category get one last name lookup against the
        current categories; if that fails they are committed uncategorized.

        Raises:
            NothingSelectedError: If no row is selected.
        """
        selected = store.selected_transactions()
        if not selected:
            raise NothingSelectedError("No transactions selected for import")

        index = build_category_index(categories)
        payloads = []
        late_matches = 0

        for txn, selection in selected:
            category_id = selection.category_id
            if category_id is None:
                category = find_category_by_name(
                    index,
                    candidate_category_name(txn, self.max_name_length),
                    txn.transaction_type,
                )
                if category:
                    category_id = category.id
                    late_matches += 1
            payloads.append(transaction_to_payload(txn, selection, category_id))

        if late_matches:
            logger.debug(f"Resolved {late_matches} categories by name at commit time")

        return payloads

    def commit(
        self,
        preview: ImportPreview,
        store: SelectionStore,
        categories: list[Category],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Commit the selected transactions.

        Args:
            preview: Preview the selections belong to.
            store: Reviewed selections.
            categories: Current category snapshot.
            on_progress: Called after each chunk with 1-based progress.

        Returns:
            ImportResult with imported, skipped and duplicate counts.

        Raises:
            NothingSelectedError: If no row is selected.
            CommitError: If a chunk fails.
        """
        payloads = self.build_payloads(store, categories)
        chunks = chunk(payloads, self.chunk_size)
        total_chunks = len(chunks)

        imported = 0
        skipped = len(preview.transactions) - len(payloads)

        for number, batch in enumerate(chunks, start=1):
            try:
                result = self.ledger.confirm_import(self.account_id, batch)
            except Exception as e:
                logger.error(
                    f"Chunk {number}/{total_chunks} failed after {imported} imported: {e}"
                )
                raise CommitError(
                    f"Import stopped at chunk {number} of {total_chunks}: {e}",
                    imported=imported,
                    skipped=skipped,
                    failed_chunk=number,
                    total_chunks=total_chunks,
                ) from e

            imported += result.imported
            skipped += result.skipped
            logger.debug(
                f"Chunk {number}/{total_chunks}: {result.imported} imported, "
                f"{result.skipped} skipped"
            )

            if on_progress:
                on_progress(BatchProgress(current=number, total=total_chunks))

        logger.info(
            f"Committed {len(payloads)} transactions in {total_chunks} chunks: "
            f"{imported} imported, {skipped} skipped"
        )

        return ImportResult(
            imported=imported,
            skipped=skipped,
            duplicates_found=preview.duplicates_found,
        )
