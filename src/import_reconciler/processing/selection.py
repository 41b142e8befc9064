"""Review state for the transactions of one import."""

from collections.abc import Iterator
from decimal import Decimal
from typing import Optional

from import_reconciler.errors import MalformedPreviewError, UnknownTransactionError
from import_reconciler.models.session import Selection
from import_reconciler.models.transaction import CandidateTransaction, TransactionType
from import_reconciler.utils.decimal_utils import sum_amounts


class SelectionStore:
    """Include/exclude and category state for each candidate, keyed by hash.

    There is exactly one Selection per candidate hash, in preview order.
    Duplicates start deselected and are never selected in bulk, but can be
    selected one at a time.
    """

    def __init__(
        self,
        transactions: dict[str, CandidateTransaction],
        selections: dict[str, Selection],
    ):
        self._transactions = transactions
        self._selections = selections

    @classmethod
    def from_preview(cls, transactions: list[CandidateTransaction]) -> "SelectionStore":
        """Create the initial selections for a preview.

        Args:
            transactions: Candidates in preview order.

        Returns:
            A store with non-duplicates selected and no categories assigned.

        Raises:
            MalformedPreviewError: If two candidates share a hash.
        """
        by_hash: dict[str, CandidateTransaction] = {}
        selections: dict[str, Selection] = {}
        for txn in transactions:
            if txn.hash in by_hash:
                raise MalformedPreviewError(f"Duplicate transaction hash in preview: {txn.hash}")
            by_hash[txn.hash] = txn
            selections[txn.hash] = Selection(
                selected=not txn.is_duplicate,
                description=txn.description,
            )
        return cls(by_hash, selections)

    def _require(self, tx_hash: str) -> Selection:
        try:
            return self._selections[tx_hash]
        except KeyError:
            raise UnknownTransactionError(tx_hash) from None

    def get(self, tx_hash: str) -> Selection:
        """Get the selection for a hash.

        Raises:
            UnknownTransactionError: If the hash is not part of the preview.
        """
        return self._require(tx_hash)

    def transaction(self, tx_hash: str) -> CandidateTransaction:
        """Get the candidate transaction for a hash."""
        if tx_hash not in self._transactions:
            raise UnknownTransactionError(tx_hash)
        return self._transactions[tx_hash]

    def toggle(self, tx_hash: str) -> bool:
        """Flip the selected flag. Returns the new value."""
        selection = self._require(tx_hash)
        selection.selected = not selection.selected
        return selection.selected

    def set_selected(self, tx_hash: str, selected: bool) -> None:
        self._require(tx_hash).selected = selected

    def set_category(self, tx_hash: str, category_id: Optional[str]) -> None:
        self._require(tx_hash).category_id = category_id

    def set_description(self, tx_hash: str, description: str) -> None:
        self._require(tx_hash).description = description

    def select_all(self, selected: bool) -> None:
        """Select or deselect every row. Duplicates always end up deselected."""
        for tx_hash, selection in self._selections.items():
            selection.selected = selected and not self._transactions[tx_hash].is_duplicate

    def __iter__(self) -> Iterator[tuple[CandidateTransaction, Selection]]:
        for tx_hash, selection in self._selections.items():
            yield self._transactions[tx_hash], selection

    def __len__(self) -> int:
        return len(self._selections)

    def __contains__(self, tx_hash: object) -> bool:
        return tx_hash in self._selections

    def selected_transactions(self) -> list[tuple[CandidateTransaction, Selection]]:
        """Get selected rows in preview order."""
        return [(txn, selection) for txn, selection in self if selection.selected]

    @property
    def selected_count(self) -> int:
        return sum(1 for selection in self._selections.values() if selection.selected)

    @property
    def uncategorized_count(self) -> int:
        """Number of selected rows without a category."""
        return sum(
            1
            for selection in self._selections.values()
            if selection.selected and not selection.is_categorized
        )

    def _selected_total(self, transaction_type: TransactionType) -> Decimal:
        return sum_amounts(
            [
                abs(txn.amount)
                for txn, selection in self
                if selection.selected and txn.transaction_type == transaction_type
            ]
        )

    @property
    def selected_income_total(self) -> Decimal:
        return self._selected_total(TransactionType.INCOME)

    @property
    def selected_expense_total(self) -> Decimal:
        return self._selected_total(TransactionType.EXPENSE)
