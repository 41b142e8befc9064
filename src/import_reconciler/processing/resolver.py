"""Category resolution for candidate transactions."""

from collections.abc import Iterator
from typing import Optional

from import_reconciler.models.category import Category, CategoryRule
from import_reconciler.models.session import SuggestionSource
from import_reconciler.models.transaction import CandidateTransaction, TransactionType
from import_reconciler.processing.history import HistoryLearner
from import_reconciler.processing.rule_matcher import apply_rules
from import_reconciler.processing.selection import SelectionStore
from import_reconciler.utils.logging_config import get_logger
from import_reconciler.utils.text import (
    DERIVED_NAME_MAX_LENGTH,
    derive_category_name,
    normalize_key,
)

logger = get_logger(__name__)

CategoryIndex = dict[tuple[TransactionType, str], Category]


def build_category_index(categories: list[Category]) -> CategoryIndex:
    """Index categories by type and name key.

    When two categories share a key, the first one listed wins.

    Args:
        categories: Category snapshot.

    Returns:
        Mapping of (type, normalize_key(name)) to category.
    """
    index: CategoryIndex = {}
    for category in categories:
        key = normalize_key(category.name)
        if not key:
            continue
        index.setdefault((category.category_type, key), category)
    return index


def find_category_by_name(
    index: CategoryIndex,
    name: Optional[str],
    transaction_type: TransactionType,
) -> Optional[Category]:
    """Look up a category of the given type whose name matches."""
    key = normalize_key(name)
    if not key:
        return None
    return index.get((transaction_type, key))


def candidate_category_name(
    txn: CandidateTransaction,
    max_length: int = DERIVED_NAME_MAX_LENGTH,
) -> str:
    """Name a category for a transaction: the classifier's, else one derived from the description."""
    if txn.suggested_category and txn.suggested_category.category_name.strip():
        return txn.suggested_category.category_name.strip()
    return derive_category_name(txn.description, max_length)


class CategoryResolver:
    """Assigns categories to candidates from several signal sources.

    The resolver tries (in order of priority), stopping at the first hit:
    1. User keyword rules
    2. Learned history for the same description and type
    3. Category ID supplied by the classifier
    4. Existing category matching the classifier's suggested name
    5. Existing category matching a name derived from the description

    A source pointing at a known category of the wrong type is skipped.
    Selections that already carry a category are never touched, so running
    the resolver again is harmless.
    """

    def __init__(
        self,
        rules: list[CategoryRule],
        history: HistoryLearner,
        categories: list[Category],
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
    ):
        """Initialize resolver with immutable snapshots.

        Args:
            rules: User rules, newest first.
            history: Learned associations.
            categories: Known categories.
            max_name_length: Maximum length of derived names.
        """
        self.rules = list(rules)
        self.history = history
        self.max_name_length = max_name_length
        self._categories_by_id = {category.id: category for category in categories}
        self._index = build_category_index(categories)

    def _signals(self, txn: CandidateTransaction) -> Iterator[tuple[Optional[str], SuggestionSource]]:
        # Lazy so that lower-priority sources are only consulted when needed
        yield apply_rules(self.rules, txn.description, txn.transaction_type), SuggestionSource.RULE
        yield self.history.lookup(txn.transaction_type, txn.description), SuggestionSource.HISTORY

        suggestion = txn.suggested_category
        if suggestion and suggestion.category_id:
            yield suggestion.category_id, SuggestionSource.AUTO
        elif suggestion and suggestion.category_name:
            match = find_category_by_name(self._index, suggestion.category_name, txn.transaction_type)
            yield (match.id if match else None), SuggestionSource.AUTO

        derived = derive_category_name(txn.description, self.max_name_length)
        match = find_category_by_name(self._index, derived, txn.transaction_type)
        yield (match.id if match else None), SuggestionSource.AUTO

    def _type_matches(self, category_id: str, transaction_type: TransactionType) -> bool:
        category = self._categories_by_id.get(category_id)
        # Unknown IDs are trusted; the ledger validates them on commit
        return category is None or category.category_type == transaction_type

    def resolve(self, txn: CandidateTransaction) -> Optional[tuple[str, SuggestionSource]]:
        """Resolve a category for one transaction.

        Args:
            txn: Candidate transaction.

        Returns:
            (category_id, source) of the first usable signal, or None.
        """
        for category_id, source in self._signals(txn):
            if not category_id:
                continue
            if not self._type_matches(category_id, txn.transaction_type):
                logger.debug(
                    f"{txn.hash}: {source.value} category '{category_id}' has the wrong type, skipping"
                )
                continue
            return category_id, source
        return None

    def resolve_all(
        self,
        transactions: list[CandidateTransaction],
        store: SelectionStore,
        sources: dict[str, SuggestionSource],
    ) -> list[str]:
        """Fill in categories for every uncategorized, non-duplicate candidate.

        Args:
            transactions: Candidates in preview order.
            store: Selection store (modified in place).
            sources: Suggestion source map (modified in place).

        Returns:
            Hashes that received a category.
        """
        assigned: list[str] = []

        for txn in transactions:
            if txn.is_duplicate:
                continue
            if store.get(txn.hash).is_categorized:
                continue

            resolution = self.resolve(txn)
            if resolution is None:
                continue

            category_id, source = resolution
            store.set_category(txn.hash, category_id)
            sources[txn.hash] = source
            assigned.append(txn.hash)

        uncategorized = sum(
            1 for txn in transactions
            if not txn.is_duplicate and not store.get(txn.hash).is_categorized
        )
        logger.info(
            f"Categorized {len(assigned)} transactions, "
            f"{uncategorized} uncategorized"
        )

        return assigned
