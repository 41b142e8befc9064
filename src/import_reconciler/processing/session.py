"""Lifecycle of a single statement import."""

from pathlib import Path
from typing import Optional

from import_reconciler.config import ImportConfig
from import_reconciler.errors import (
    CategoryTypeMismatchError,
    MalformedPreviewError,
    SessionNotStartedError,
)
from import_reconciler.ledger import LedgerClient
from import_reconciler.models.category import Category, CategoryRule
from import_reconciler.models.session import ImportResult, SuggestionSource
from import_reconciler.models.transaction import ImportPreview
from import_reconciler.processing.autocreation import CategoryAutocreator
from import_reconciler.processing.commit import BatchCommitPipeline, ProgressCallback
from import_reconciler.processing.history import HistoryLearner
from import_reconciler.processing.resolver import CategoryResolver
from import_reconciler.processing.selection import SelectionStore
from import_reconciler.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


def validate_preview(preview: ImportPreview) -> None:
    """Reject previews that cannot start a session.

    Raises:
        MalformedPreviewError: If the preview is empty or repeats a hash.
    """
    if not preview.transactions:
        raise MalformedPreviewError("No transactions found in the statement")

    seen: set[str] = set()
    for txn in preview.transactions:
        if txn.hash in seen:
            raise MalformedPreviewError(f"Duplicate transaction hash in preview: {txn.hash}")
        seen.add(txn.hash)


class ImportSession:
    """One import from preview to committed result.

    The session owns the selection store, the suggestion sources, the
    category snapshot and the set of category names already attempted.
    ``reset()`` discards all of them and bumps a generation counter; work
    that finishes under an older generation is not applied.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        account_id: str,
        rules: Optional[list[CategoryRule]] = None,
        settings: Optional[ImportConfig] = None,
    ):
        """Initialize session.

        Args:
            ledger: Ledger client.
            account_id: Account the statement belongs to.
            rules: User rules, newest first.
            settings: Import engine settings.
        """
        self.ledger = ledger
        self.account_id = account_id
        self.rules = list(rules or [])
        self.settings = settings or ImportConfig()

        self.generation = 0
        self.preview: Optional[ImportPreview] = None
        self.store: Optional[SelectionStore] = None
        self.categories: list[Category] = []
        self.history = HistoryLearner()
        self.suggestion_sources: dict[str, SuggestionSource] = {}
        self.attempted: set[str] = set()
        self.created_categories: list[Category] = []
        self.result: Optional[ImportResult] = None

    @property
    def is_active(self) -> bool:
        return self.preview is not None and self.store is not None

    def require_store(self) -> SelectionStore:
        """Return the selection store.

        Raises:
            SessionNotStartedError: If no statement is loaded.
        """
        if self.store is None:
            raise SessionNotStartedError("No statement loaded")
        return self.store

    def require_preview(self) -> ImportPreview:
        """Return the loaded preview.

        Raises:
            SessionNotStartedError: If no statement is loaded.
        """
        if self.preview is None:
            raise SessionNotStartedError("No statement loaded")
        return self.preview

    def start(self, file_path: Path) -> ImportPreview:
        """Upload a statement and load its preview.

        Args:
            file_path: Statement file.

        Returns:
            The loaded preview.
        """
        with LogContext(logger, "statement preview", file=file_path.name, account=self.account_id):
            preview = self.ledger.preview_import(file_path, self.account_id)
        self.load_preview(preview)
        return preview

    def load_preview(self, preview: ImportPreview) -> None:
        """Start reviewing a preview.

        The preview is validated before any state changes. Loading starts a
        new session: earlier state, attempted category names included, is
        discarded. Categories and recent history are fetched, initial
        selections are created, then categories are resolved and missing
        ones created.

        Raises:
            MalformedPreviewError: If the preview is empty or repeats a hash.
        """
        validate_preview(preview)
        self.reset()

        with LogContext(logger, "preview load", transactions=len(preview.transactions)):
            categories = self.ledger.list_categories()
            recent = self.ledger.list_recent_transactions(self.settings.history_limit)

            self.preview = preview
            store = SelectionStore.from_preview(preview.transactions)
            self.store = store
            self.categories = categories
            self.history = HistoryLearner.from_transactions(recent, self.settings.history_limit)

            self._resolve()
            self._autocreate()

        logger.info(
            f"Loaded {len(preview.transactions)} transactions "
            f"({preview.duplicates_found} duplicates, "
            f"{store.uncategorized_count} selected without category)"
        )

    def _resolve(self) -> list[str]:
        store = self.require_store()
        resolver = CategoryResolver(
            self.rules,
            self.history,
            self.categories,
            self.settings.derived_name_max_length,
        )
        return resolver.resolve_all(self.require_preview().transactions, store, self.suggestion_sources)

    def _autocreate(self) -> list[Category]:
        store = self.require_store()
        transactions = self.require_preview().transactions
        generation = self.generation

        created = CategoryAutocreator(self.ledger, self.attempted).run(
            transactions,
            store,
            self.categories,
            self.suggestion_sources,
            self.settings.derived_name_max_length,
            should_apply=lambda: generation == self.generation,
        )
        if created:
            self.categories = [*self.categories, *created]
            self.created_categories.extend(created)
        return created

    def update_rules(self, rules: list[CategoryRule]) -> list[str]:
        """Replace the rule snapshot and fill any remaining gaps.

        Returns:
            Hashes that received a category.
        """
        self.rules = list(rules)
        if not self.is_active:
            return []
        return self._resolve()

    def update_categories(self, categories: list[Category]) -> list[str]:
        """Replace the category snapshot and fill any remaining gaps.

        Returns:
            Hashes that received a category.
        """
        self.categories = list(categories)
        if not self.is_active:
            return []
        return self._resolve()

    def toggle(self, tx_hash: str) -> bool:
        return self.require_store().toggle(tx_hash)

    def set_selected(self, tx_hash: str, selected: bool) -> None:
        self.require_store().set_selected(tx_hash, selected)

    def select_all(self, selected: bool) -> None:
        self.require_store().select_all(selected)

    def set_description(self, tx_hash: str, description: str) -> None:
        self.require_store().set_description(tx_hash, description)

    def set_category(self, tx_hash: str, category_id: Optional[str]) -> None:
        """Manually assign (or clear) a category.

        Raises:
            UnknownTransactionError: If the hash is not in the preview.
            CategoryTypeMismatchError: If a known category has another type.
        """
        store = self.require_store()
        txn = store.transaction(tx_hash)

        if category_id is not None:
            category = next((c for c in self.categories if c.id == category_id), None)
            if category and category.category_type != txn.transaction_type:
                raise CategoryTypeMismatchError(
                    f"Category '{category.name}' is {category.category_type.value}, "
                    f"transaction {tx_hash} is {txn.transaction_type.value}"
                )

        store.set_category(tx_hash, category_id)
        self.suggestion_sources.pop(tx_hash, None)

    def commit(self, on_progress: Optional[ProgressCallback] = None) -> Optional[ImportResult]:
        """Commit the selected transactions.

        Args:
            on_progress: Called after each chunk with 1-based progress.

        Returns:
            The import result, or None if the session was reset meanwhile.

        Raises:
            NothingSelectedError: If nothing is selected.
            CommitError: If a chunk fails.
        """
        preview = self.require_preview()
        store = self.require_store()
        generation = self.generation

        pipeline = BatchCommitPipeline(
            self.ledger,
            self.account_id,
            chunk_size=self.settings.chunk_size,
            max_name_length=self.settings.derived_name_max_length,
        )
        with LogContext(logger, "import commit", account=self.account_id, selected=store.selected_count):
            result = pipeline.commit(preview, store, self.categories, on_progress)

        if generation != self.generation:
            logger.info("Session was reset during commit, ignoring result")
            return None

        self.result = result
        return result

    def reset(self) -> None:
        """Discard all session state."""
        self.generation += 1
        self.preview = None
        self.store = None
        self.categories = []
        self.history = HistoryLearner()
        self.suggestion_sources = {}
        self.attempted = set()
        self.created_categories = []
        self.result = None
        logger.debug(f"Session reset (generation {self.generation})")
