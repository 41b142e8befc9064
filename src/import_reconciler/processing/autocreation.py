"""Creation of categories that candidates need but the ledger lacks."""

from typing import Callable, Optional

from import_reconciler.errors import LedgerError
from import_reconciler.ledger import LedgerClient
from import_reconciler.models.category import Category
from import_reconciler.models.session import SuggestionSource
from import_reconciler.models.transaction import CandidateTransaction, TransactionType
from import_reconciler.processing.resolver import (
    build_category_index,
    candidate_category_name,
    find_category_by_name,
)
from import_reconciler.processing.selection import SelectionStore
from import_reconciler.utils.logging_config import get_logger
from import_reconciler.utils.text import DERIVED_NAME_MAX_LENGTH, normalize_key

logger = get_logger(__name__)

# Default colors for well-known category names
CATEGORY_COLORS = {
    # Income
    "Salario": "#10b981",
    "Otros Ingresos": "#22c55e",
    "Inversiones": "#14b8a6",
    "Reembolsos": "#06b6d4",
    "Bizum Recibido": "#22c55e",
    "Transferencias Recibidas": "#10b981",
    "Transferencias Enviadas": "#f97316",
    # Food
    "Supermercado": "#f59e0b",
    "Restaurantes": "#f97316",
    # Transport
    "Gasolina": "#ef4444",
    "Taxi/VTC": "#f43f5e",
    "Transporte Público": "#8b5cf6",
    "Parking": "#a855f7",
    "Vehículo": "#f97316",
    "Peajes": "#64748b",
    # Utilities
    "Teléfono/Internet": "#3b82f6",
    "Electricidad/Gas": "#eab308",
    "Agua": "#06b6d4",
    "Suscripciones": "#ec4899",
    "Seguros": "#6366f1",
    # Shopping
    "Compras Online": "#f97316",
    "Ropa": "#d946ef",
    "Hogar": "#84cc16",
    "Deportes": "#14b8a6",
    # Health
    "Farmacia": "#22c55e",
    "Salud": "#10b981",
    "Gimnasio": "#14b8a6",
    "Cuidado Personal": "#d946ef",
    # Housing
    "Alquiler": "#64748b",
    "Hipoteca": "#475569",
    "Comunidad": "#94a3b8",
    "Impuestos": "#dc2626",
    # Leisure
    "Cine": "#a855f7",
    "Entretenimiento": "#d946ef",
    "Apuestas": "#ef4444",
    # Banking
    "Comisiones Bancarias": "#ef4444",
    "Cajero": "#64748b",
    "Transferencias": "#3b82f6",
    "Bizum Enviado": "#f97316",
    "Educación": "#6366f1",
    "Viajes": "#0ea5e9",
    "Mascotas": "#84cc16",
    "Donaciones": "#ec4899",
    "Otros Gastos": "#94a3b8",
}

TYPE_DEFAULT_COLORS = {
    TransactionType.INCOME: "#22c55e",
    TransactionType.EXPENSE: "#94a3b8",
}

_COLORS_BY_KEY = {normalize_key(name): color for name, color in CATEGORY_COLORS.items()}


def default_color(name: str, category_type: TransactionType) -> str:
    """Pick a color for a new category by name, falling back to its type's default."""
    color = _COLORS_BY_KEY.get(normalize_key(name))
    if color:
        return color
    return TYPE_DEFAULT_COLORS.get(category_type, TYPE_DEFAULT_COLORS[TransactionType.EXPENSE])


def attempt_key(name: str, category_type: TransactionType) -> str:
    """Key identifying one logical category in the attempted set."""
    return f"{category_type.value}-{normalize_key(name)}"


class CategoryAutocreator:
    """Creates each missing category at most once per session.

    Names are checked against the attempted set and added to it in a single
    pass before any ledger call is made, so a name is never requested twice
    even when several transactions need it or the coordinator runs again.
    """

    def __init__(self, ledger: LedgerClient, attempted: Optional[set[str]] = None):
        """Initialize coordinator.

        Args:
            ledger: Ledger client used to create categories.
            attempted: Session-scoped set of attempted keys (shared, mutated).
        """
        self.ledger = ledger
        self.attempted = attempted if attempted is not None else set()

    def plan(
        self,
        transactions: list[CandidateTransaction],
        store: SelectionStore,
        categories: list[Category],
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
    ) -> list[tuple[str, TransactionType]]:
        """Collect the categories to create and mark them as attempted.

        Args:
            transactions: Candidates in preview order.
            store: Current selections.
            categories: Known categories.
            max_name_length: Maximum length of derived names.

        Returns:
            (name, type) pairs in first-seen order.
        """
        index = build_category_index(categories)
        pending: list[tuple[str, TransactionType]] = []

        for txn in transactions:
            if txn.is_duplicate or store.get(txn.hash).is_categorized:
                continue

            name = candidate_category_name(txn, max_name_length)
            if not normalize_key(name):
                continue
            if find_category_by_name(index, name, txn.transaction_type):
                continue

            key = attempt_key(name, txn.transaction_type)
            if key in self.attempted:
                continue
            self.attempted.add(key)
            pending.append((name, txn.transaction_type))

        return pending

    def create_missing(
        self,
        transactions: list[CandidateTransaction],
        store: SelectionStore,
        categories: list[Category],
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
    ) -> list[Category]:
        """Create the planned categories one after another.

        Failures are logged and dropped; they are not retried in this session.

        Returns:
            Categories the ledger created.
        """
        created: list[Category] = []

        for name, category_type in self.plan(transactions, store, categories, max_name_length):
            try:
                category = self.ledger.create_category(
                    name, category_type, default_color(name, category_type)
                )
            except LedgerError as e:
                logger.warning(f"Could not create category '{name}' ({category_type.value}): {e}")
                continue
            logger.debug(f"Created category {category!r}")
            created.append(category)

        return created

    def backfill(
        self,
        transactions: list[CandidateTransaction],
        store: SelectionStore,
        created: list[Category],
        sources: dict[str, SuggestionSource],
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
    ) -> list[str]:
        """Assign newly created categories to the transactions that needed them.

        Returns:
            Hashes that received a category.
        """
        index = build_category_index(created)
        assigned: list[str] = []

        for txn in transactions:
            if txn.is_duplicate or store.get(txn.hash).is_categorized:
                continue
            category = find_category_by_name(
                index, candidate_category_name(txn, max_name_length), txn.transaction_type
            )
            if category is None:
                continue
            store.set_category(txn.hash, category.id)
            sources[txn.hash] = SuggestionSource.AUTO
            assigned.append(txn.hash)

        return assigned

    def run(
        self,
        transactions: list[CandidateTransaction],
        store: SelectionStore,
        categories: list[Category],
        sources: dict[str, SuggestionSource],
        max_name_length: int = DERIVED_NAME_MAX_LENGTH,
        should_apply: Optional[Callable[[], bool]] = None,
    ) -> list[Category]:
        """Create missing categories and back-fill the selections that need them.

        Args:
            transactions: Candidates in preview order.
            store: Selection store (modified in place).
            categories: Known categories.
            sources: Suggestion source map (modified in place).
            max_name_length: Maximum length of derived names.
            should_apply: Checked once creation has finished; if it returns
                False the new categories are not back-filled or returned.

        Returns:
            Categories the ledger created and that were applied.
        """
        created = self.create_missing(transactions, store, categories, max_name_length)
        if not created:
            return []
        if should_apply is not None and not should_apply():
            logger.info(f"Discarding {len(created)} created categories from a reset session")
            return []

        assigned = self.backfill(transactions, store, created, sources, max_name_length)
        logger.info(
            f"Created {len(created)} categories, "
            f"assigned to {len(assigned)} transactions"
        )
        return created
