"""Category memory learned from the user's confirmed transactions."""

from dataclasses import dataclass
from typing import Optional

from import_reconciler.config import DEFAULT_HISTORY_LIMIT
from import_reconciler.models.transaction import HistoricalTransaction, TransactionType
from import_reconciler.utils.logging_config import get_logger
from import_reconciler.utils.text import normalize

logger = get_logger(__name__)


@dataclass
class LearnedAssociation:
    """Category learned for one (type, description) key.

    Attributes:
        category_id: First category observed for the key.
        count: Number of history entries sharing the key.
    """

    category_id: str
    count: int = 1


def learned_key(transaction_type: TransactionType, description: Optional[str]) -> str:
    """Build the lookup key for a type and description."""
    return f"{transaction_type.value}-{normalize(description)}"


class HistoryLearner:
    """Maps (type, normalized description) to the category the user chose.

    Built once per import session from a snapshot of recent ledger
    transactions and never persisted. The first category seen for a key
    wins; later occurrences only increase its count, even when they point
    at a different category.
    """

    def __init__(self, associations: Optional[dict[str, LearnedAssociation]] = None):
        self._associations: dict[str, LearnedAssociation] = dict(associations or {})

    @classmethod
    def from_transactions(
        cls,
        transactions: list[HistoricalTransaction],
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> "HistoryLearner":
        """Learn associations from recent transactions.

        Args:
            transactions: Ledger transactions, most recent first.
            limit: Maximum number of transactions to consider.

        Returns:
            A new HistoryLearner.
        """
        associations: dict[str, LearnedAssociation] = {}

        for txn in transactions[:limit]:
            if txn.is_transfer or not txn.category_id:
                continue
            if not normalize(txn.description):
                continue

            key = learned_key(txn.transaction_type, txn.description)
            existing = associations.get(key)
            if existing:
                existing.count += 1
            else:
                associations[key] = LearnedAssociation(category_id=txn.category_id)

        logger.info(
            f"Learned {len(associations)} associations from "
            f"{min(len(transactions), limit)} recent transactions"
        )
        return cls(associations)

    def __len__(self) -> int:
        return len(self._associations)

    def association(
        self,
        transaction_type: TransactionType,
        description: Optional[str],
    ) -> Optional[LearnedAssociation]:
        """Get the full learned record for a transaction, if any."""
        if not normalize(description):
            return None
        return self._associations.get(learned_key(transaction_type, description))

    def lookup(
        self,
        transaction_type: TransactionType,
        description: Optional[str],
    ) -> Optional[str]:
        """Get the learned category ID for a transaction, if any."""
        found = self.association(transaction_type, description)
        return found.category_id if found else None
