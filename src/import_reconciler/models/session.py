"""Per-session review state and commit result models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SuggestionSource(Enum):
    """Why a category was proposed for a transaction (informational only)."""

    RULE = "rule"
    HISTORY = "history"
    AUTO = "auto"


@dataclass
class Selection:
    """Mutable review state for one candidate transaction.

    Attributes:
        selected: Whether the row will be committed.
        category_id: Category to commit with (None for uncategorized).
        description: Description to commit (user-editable).
    """

    selected: bool
    category_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_categorized(self) -> bool:
        return self.category_id is not None


@dataclass(frozen=True)
class BatchProgress:
    """Commit progress after a chunk settles (1-based ``current``)."""

    current: int
    total: int


@dataclass(frozen=True)
class ChunkResult:
    """Ledger response to one commit chunk."""

    imported: int
    skipped: int


@dataclass(frozen=True)
class ImportResult:
    """Final summary of a committed import.

    Attributes:
        imported: Rows created in the ledger.
        skipped: Deselected rows plus rows the ledger skipped.
        duplicates_found: Duplicates reported by the preview.
    """

    imported: int
    skipped: int
    duplicates_found: int
