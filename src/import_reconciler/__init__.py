"""Bank-statement import reconciliation and auto-categorization.

Takes a parsed statement preview, proposes a category for every new
transaction, lets the user review the selection and commits it to the
ledger in chunks.
"""

__version__ = "0.1.0"

from import_reconciler.errors import (
    CategoryTypeMismatchError,
    CommitError,
    ConfigError,
    ImportReconcilerError,
    LedgerError,
    MalformedPreviewError,
    NothingSelectedError,
    SessionNotStartedError,
    UnknownTransactionError,
)
from import_reconciler.processing.session import ImportSession

__all__ = [
    "__version__",
    "CategoryTypeMismatchError",
    "CommitError",
    "ConfigError",
    "ImportReconcilerError",
    "ImportSession",
    "LedgerError",
    "MalformedPreviewError",
    "NothingSelectedError",
    "SessionNotStartedError",
    "UnknownTransactionError",
]
