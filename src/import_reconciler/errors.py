"""Exception hierarchy for the import reconciler."""


class ImportReconcilerError(Exception):
    """Base exception for all import reconciler errors."""

    pass


class ConfigError(ImportReconcilerError):
    """Exception raised for configuration errors."""

    pass


class MalformedPreviewError(ImportReconcilerError):
    """Raised when an import preview is empty or cannot be interpreted."""

    pass


class LedgerError(ImportReconcilerError):
    """Raised when a call to the ledger service fails."""

    pass


class UnknownTransactionError(ImportReconcilerError, KeyError):
    """Raised when a selection edit references a hash not in the preview."""

    def __init__(self, transaction_hash: str):
        super().__init__(transaction_hash)
        self.transaction_hash = transaction_hash

    def __str__(self) -> str:
        return f"Unknown transaction hash: {self.transaction_hash}"


class CategoryTypeMismatchError(ImportReconcilerError):
    """Raised when a category is assigned to a transaction of another type."""

    pass


class NothingSelectedError(ImportReconcilerError):
    """Raised when a commit is requested with no selected transactions."""

    pass


class CommitError(ImportReconcilerError):
    """Raised when a commit chunk fails.

    Chunks submitted before the failure remain committed. The counts carried
    here describe what the ledger already accepted.

    Attributes:
        imported: Rows imported by chunks that succeeded.
        skipped: Skipped rows accumulated so far (deselected + server skips).
        failed_chunk: 1-based index of the chunk that failed.
        total_chunks: Number of chunks in the batch.
    """

    def __init__(
        self,
        message: str,
        imported: int,
        skipped: int,
        failed_chunk: int,
        total_chunks: int,
    ):
        super().__init__(message)
        self.imported = imported
        self.skipped = skipped
        self.failed_chunk = failed_chunk
        self.total_chunks = total_chunks


class SessionNotStartedError(ImportReconcilerError):
    """Raised when a session operation needs a loaded preview."""

    pass
