"""Data models for candidate transactions, categories, rules and session state."""

from import_reconciler.models.category import Category, CategoryRule, MatchMode, RuleScope
from import_reconciler.models.session import (
    BatchProgress,
    ChunkResult,
    ImportResult,
    Selection,
    SuggestionSource,
)
from import_reconciler.models.transaction import (
    CandidateTransaction,
    DateRange,
    HistoricalTransaction,
    ImportPreview,
    SuggestedCategory,
    TransactionType,
)

__all__ = [
    "CandidateTransaction",
    "DateRange",
    "HistoricalTransaction",
    "ImportPreview",
    "SuggestedCategory",
    "TransactionType",
    "Category",
    "CategoryRule",
    "MatchMode",
    "RuleScope",
    "BatchProgress",
    "ChunkResult",
    "ImportResult",
    "Selection",
    "SuggestionSource",
]
