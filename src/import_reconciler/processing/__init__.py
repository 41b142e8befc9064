"""Categorization, review and commit pipeline."""

from import_reconciler.processing.autocreation import CategoryAutocreator, default_color
from import_reconciler.processing.commit import BatchCommitPipeline, transaction_to_payload
from import_reconciler.processing.history import HistoryLearner, LearnedAssociation
from import_reconciler.processing.resolver import (
    CategoryResolver,
    build_category_index,
    candidate_category_name,
)
from import_reconciler.processing.rule_matcher import apply_rules
from import_reconciler.processing.selection import SelectionStore
from import_reconciler.processing.session import ImportSession, validate_preview

__all__ = [
    "BatchCommitPipeline",
    "CategoryAutocreator",
    "CategoryResolver",
    "HistoryLearner",
    "ImportSession",
    "LearnedAssociation",
    "SelectionStore",
    "validate_preview",
    "apply_rules",
    "build_category_index",
    "candidate_category_name",
    "default_color",
    "transaction_to_payload",
]
