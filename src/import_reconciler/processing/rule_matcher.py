"""Keyword rule evaluation."""

from typing import Optional

from import_reconciler.models.category import CategoryRule
from import_reconciler.models.transaction import TransactionType
from import_reconciler.utils.logging_config import get_logger

logger = get_logger(__name__)


def find_matching_rule(
    rules: list[CategoryRule],
    description: Optional[str],
    transaction_type: TransactionType,
) -> Optional[CategoryRule]:
    """Find the first rule matching a transaction.

    Rules are evaluated in the order given, which callers keep newest first.

    Args:
        rules: Ordered rule list.
        description: Transaction description.
        transaction_type: Transaction type.

    Returns:
        First matching rule, or None.
    """
    if not description:
        return None

    for rule in rules:
        if rule.matches(description, transaction_type):
            logger.debug(f"Rule {rule.id} matched '{description[:40]}': {rule.category_id}")
            return rule

    return None


def apply_rules(
    rules: list[CategoryRule],
    description: Optional[str],
    transaction_type: TransactionType,
) -> Optional[str]:
    """Return the category ID of the first matching rule, or None."""
    rule = find_matching_rule(rules, description, transaction_type)
    return rule.category_id if rule else None
