"""Category and categorization rule data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from import_reconciler.models.transaction import TransactionType
from import_reconciler.utils.text import normalize


class MatchMode(Enum):
    """How a rule keyword is compared against a description."""

    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


class RuleScope(Enum):
    """Transaction types a rule applies to."""

    ALL = "ALL"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    def includes(self, transaction_type: TransactionType) -> bool:
        """Check whether this scope covers a transaction type."""
        return self is RuleScope.ALL or self.value == transaction_type.value


@dataclass(frozen=True)
class Category:
    """Ledger category.

    Attributes:
        id: Ledger category ID.
        name: Human-readable category name.
        category_type: INCOME or EXPENSE (TRANSFER for internal categories).
        color: Optional color code (e.g., "#f59e0b").
    """

    id: str
    name: str
    category_type: TransactionType
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        """Create a Category from a ledger payload.

        Args:
            data: Dictionary containing category data.

        Returns:
            A new Category instance.

        Raises:
            KeyError: If the id is missing.
            ValueError: If the type is missing or unknown.
        """
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            category_type=TransactionType.parse(data.get("type")),
            color=str(data["color"]) if data.get("color") else None,
        )

    def __repr__(self) -> str:
        return f"Category(id={self.id!r}, name={self.name!r}, type={self.category_type.value})"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CategoryRule:
    """User-defined keyword rule mapping descriptions to a category.

    Keyword matching is case- and accent-insensitive. Rules are never
    mutated; editing a rule means deleting it and creating a new one.

    Attributes:
        id: Unique identifier for this rule.
        name: Display name.
        keyword: Text to look for in the description.
        category_id: Category to assign when the rule matches.
        match_mode: Substring, prefix or suffix match.
        applies_to: Transaction types the rule covers.
        created_at: Creation time; newer rules take precedence.
    """

    id: str
    name: str
    keyword: str
    category_id: str
    match_mode: MatchMode = MatchMode.CONTAINS
    applies_to: RuleScope = RuleScope.ALL
    created_at: datetime = field(default_factory=_utcnow)

    def matches(self, description: Optional[str], transaction_type: TransactionType) -> bool:
        """Check if a transaction matches this rule.

        Args:
            description: Transaction description (None never matches).
            transaction_type: Transaction type.

        Returns:
            True if the scope covers the type and the keyword test succeeds.
        """
        if not description:
            return False
        if not self.applies_to.includes(transaction_type):
            return False

        keyword = normalize(self.keyword)
        if not keyword:
            return False

        text = normalize(description)
        if self.match_mode == MatchMode.STARTS_WITH:
            return text.startswith(keyword)
        if self.match_mode == MatchMode.ENDS_WITH:
            return text.endswith(keyword)
        return keyword in text

    @classmethod
    def create(
        cls,
        keyword: str,
        category_id: str,
        match_mode: MatchMode = MatchMode.CONTAINS,
        applies_to: RuleScope = RuleScope.ALL,
        name: Optional[str] = None,
    ) -> "CategoryRule":
        """Create a new rule with a fresh ID and the current timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            name=name or keyword,
            keyword=keyword,
            category_id=category_id,
            match_mode=match_mode,
            applies_to=applies_to,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryRule":
        """Create a CategoryRule from a dictionary (e.g., from the rule file).

        Args:
            data: Dictionary containing rule data.

        Returns:
            A new CategoryRule instance.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If an enum or timestamp value is invalid.
        """
        created_at = data.get("created_at")
        if isinstance(created_at, datetime):
            parsed_created_at = created_at
        elif created_at:
            parsed_created_at = datetime.fromisoformat(str(created_at).replace("Z", "+00:00"))
        else:
            parsed_created_at = datetime.fromtimestamp(0, tz=timezone.utc)
        if parsed_created_at.tzinfo is None:
            parsed_created_at = parsed_created_at.replace(tzinfo=timezone.utc)

        keyword = str(data["keyword"])
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or keyword),
            keyword=keyword,
            category_id=str(data["category"]),
            match_mode=MatchMode(str(data.get("match", MatchMode.CONTAINS.value))),
            applies_to=RuleScope(str(data.get("applies_to", RuleScope.ALL.value)).upper()),
            created_at=parsed_created_at,
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to a dictionary for the rule file."""
        return {
            "id": self.id,
            "name": self.name,
            "keyword": self.keyword,
            "match": self.match_mode.value,
            "applies_to": self.applies_to.value,
            "category": self.category_id,
            "created_at": self.created_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"CategoryRule(id={self.id!r}, keyword={self.keyword!r}, "
            f"category={self.category_id!r}, match={self.match_mode.value})"
        )


def sort_rules_newest_first(rules: list[CategoryRule]) -> list[CategoryRule]:
    """Order rules by creation time, newest first.

    The sort is stable, so rules created at the same instant keep their
    relative order.
    """
    return sorted(rules, key=lambda r: r.created_at, reverse=True)
