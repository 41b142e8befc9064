"""Tests for category rules and rule matching."""

from datetime import datetime, timedelta, timezone

import pytest

from import_reconciler.models.category import CategoryRule, MatchMode, RuleScope, sort_rules_newest_first
from import_reconciler.models.transaction import TransactionType
from import_reconciler.processing.rule_matcher import apply_rules, find_matching_rule

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_rule(
    rule_id: str,
    keyword: str,
    category_id: str,
    match_mode: MatchMode = MatchMode.CONTAINS,
    applies_to: RuleScope = RuleScope.ALL,
    minutes: int = 0,
) -> CategoryRule:
    return CategoryRule(
        id=rule_id,
        name=keyword,
        keyword=keyword,
        category_id=category_id,
        match_mode=match_mode,
        applies_to=applies_to,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class TestCategoryRuleMatches:
    """Tests for CategoryRule.matches."""

    def test_contains_is_case_and_accent_insensitive(self) -> None:
        """Test substring matching on normalized text."""
        rule = make_rule("r1", "Cafetería", "C1")
        assert rule.matches("PAGO CAFETERIA LUNA", TransactionType.EXPENSE)

    def test_starts_with(self) -> None:
        """Test prefix matching."""
        rule = make_rule("r1", "bizum", "C1", match_mode=MatchMode.STARTS_WITH)
        assert rule.matches("  Bizum de Ana", TransactionType.INCOME)
        assert not rule.matches("Recibido bizum", TransactionType.INCOME)

    def test_ends_with(self) -> None:
        """Test suffix matching."""
        rule = make_rule("r1", "madrid", "C1", match_mode=MatchMode.ENDS_WITH)
        assert rule.matches("Parking Centro MADRID", TransactionType.EXPENSE)
        assert not rule.matches("Madrid Parking", TransactionType.EXPENSE)

    def test_scope_filters_type(self) -> None:
        """Test that a rule scoped to EXPENSE ignores income."""
        rule = make_rule("r1", "netflix", "C1", applies_to=RuleScope.EXPENSE)
        assert rule.matches("NETFLIX", TransactionType.EXPENSE)
        assert not rule.matches("NETFLIX", TransactionType.INCOME)

    def test_scope_all_covers_transfer(self) -> None:
        """Test that ALL covers every type."""
        rule = make_rule("r1", "traspaso", "C1")
        assert rule.matches("Traspaso", TransactionType.TRANSFER)

    def test_empty_description_never_matches(self) -> None:
        """Test that None or empty descriptions never match."""
        rule = make_rule("r1", "a", "C1")
        assert not rule.matches(None, TransactionType.EXPENSE)
        assert not rule.matches("", TransactionType.EXPENSE)

    def test_blank_keyword_never_matches(self) -> None:
        """Test that a keyword normalizing to empty never matches."""
        rule = make_rule("r1", "   ", "C1")
        assert not rule.matches("anything", TransactionType.EXPENSE)


class TestApplyRules:
    """Tests for apply_rules."""

    def test_netflix_example(self) -> None:
        """Test the canonical NETFLIX expense rule."""
        rules = [make_rule("r1", "netflix", "C1", applies_to=RuleScope.EXPENSE)]
        assert apply_rules(rules, "PAGO NETFLIX 9.99", TransactionType.EXPENSE) == "C1"

    def test_first_rule_in_order_wins(self) -> None:
        """Test that the first matching rule in list order is used."""
        rules = [
            make_rule("newer", "mercadona", "C2"),
            make_rule("older", "mercadona", "C9"),
        ]
        assert apply_rules(rules, "MERCADONA VALENCIA", TransactionType.EXPENSE) == "C2"

    def test_no_match_returns_none(self) -> None:
        """Test that no match yields None."""
        rules = [make_rule("r1", "netflix", "C1")]
        assert apply_rules(rules, "SPOTIFY", TransactionType.EXPENSE) is None
        assert apply_rules([], "SPOTIFY", TransactionType.EXPENSE) is None

    def test_skips_rules_for_other_types(self) -> None:
        """Test that a scoped rule is passed over for a later matching one."""
        rules = [
            make_rule("r1", "amazon", "INC", applies_to=RuleScope.INCOME),
            make_rule("r2", "amazon", "EXP", applies_to=RuleScope.EXPENSE),
        ]
        rule = find_matching_rule(rules, "AMAZON MARKETPLACE", TransactionType.EXPENSE)
        assert rule is not None
        assert rule.id == "r2"


class TestSortRulesNewestFirst:
    """Tests for sort_rules_newest_first."""

    def test_orders_by_creation_descending(self) -> None:
        """Test newest rules come first."""
        rules = [
            make_rule("old", "a", "C1", minutes=0),
            make_rule("new", "a", "C2", minutes=10),
            make_rule("mid", "a", "C3", minutes=5),
        ]
        assert [r.id for r in sort_rules_newest_first(rules)] == ["new", "mid", "old"]

    def test_stable_for_ties(self) -> None:
        """Test that rules with equal timestamps keep their order."""
        rules = [make_rule("first", "a", "C1"), make_rule("second", "a", "C2")]
        assert [r.id for r in sort_rules_newest_first(rules)] == ["first", "second"]


class TestCategoryRuleSerialization:
    """Tests for CategoryRule dictionary conversion."""

    def test_from_dict(self) -> None:
        """Test loading a rule from rule-file data."""
        rule = CategoryRule.from_dict({
            "id": "r1",
            "keyword": "netflix",
            "category": "C1",
            "match": "startsWith",
            "applies_to": "expense",
            "created_at": "2026-01-15T09:30:00Z",
        })
        assert rule.name == "netflix"
        assert rule.match_mode == MatchMode.STARTS_WITH
        assert rule.applies_to == RuleScope.EXPENSE
        assert rule.created_at == datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)

    def test_from_dict_missing_keyword(self) -> None:
        """Test that a rule without a keyword is rejected."""
        with pytest.raises(KeyError):
            CategoryRule.from_dict({"id": "r1", "category": "C1"})

    def test_from_dict_invalid_match(self) -> None:
        """Test that an unknown match mode is rejected."""
        with pytest.raises(ValueError):
            CategoryRule.from_dict({"id": "r1", "keyword": "x", "category": "C1", "match": "regex"})

    def test_to_dict_keys(self) -> None:
        """Test the rule-file representation."""
        rule = make_rule("r1", "netflix", "C1", applies_to=RuleScope.EXPENSE)
        data = rule.to_dict()
        assert data["category"] == "C1"
        assert data["match"] == "contains"
        assert data["applies_to"] == "EXPENSE"
        assert CategoryRule.from_dict(data) == rule

    def test_create_assigns_unique_ids(self) -> None:
        """Test that created rules get distinct IDs and default names."""
        first = CategoryRule.create("netflix", "C1")
        second = CategoryRule.create("netflix", "C1")
        assert first.id != second.id
        assert first.name == "netflix"
        assert first.created_at.tzinfo is not None
