"""Tests for the import session lifecycle."""

from pathlib import Path

import pytest

from conftest import FakeLedger, make_preview, make_txn
from import_reconciler.config import ImportConfig
from import_reconciler.errors import (
    CategoryTypeMismatchError,
    CommitError,
    MalformedPreviewError,
    SessionNotStartedError,
    UnknownTransactionError,
)
from import_reconciler.models.category import Category, CategoryRule, MatchMode, RuleScope
from import_reconciler.models.session import SuggestionSource
from import_reconciler.models.transaction import (
    HistoricalTransaction,
    ImportPreview,
    SuggestedCategory,
    TransactionType,
)
from import_reconciler.processing.session import ImportSession


@pytest.fixture
def preview() -> ImportPreview:
    return make_preview([
        make_txn("h1", "PAGO NETFLIX 9.99", "-9.99"),
        make_txn("h2", "MERCADONA 0045", "-32.10"),
        make_txn("h3", "COMPRA LIDL", "-20.00", suggestion=SuggestedCategory("Supermercado", 0.8)),
        make_txn("h4", "PELUQUERIA ANA", "-15.00"),
        make_txn("h5", "NOMINA ACME", "1800.00", TransactionType.INCOME),
        make_txn("h6", "PAGO NETFLIX 9.99", "-9.99", is_duplicate=True),
    ])


@pytest.fixture
def ledger(preview: ImportPreview) -> FakeLedger:
    return FakeLedger(
        categories=[
            Category(id="C1", name="Suscripciones", category_type=TransactionType.EXPENSE),
            Category(id="I1", name="Salario", category_type=TransactionType.INCOME),
        ],
        history=[
            HistoricalTransaction(
                id="t1",
                description="Mercadona  0045",
                transaction_type=TransactionType.EXPENSE,
                category_id="C_HIST",
            ),
        ],
        preview=preview,
    )


@pytest.fixture
def session(ledger: FakeLedger) -> ImportSession:
    rules = [CategoryRule.create("netflix", "C1", MatchMode.CONTAINS, RuleScope.EXPENSE)]
    return ImportSession(ledger, "acc1", rules=rules, settings=ImportConfig(chunk_size=2))


class TestLoadPreview:
    """Tests for starting a session."""

    def test_start_resolves_and_autocreates(self, session: ImportSession, ledger: FakeLedger) -> None:
        """Test the full categorization pass on a fresh preview."""
        session.start(Path("movimientos.xlsx"))
        store = session.store
        assert store is not None

        assert store.get("h1").category_id == "C1"
        assert session.suggestion_sources["h1"] == SuggestionSource.RULE
        assert store.get("h2").category_id == "C_HIST"
        assert session.suggestion_sources["h2"] == SuggestionSource.HISTORY

        created_names = [name for name, _, _ in ledger.create_calls]
        assert "Supermercado" in created_names
        assert "PELUQUERIA ANA" in created_names
        assert "NOMINA ACME" in created_names
        assert store.get("h6").category_id is None
        assert not store.get("h6").selected

    def test_autocreated_categories_join_snapshot(self, session: ImportSession) -> None:
        """Test that created categories become part of the session's categories."""
        session.start(Path("movimientos.xlsx"))
        names = {category.name for category in session.categories}
        assert "Supermercado" in names
        assert session.created_categories

    def test_empty_preview_rejected(self, session: ImportSession) -> None:
        """Test that an empty preview creates no state."""
        with pytest.raises(MalformedPreviewError):
            session.load_preview(ImportPreview(transactions=[]))
        assert session.store is None
        assert not session.is_active

    def test_repeated_hash_rejected(self, session: ImportSession, ledger: FakeLedger) -> None:
        """Test that a preview repeating a hash is rejected before any ledger call."""
        bad = make_preview([make_txn("h1"), make_txn("h1")])
        with pytest.raises(MalformedPreviewError):
            session.load_preview(bad)
        assert session.store is None
        assert ledger.create_calls == []

    def test_operations_require_preview(self, session: ImportSession) -> None:
        """Test that edits before a preview is loaded fail clearly."""
        with pytest.raises(SessionNotStartedError):
            session.toggle("h1")
        with pytest.raises(SessionNotStartedError):
            session.commit()


class TestHistoryResolution:
    """Tests for learned categories inside a session."""

    def test_history_match(self, ledger: FakeLedger) -> None:
        """Test that an exact learned description is reused."""
        ledger.history = [
            HistoricalTransaction(
                id="t1",
                description="Peluquería Ana",
                transaction_type=TransactionType.EXPENSE,
                category_id="C_HAIR",
            )
        ]
        session = ImportSession(ledger, "acc1")
        session.start(Path("movimientos.xlsx"))
        assert session.store is not None
        assert session.store.get("h4").category_id == "C_HAIR"
        assert session.suggestion_sources["h4"] == SuggestionSource.HISTORY


class TestEdits:
    """Tests for user edits through the session."""

    def test_set_category_clears_source(self, session: ImportSession) -> None:
        """Test that a manual category removes the suggestion annotation."""
        session.start(Path("movimientos.xlsx"))
        session.set_category("h1", "C_OTHER")
        assert session.store is not None
        assert session.store.get("h1").category_id == "C_OTHER"
        assert "h1" not in session.suggestion_sources

    def test_set_category_type_mismatch(self, session: ImportSession) -> None:
        """Test that a known category of the wrong type is refused."""
        session.start(Path("movimientos.xlsx"))
        with pytest.raises(CategoryTypeMismatchError):
            session.set_category("h5", "C1")

    def test_set_category_unknown_hash(self, session: ImportSession) -> None:
        """Test that unknown hashes are rejected."""
        session.start(Path("movimientos.xlsx"))
        with pytest.raises(UnknownTransactionError):
            session.set_category("missing", "C1")

    def test_select_all_keeps_duplicates_out(self, session: ImportSession) -> None:
        """Test bulk selection through the session."""
        session.start(Path("movimientos.xlsx"))
        session.select_all(False)
        session.select_all(True)
        assert session.store is not None
        assert session.store.selected_count == 5

    def test_update_rules_fills_gaps_only(self, session: ImportSession) -> None:
        """Test that new rules categorize remaining rows without overwriting."""
        session.start(Path("movimientos.xlsx"))
        session.set_category("h4", None)
        new_rules = [
            CategoryRule.create("peluqueria", "C_HAIR"),
            CategoryRule.create("netflix", "C_NEW"),
        ]
        assigned = session.update_rules(new_rules)
        assert session.store is not None
        assert assigned == ["h4"]
        assert session.store.get("h4").category_id == "C_HAIR"
        assert session.store.get("h1").category_id == "C1"

    def test_update_categories_before_start(self, session: ImportSession) -> None:
        """Test that snapshots can be replaced before a preview exists."""
        assert session.update_categories([]) == []


class TestCommit:
    """Tests for committing through the session."""

    def test_commit_stores_result(self, session: ImportSession, ledger: FakeLedger) -> None:
        """Test a successful commit."""
        session.start(Path("movimientos.xlsx"))
        result = session.commit()
        assert result is not None
        assert result.imported == 5
        assert result.skipped == 1
        assert result.duplicates_found == 1
        assert session.result == result
        assert [len(c) for c in ledger.confirm_calls] == [2, 2, 1]

    def test_commit_failure_surfaces(self, session: ImportSession, ledger: FakeLedger) -> None:
        """Test that a chunk failure is raised with partial counts."""
        session.start(Path("movimientos.xlsx"))
        ledger.fail_on_chunk = 2
        with pytest.raises(CommitError) as exc_info:
            session.commit()
        assert exc_info.value.imported == 2
        assert session.result is None


class TestReset:
    """Tests for reset and the generation guard."""

    def test_reset_discards_state(self, session: ImportSession) -> None:
        """Test that reset clears everything including attempted names."""
        session.start(Path("movimientos.xlsx"))
        generation = session.generation
        session.reset()
        assert session.generation == generation + 1
        assert session.store is None
        assert session.preview is None
        assert session.suggestion_sources == {}
        assert session.attempted == set()

    def test_attempted_names_not_retried_on_rule_update(
        self, session: ImportSession, ledger: FakeLedger
    ) -> None:
        """Test that later resolution passes do not recreate categories."""
        ledger.failing_names = {"PELUQUERIA ANA"}
        session.start(Path("movimientos.xlsx"))
        calls = len(ledger.create_calls)
        session.update_rules([])
        session.update_categories(list(session.categories))
        assert len(ledger.create_calls) == calls

    def test_new_preview_starts_fresh_session(self, ledger: FakeLedger) -> None:
        """Test that loading another statement forgets earlier attempted names."""
        session = ImportSession(ledger, "acc1")
        ledger.failing_names = {"GIMNASIO"}
        session.load_preview(make_preview([make_txn("g1", "GIMNASIO")]))
        generation = session.generation

        ledger.failing_names = set()
        session.load_preview(make_preview([make_txn("g2", "GIMNASIO")]))

        attempts = [name for name, _, _ in ledger.create_calls if name == "GIMNASIO"]
        assert len(attempts) == 2
        assert session.generation > generation
        assert session.store is not None
        assert session.store.get("g2").category_id == session.created_categories[0].id
        assert session.suggestion_sources["g2"] == SuggestionSource.AUTO

    def test_reset_allows_new_attempts(
        self, session: ImportSession, ledger: FakeLedger
    ) -> None:
        """Test that a reset session may attempt names again."""
        ledger.failing_names = {"PELUQUERIA ANA"}
        session.start(Path("movimientos.xlsx"))
        session.reset()
        session.start(Path("movimientos.xlsx"))
        attempts = [name for name, _, _ in ledger.create_calls if name == "PELUQUERIA ANA"]
        assert len(attempts) == 2

    def test_commit_result_ignored_after_reset(
        self, session: ImportSession, ledger: FakeLedger
    ) -> None:
        """Test that a commit finishing under an old generation is discarded."""
        session.start(Path("movimientos.xlsx"))
        ledger.on_confirm = session.reset
        assert session.commit() is None
        assert session.result is None

    def test_autocreation_ignored_after_reset(self, ledger: FakeLedger, preview: ImportPreview) -> None:
        """Test that categories created for a reset session are not applied."""
        session = ImportSession(ledger, "acc1")
        original_create = ledger.create_category

        def create_then_reset(name, category_type, color=None):
            category = original_create(name, category_type, color)
            session.generation += 1
            return category

        ledger.create_category = create_then_reset  # type: ignore[method-assign]
        session.load_preview(preview)

        assert ledger.create_calls
        assert session.created_categories == []
        assert session.store is not None
        assert session.store.get("h4").category_id is None
        assert "h4" not in session.suggestion_sources
