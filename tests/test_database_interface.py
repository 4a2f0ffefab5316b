"""Tests for the Database interface and its transaction handling."""

import pytest
from datetime import date, datetime, UTC
from decimal import Decimal

from pnlkit.database.factories import create_database, create_sqlite_database
from pnlkit.domain import entities
from pnlkit.domain.errors import StorageError


def _expense_fields(**overrides):
    fields = {
        "tenant_id": "acme",
        "expense_date": date(2025, 1, 5),
        "accounting_period": "2025-01",
        "amount": Decimal("100"),
        "status": "draft",
    }
    fields.update(overrides)
    return fields


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_category_returns_domain_model(self, temp_db):
        """Test that get_category returns a domain Category entity."""
        category_id = temp_db.create_category(tenant_id="acme", name="Office")

        category = temp_db.get_category(category_id)

        assert isinstance(category, entities.Category)
        assert category.name == "Office"
        assert category.tenant_id == "acme"
        assert category.is_active
        assert isinstance(category.created_at, datetime)

    def test_template_chain_root_defaults_to_own_id(self, temp_db):
        template_id = temp_db.create_template(
            tenant_id="acme",
            start_date=date(2025, 1, 1),
            supplier="ISP",
            amount=Decimal("80"),
            created_by="alice",
            tags=["net"],
        )

        template = temp_db.get_template(template_id)

        assert isinstance(template, entities.RecurringTemplate)
        assert template.chain_root_id == template_id
        assert template.tags == ("net",)
        assert template.amount == Decimal("80")
        assert temp_db.get_chain_head(template_id).id == template_id

    def test_get_expense_returns_domain_model(self, temp_db):
        expense_id = temp_db.create_expense(**_expense_fields())

        expense = temp_db.get_expense(expense_id)

        assert isinstance(expense, entities.LedgerExpense)
        assert expense.amount == Decimal("100")
        assert expense.expense_date == date(2025, 1, 5)
        assert not expense.is_deleted

    def test_missing_rows_return_none(self, temp_db):
        assert temp_db.get_category(1) is None
        assert temp_db.get_template(1) is None
        assert temp_db.get_expense(1) is None
        assert temp_db.get_instance(1) is None

    def test_list_expenses_in_years_uses_period_or_date(self, temp_db):
        """Test that rows are found by either their period or their date."""
        temp_db.create_expense(**_expense_fields(expense_date=date(2026, 1, 3), accounting_period="2025-12"))
        temp_db.create_expense(**_expense_fields(expense_date=date(2025, 6, 3), accounting_period=None))
        temp_db.create_expense(**_expense_fields(expense_date=date(2023, 6, 3), accounting_period=None))
        temp_db.create_expense(**_expense_fields(status="rejected"))

        rows = temp_db.list_expenses_in_years("acme", 2024, 2025, {"draft"})

        assert [r.expense_date for r in rows] == [date(2025, 6, 3), date(2026, 1, 3)]

    def test_update_unknown_field(self, temp_db):
        expense_id = temp_db.create_expense(**_expense_fields())
        with pytest.raises(ValueError, match="Unknown expense field"):
            temp_db.update_expense(expense_id, colour="red")

    def test_update_missing_row(self, temp_db):
        with pytest.raises(ValueError, match="not found"):
            temp_db.update_instance(42, status="closed")

    def test_soft_delete(self, temp_db):
        expense_id = temp_db.create_expense(**_expense_fields())
        temp_db.soft_delete_expenses([expense_id], datetime.now(UTC))

        assert temp_db.get_expense(expense_id).is_deleted
        assert temp_db.list_expenses("acme") == []
        assert len(temp_db.list_expenses("acme", include_deleted=True)) == 1


class TestTransactions:
    """Tests for transaction() and commit notifications."""

    def test_transaction_commits_on_success(self, temp_db):
        with temp_db.transaction():
            temp_db.create_expense(**_expense_fields())
            temp_db.create_expense(**_expense_fields(amount=Decimal("5")))

        assert len(temp_db.list_expenses("acme")) == 2

    def test_transaction_rolls_back_on_error(self, temp_db):
        """Test that an exception undoes every write in the block."""
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                temp_db.create_expense(**_expense_fields())
                raise RuntimeError("boom")

        assert temp_db.list_expenses("acme") == []

    def test_nested_transaction_rolls_back_outer_block(self, temp_db):
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                temp_db.create_expense(**_expense_fields())
                with temp_db.transaction():
                    temp_db.create_expense(**_expense_fields(amount=Decimal("5")))
                raise RuntimeError("boom")

        assert temp_db.list_expenses("acme") == []

    def test_storage_failure_is_wrapped(self, temp_db):
        """Test that a violated constraint surfaces as StorageError."""
        fields = _expense_fields(template_id=7, status="recurent")
        with pytest.raises(StorageError):
            with temp_db.transaction():
                temp_db.create_expense(**fields)
                temp_db.create_expense(**fields)

        assert temp_db.list_expenses("acme") == []

    def test_listeners_notified_once_per_commit(self, temp_db):
        calls = []
        temp_db.add_commit_listener(calls.append)

        with temp_db.transaction():
            temp_db.create_expense(**_expense_fields())
            temp_db.create_expense(**_expense_fields(tenant_id="globex"))

        assert calls == [frozenset({"acme", "globex"})]

    def test_listeners_not_notified_on_rollback(self, temp_db):
        calls = []
        temp_db.add_commit_listener(calls.append)

        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                temp_db.create_expense(**_expense_fields())
                raise RuntimeError("boom")

        assert calls == []

    def test_write_outside_transaction_notifies(self, temp_db):
        calls = []
        temp_db.add_commit_listener(calls.append)

        temp_db.upsert_revenue("acme", 2025, 1, Decimal("10"), source="manual")

        assert calls == [frozenset({"acme"})]


def test_create_database_from_url():
    """Test building a database from a SQLAlchemy URL."""
    db = create_database("sqlite:///:memory:")
    db.connect()
    category_id = db.create_category(tenant_id="acme", name="Office")
    assert db.get_category(category_id).name == "Office"
    db.disconnect()


def test_create_sqlite_database_reads_path_from_settings(monkeypatch, tmp_path):
    db_path = tmp_path / "env.db"
    monkeypatch.setenv("PNLKIT_DB_PATH", str(db_path))

    db = create_sqlite_database()
    assert db.database_url == f"sqlite:///{db_path}"


def test_create_sqlite_database_explicit_path_wins(monkeypatch, tmp_path):
    monkeypatch.setenv("PNLKIT_DB_PATH", str(tmp_path / "env.db"))

    db = create_sqlite_database(str(tmp_path / "cli.db"))
    assert db.database_url == f"sqlite:///{tmp_path / 'cli.db'}"
