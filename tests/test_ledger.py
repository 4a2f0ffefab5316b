"""Tests for the expense ledger service."""

import pytest
from datetime import date
from decimal import Decimal

from pnlkit.domain.entities import ExpenseData, ExpenseStatus, InstanceStatus
from pnlkit.domain.errors import InvalidStateError, NotFoundError, ValidationError

from conftest import OTHER_TENANT, TENANT


@pytest.fixture
def reconciled_january(template_service, instance_service, rent_template):
    """January of the rent template, converted to a final expense."""
    template_service.generate(TENANT, date(2025, 1, 1))
    instance_service.generate_instances(TENANT, date(2025, 1, 1))
    instance = instance_service.list_instances(rent_template.id, TENANT)[0]
    result = instance_service.convert(
        instance.id, TENANT, "alice", ExpenseData(amount=Decimal("1000"))
    )
    return result.final_expense, instance


def test_create_expense(expense_service, sample_categories):
    """Test recording a one-off expense."""
    expense_id = expense_service.create_expense(
        TENANT,
        date(2025, 2, 10),
        Decimal("250"),
        supplier="Office Depot",
        category_id=sample_categories["Office"],
        subcategory_id=sample_categories["Office > Supplies"],
        created_by="alice",
    )

    expense = expense_service.get_expense(expense_id, TENANT)
    assert expense.status == ExpenseStatus.DRAFT.value
    assert expense.template_id is None
    assert expense.accounting_period is None
    assert expense.amount == Decimal("250")
    assert expense.created_by == "alice"


def test_create_expense_normalises_period(expense_service):
    expense_id = expense_service.create_expense(
        TENANT, date(2025, 3, 2), Decimal("10"), accounting_period="2025-2"
    )
    assert expense_service.get_expense(expense_id, TENANT).accounting_period == "2025-02"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount": Decimal("0")},
        {"amount": Decimal("-1")},
        {"accounting_period": "2025-13"},
        {"status": "recurent"},
        {"status": "skipped"},
    ],
)
def test_create_expense_invalid(expense_service, kwargs):
    values = {"amount": Decimal("10")}
    values.update(kwargs)
    with pytest.raises(ValidationError):
        expense_service.create_expense(TENANT, date(2025, 3, 2), **values)


def test_create_expense_unknown_category(expense_service):
    with pytest.raises(NotFoundError):
        expense_service.create_expense(TENANT, date(2025, 3, 2), Decimal("10"), category_id=42)


def test_get_expense_other_tenant(expense_service):
    expense_id = expense_service.create_expense(TENANT, date(2025, 3, 2), Decimal("10"))
    with pytest.raises(NotFoundError):
        expense_service.get_expense(expense_id, OTHER_TENANT)


def test_status_workflow(expense_service):
    """Test the manual approval path."""
    expense_id = expense_service.create_expense(TENANT, date(2025, 3, 2), Decimal("10"))

    for status in ("pending", "approved", "paid"):
        expense_service.set_status(expense_id, TENANT, status)
        assert expense_service.get_expense(expense_id, TENANT).status == status


def test_status_invalid_transition(expense_service):
    expense_id = expense_service.create_expense(TENANT, date(2025, 3, 2), Decimal("10"))
    with pytest.raises(InvalidStateError):
        expense_service.set_status(expense_id, TENANT, "paid")


def test_recurent_status_cannot_be_set_manually(expense_service, template_service, temp_db, rent_template):
    template_service.generate(TENANT, date(2025, 1, 1))
    row = temp_db.list_expenses(TENANT)[0]
    with pytest.raises(InvalidStateError):
        expense_service.set_status(row.id, TENANT, "approved")


def test_list_expenses_filters(expense_service, template_service, rent_template):
    template_service.catch_up(TENANT, date(2025, 2, 1))
    expense_service.create_expense(
        TENANT, date(2025, 2, 3), Decimal("30"), accounting_period="2025-02", supplier="Courier"
    )

    assert len(expense_service.list_expenses(TENANT)) == 3
    assert len(expense_service.list_expenses(TENANT, period="2025-02")) == 2
    assert len(expense_service.list_expenses(TENANT, status="recurent")) == 2
    assert len(expense_service.list_expenses(TENANT, template_id=rent_template.id)) == 2
    assert expense_service.list_expenses(OTHER_TENANT) == []


def test_list_expenses_by_template_covers_chain(expense_service, template_service, rent_template):
    template_service.generate(TENANT, date(2025, 3, 1))
    new = template_service.revise_versioned(
        rent_template.id,
        TENANT,
        "alice",
        {"amount": Decimal("1200")},
        date(2025, 4, 1),
        today=date(2025, 3, 15),
    )
    template_service.generate(TENANT, date(2025, 4, 1))

    rows = expense_service.list_expenses(TENANT, template_id=new.id)
    assert [r.accounting_period for r in rows] == ["2025-03", "2025-04"]


def test_delete_one_off_expense(expense_service):
    """Test soft deletion of a manual expense."""
    expense_id = expense_service.create_expense(TENANT, date(2025, 3, 2), Decimal("10"))

    assert expense_service.delete_expense(expense_id, TENANT) is None

    with pytest.raises(NotFoundError):
        expense_service.get_expense(expense_id, TENANT)
    assert expense_service.get_expense(expense_id, TENANT, include_deleted=True).is_deleted
    assert expense_service.list_expenses(TENANT) == []
    assert len(expense_service.list_expenses(TENANT, include_deleted=True)) == 1


def test_delete_reconciled_form_regenerates_obligation(
    expense_service, instance_service, temp_db, reconciled_january
):
    """Test that deleting a reconciled row restores the obligation."""
    final, instance = reconciled_january

    regenerated = expense_service.delete_expense(final.id, TENANT)

    assert regenerated is not None
    row = expense_service.get_expense(regenerated, TENANT)
    assert row.status == ExpenseStatus.RECURENT.value
    assert row.accounting_period == "2025-01"
    assert row.amount == Decimal("1000")

    reopened = instance_service.get_instance(instance.id, TENANT)
    assert reopened.status == InstanceStatus.OPEN.value
    assert reopened.final_expense_id is None


def test_delete_reconciled_form_of_inactive_template(
    expense_service, template_service, reconciled_january, rent_template, owner
):
    final, _ = reconciled_january
    template_service.deactivate(rent_template.id, TENANT, owner)

    assert expense_service.delete_expense(final.id, TENANT) is None


def test_delete_recurent_form_does_not_regenerate(expense_service, template_service, temp_db, rent_template):
    template_service.generate(TENANT, date(2025, 1, 1))
    row = temp_db.list_expenses(TENANT)[0]

    assert expense_service.delete_expense(row.id, TENANT) is None
    assert temp_db.list_expenses(TENANT) == []


def test_delete_missing_expense(expense_service):
    with pytest.raises(NotFoundError):
        expense_service.delete_expense(999, TENANT)
