"""Tests for database mappers."""

import pytest
from datetime import datetime, date, UTC
from decimal import Decimal

from pnlkit.database.models import (
    Budget as ORMBudget,
    Category as ORMCategory,
    LedgerExpense as ORMLedgerExpense,
    RecurringInstance as ORMRecurringInstance,
    RecurringTemplate as ORMRecurringTemplate,
    Revenue as ORMRevenue,
)
from pnlkit.database.mappers import (
    budget_to_domain,
    category_to_domain,
    expense_to_domain,
    instance_to_domain,
    revenue_to_domain,
    template_to_domain,
)
from pnlkit.domain.entities import (
    Budget,
    Category,
    LedgerExpense,
    RecurringInstance,
    RecurringTemplate,
    Revenue,
)


class TestCategoryMapper:
    """Tests for Category mapper."""

    def test_category_to_domain(self):
        """Test converting ORM Category to domain Category."""
        orm_category = ORMCategory(
            id=2,
            tenant_id="acme",
            name="Rent",
            parent_id=1,
            sort_order=3,
            is_active=True,
            category_type="expense",
            created_at=datetime.now(UTC),
        )
        domain_category = category_to_domain(orm_category)

        assert isinstance(domain_category, Category)
        assert domain_category.id == 2
        assert domain_category.tenant_id == "acme"
        assert domain_category.parent_id == 1
        assert domain_category.sort_order == 3
        assert domain_category.created_at == orm_category.created_at

    def test_category_without_sort_order(self):
        orm_category = ORMCategory(id=1, tenant_id="acme", name="Office", is_active=True)
        assert category_to_domain(orm_category).sort_order == 0


class TestTemplateMapper:
    """Tests for RecurringTemplate mapper."""

    def test_template_to_domain(self):
        orm_template = ORMRecurringTemplate(
            id=5,
            tenant_id="acme",
            version=2,
            chain_root_id=3,
            superseded_template_id=3,
            is_active=True,
            start_date=date(2025, 4, 1),
            day_of_month=15,
            supplier="Landlord SRL",
            tags=["office"],
            vat_deductible=False,
            amount=Decimal("1200.00"),
            currency="RON",
            created_by="alice",
            created_at=datetime.now(UTC),
        )
        template = template_to_domain(orm_template)

        assert isinstance(template, RecurringTemplate)
        assert template.chain_root_id == 3
        assert template.version == 2
        assert template.tags == ("office",)
        assert template.day_of_month == 15
        assert not template.is_superseded

    def test_template_chain_root_falls_back_to_id(self):
        """Test a row written before its chain root was set."""
        orm_template = ORMRecurringTemplate(
            id=7,
            tenant_id="acme",
            version=1,
            start_date=date(2025, 1, 1),
            supplier="ISP",
            amount=Decimal("80"),
            currency="RON",
            created_by="alice",
            tags=None,
        )
        template = template_to_domain(orm_template)

        assert template.chain_root_id == 7
        assert template.tags == ()
        assert template.day_of_month == 1


class TestExpenseMapper:
    """Tests for LedgerExpense mapper."""

    def test_expense_to_domain(self):
        orm_expense = ORMLedgerExpense(
            id=1,
            tenant_id="acme",
            template_id=5,
            accounting_period="2025-02",
            expense_date=date(2025, 3, 1),
            amount=Decimal("119.00"),
            amount_without_vat=Decimal("100.00"),
            amount_with_vat=Decimal("119.00"),
            vat_deductible=True,
            currency="RON",
            supplier="SaaS Ltd",
            status="final",
            recurring_instance_id=9,
            created_at=datetime.now(UTC),
        )
        expense = expense_to_domain(orm_expense)

        assert isinstance(expense, LedgerExpense)
        assert expense.template_id == 5
        assert expense.accounting_period == "2025-02"
        assert expense.vat_deductible is True
        assert expense.recurring_instance_id == 9
        assert expense.is_reconciled
        assert not expense.is_deleted

    @pytest.mark.parametrize(
        "status,reconciled",
        [
            ("recurent", False),
            ("skipped", False),
            ("rejected", False),
            ("draft", True),
            ("paid", True),
        ],
    )
    def test_reconciled_statuses(self, status, reconciled):
        orm_expense = ORMLedgerExpense(
            id=1,
            tenant_id="acme",
            expense_date=date(2025, 3, 1),
            amount=Decimal("1"),
            vat_deductible=False,
            currency="RON",
            status=status,
        )
        assert expense_to_domain(orm_expense).is_reconciled is reconciled


class TestInstanceMapper:
    """Tests for RecurringInstance mapper."""

    def test_instance_to_domain(self):
        orm_instance = ORMRecurringInstance(
            id=3,
            tenant_id="acme",
            template_id=5,
            year=2025,
            month=2,
            status="closed",
            expected_amount=Decimal("1000.00"),
            expected_vat_deductible=False,
            expected_currency="RON",
            final_expense_id=11,
            amount_difference_percent=4.5,
            created_at=datetime.now(UTC),
        )
        instance = instance_to_domain(orm_instance)

        assert isinstance(instance, RecurringInstance)
        assert instance.period == "2025-02"
        assert not instance.is_open
        assert instance.final_expense_id == 11
        assert instance.amount_difference_percent == 4.5


class TestRevenueAndBudgetMappers:
    """Tests for Revenue and Budget mappers."""

    def test_revenue_to_domain(self):
        orm_revenue = ORMRevenue(
            id=1,
            tenant_id="acme",
            year=2025,
            month=3,
            amount=Decimal("10000.00"),
            source="manual",
            currency="RON",
        )
        revenue = revenue_to_domain(orm_revenue)

        assert isinstance(revenue, Revenue)
        assert revenue.amount == Decimal("10000.00")
        assert revenue.source == "manual"

    def test_budget_to_domain(self):
        """Test that the month columns become an ordered tuple."""
        orm_budget = ORMBudget(
            id=1,
            tenant_id="acme",
            year=2025,
            category_id=2,
            subcategory_id=None,
            jan=Decimal("1"),
            feb=Decimal("2"),
            dec=Decimal("12"),
        )
        budget = budget_to_domain(orm_budget)

        assert isinstance(budget, Budget)
        assert len(budget.monthly_values) == 12
        assert budget.monthly_values[0] == Decimal("1")
        assert budget.monthly_values[1] == Decimal("2")
        assert budget.monthly_values[2] == Decimal("0")
        assert budget.monthly_values[11] == Decimal("12")
        assert budget.annual_total == Decimal("15")
