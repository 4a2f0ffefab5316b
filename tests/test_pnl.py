"""Tests for the P&L aggregation engine."""

import pytest
from datetime import date
from decimal import Decimal

from pnlkit.domain.cache import AggregateCache
from pnlkit.domain.errors import ValidationError
from pnlkit.domain.pnl import PnlService

from conftest import OTHER_TENANT, TENANT

FEB = 12 + 1
MAR = 12 + 2


def _category(agg, name):
    return next(c for c in agg.categories if c.name == name)


def _subcategory(category, name):
    return next(s for s in category.subcategories if s.name == name)


@pytest.fixture
def add_expense(expense_service, sample_categories):
    """Record an expense booked on a "Parent > Child" subcategory."""

    def _add(key, expense_date, amount, **kwargs):
        parent = key.split(" > ")[0]
        kwargs.setdefault("category_id", sample_categories[parent])
        if " > " in key:
            kwargs.setdefault("subcategory_id", sample_categories[key])
        return expense_service.create_expense(TENANT, expense_date, Decimal(amount), **kwargs)

    return _add


def test_empty_aggregate(pnl_service, sample_categories):
    """Test the shape of an aggregate with no data."""
    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.base_year == 2025
    assert len(agg.expenses_by_month) == 24
    assert len(agg.revenue_by_month) == 24
    assert len(agg.budget_by_month) == 24
    assert all(v == 0 for v in agg.expenses_by_month)
    assert [c.label for c in agg.categories][:2] == ["1. Personnel", "2. Office"]
    assert agg.expenses == ()


def test_expense_lands_in_subcategory_and_parent(pnl_service, add_expense):
    add_expense("Office > Rent", date(2025, 2, 10), "500")

    agg = pnl_service.aggregate(TENANT, 2025)

    office = _category(agg, "Office")
    assert office.values[FEB] == Decimal("500")
    assert _subcategory(office, "Rent").values[FEB] == Decimal("500")
    assert _subcategory(office, "Rent").label == "2.1 Rent"
    assert agg.expenses_by_month[FEB] == Decimal("500")


def test_prior_year_occupies_first_half(pnl_service, add_expense):
    add_expense("Office > Rent", date(2024, 6, 10), "300")

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.expenses_by_month[5] == Decimal("300")
    assert sum(agg.expenses_by_month[12:]) == 0


def test_years_outside_window_ignored(pnl_service, add_expense):
    add_expense("Office > Rent", date(2023, 12, 10), "300")
    add_expense("Office > Rent", date(2026, 1, 10), "300")

    agg = pnl_service.aggregate(TENANT, 2025)

    assert sum(agg.expenses_by_month) == 0


def test_accounting_period_overrides_expense_date(pnl_service, add_expense):
    """Test that the accounting period decides the month."""
    add_expense("Office > Rent", date(2025, 3, 2), "400", accounting_period="2025-02")

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.expenses_by_month[FEB] == Decimal("400")
    assert agg.expenses_by_month[MAR] == 0


def test_accounting_period_across_year_end(pnl_service, add_expense):
    """Test a January invoice booked into December of the base year."""
    add_expense("Office > Rent", date(2026, 1, 5), "700", accounting_period="2025-12")

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.expenses_by_month[23] == Decimal("700")


def test_status_filter(pnl_service, expense_service, add_expense, template_service, rent_template):
    """Test which statuses count toward totals."""
    rejected = add_expense("Office > Supplies", date(2025, 2, 3), "90")
    expense_service.set_status(rejected, TENANT, "rejected")
    deleted = add_expense("Office > Supplies", date(2025, 2, 4), "80")
    expense_service.delete_expense(deleted, TENANT)
    template_service.generate(TENANT, date(2025, 2, 1))
    template_service.skip_month(rent_template.id, TENANT, 2025, 3)
    add_expense("Office > Supplies", date(2025, 2, 5), "20", status="paid")

    agg = pnl_service.aggregate(TENANT, 2025)

    # recurent rent (1000) and the paid supplies (20)
    assert agg.expenses_by_month[FEB] == Decimal("1020")
    assert agg.expenses_by_month[MAR] == 0


def test_vat_resolution(pnl_service, add_expense):
    """Test that deductible VAT counts the net amount."""
    add_expense(
        "IT & Software > Hardware",
        date(2025, 2, 10),
        "119",
        vat_deductible=True,
        amount_with_vat=Decimal("119"),
        amount_without_vat=Decimal("100"),
    )
    add_expense(
        "IT & Software > Hardware",
        date(2025, 2, 11),
        "100",
        vat_deductible=False,
        amount_with_vat=Decimal("119"),
        amount_without_vat=Decimal("100"),
    )

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.expenses_by_month[FEB] == Decimal("219")


def test_parent_with_children_ignores_direct_rows(pnl_service, add_expense):
    """Test that only subcategory rows feed a parent that has children."""
    add_expense("Office", date(2025, 2, 10), "50")
    add_expense("Office > Rent", date(2025, 2, 10), "500")

    agg = pnl_service.aggregate(TENANT, 2025)

    assert _category(agg, "Office").values[FEB] == Decimal("500")
    assert agg.expenses_by_month[FEB] == Decimal("550")


def test_parent_without_children_takes_direct_rows(pnl_service, add_expense):
    add_expense("Other", date(2025, 2, 10), "75")

    agg = pnl_service.aggregate(TENANT, 2025)

    other = _category(agg, "Other")
    assert other.subcategories == ()
    assert other.values[FEB] == Decimal("75")


def test_flattened_expenses(pnl_service, add_expense, template_service, rent_template):
    """Test the drill-down rows carried by the aggregate."""
    add_expense("Office > Supplies", date(2025, 2, 3), "20")
    template_service.generate(TENANT, date(2025, 2, 1))

    agg = pnl_service.aggregate(TENANT, 2025)

    by_supplier = {e.supplier: e for e in agg.expenses}
    assert by_supplier["Unknown"].type == "reale"
    assert by_supplier["Unknown"].category == "Office"
    assert by_supplier["Unknown"].subcategory == "Supplies"
    assert by_supplier["Landlord SRL"].type == "recurente"
    assert by_supplier["Landlord SRL"].subcategory == "Rent"


def test_uncategorized_expense(pnl_service, expense_service, sample_categories):
    expense_service.create_expense(TENANT, date(2025, 2, 3), Decimal("15"))

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.expenses_by_month[FEB] == Decimal("15")
    assert agg.expenses[0].category == "Uncategorized"
    assert all(c.values[FEB] == 0 for c in agg.categories)


def test_tenants_are_isolated(pnl_service, add_expense, expense_service):
    add_expense("Office > Rent", date(2025, 2, 10), "500")
    expense_service.create_expense(OTHER_TENANT, date(2025, 2, 10), Decimal("999"))

    assert pnl_service.aggregate(TENANT, 2025).expenses_by_month[FEB] == Decimal("500")
    assert pnl_service.aggregate(OTHER_TENANT, 2025).expenses_by_month[FEB] == Decimal("999")


def test_revenue_upsert(pnl_service):
    """Test that setting revenue twice keeps the last value."""
    first = pnl_service.upsert_revenue(TENANT, 2025, 3, Decimal("10000"), entered_by="alice")
    second = pnl_service.upsert_revenue(TENANT, 2025, 3, Decimal("12000"))

    assert first == second
    agg = pnl_service.aggregate(TENANT, 2025)
    assert agg.revenue_by_month[MAR] == Decimal("12000")
    revenues = pnl_service.list_revenues(TENANT, 2025)
    assert len(revenues) == 1
    assert revenues[0].source == "manual"


@pytest.mark.parametrize("month,amount", [(13, "100"), (0, "100"), (3, "-1")])
def test_revenue_invalid(pnl_service, month, amount):
    with pytest.raises(ValidationError):
        pnl_service.upsert_revenue(TENANT, 2025, month, Decimal(amount))


def test_budget_in_aggregate(pnl_service, budget_service, sample_categories):
    budget_service.upsert_budget(
        TENANT,
        2025,
        sample_categories["Office"],
        sample_categories["Office > Rent"],
        [Decimal("1000")] * 12,
    )
    budget_service.upsert_budget(
        TENANT, 2024, sample_categories["Other"], None, [Decimal("50")] * 12
    )

    agg = pnl_service.aggregate(TENANT, 2025)

    assert agg.budget_by_month[12] == Decimal("1000")
    assert agg.budget_by_month[0] == Decimal("50")
    office = next(c for c in agg.budget_categories if c.name == "Office")
    assert office.values[12] == Decimal("1000")
    assert _subcategory(office, "Rent").values[23] == Decimal("1000")
    other = next(c for c in agg.budget_categories if c.name == "Other")
    assert other.values[0] == Decimal("50")


def test_drilldown_by_subcategory_label(pnl_service, add_expense):
    """Test listing the rows behind one grid cell."""
    add_expense("Office > Rent", date(2025, 2, 10), "500", supplier="Landlord")
    add_expense("Office > Supplies", date(2025, 2, 11), "20")
    add_expense("Office > Rent", date(2025, 3, 10), "500")

    rows = pnl_service.expenses_for_category_month(TENANT, "2.1 Rent", 2025, 2)

    assert [(r.supplier, r.amount) for r in rows] == [("Landlord", Decimal("500"))]


def test_drilldown_parent_includes_children(pnl_service, add_expense):
    add_expense("Office > Rent", date(2025, 2, 10), "500")
    add_expense("Office > Supplies", date(2025, 2, 11), "20")
    add_expense("Marketing > Events", date(2025, 2, 12), "300")

    rows = pnl_service.expenses_for_category_month(TENANT, "2. Office", 2025, 2)

    assert sorted(r.amount for r in rows) == [Decimal("20"), Decimal("500")]


def test_drilldown_unknown_label(pnl_service, add_expense):
    add_expense("Office > Rent", date(2025, 2, 10), "500")
    assert pnl_service.expenses_for_category_month(TENANT, "9.9 Yachts", 2025, 2) == []


def test_drilldown_invalid_month(pnl_service, sample_categories):
    with pytest.raises(ValidationError):
        pnl_service.expenses_for_category_month(TENANT, "2. Office", 2025, 13)


@pytest.fixture
def march_figures(pnl_service, budget_service, add_expense, sample_categories):
    pnl_service.upsert_revenue(TENANT, 2025, 3, Decimal("10000"))
    add_expense("Office > Rent", date(2025, 3, 10), "4000")
    budget_service.upsert_budget(
        TENANT, 2025, sample_categories["Office"], None, [Decimal("5000")] * 12
    )


def test_summary_current_year(pnl_service, march_figures):
    """Test monthly KPIs and year to date through the current month."""
    summary = pnl_service.summary(TENANT, 2025, today=date(2025, 3, 15))

    march = summary.months[2]
    assert march.revenue == Decimal("10000")
    assert march.expenses == Decimal("4000")
    assert march.profit == Decimal("6000")
    assert march.delta == Decimal("1000")
    assert march.profit_margin == Decimal("0.6")
    assert summary.months[0].profit_margin is None

    assert summary.ytd_through_month == 3
    assert summary.ytd_revenue == Decimal("10000")
    assert summary.ytd_expenses == Decimal("4000")
    assert summary.ytd_budget == Decimal("15000")
    assert summary.ytd_profit == Decimal("6000")
    assert summary.ytd_delta == Decimal("11000")
    assert summary.ytd_profit_margin == Decimal("0.6")


def test_summary_past_year_covers_all_months(pnl_service, march_figures):
    summary = pnl_service.summary(TENANT, 2025, today=date(2026, 2, 1))
    assert summary.ytd_through_month == 12
    assert summary.ytd_budget == Decimal("60000")


def test_summary_future_year_is_empty(pnl_service, march_figures):
    summary = pnl_service.summary(TENANT, 2025, today=date(2024, 11, 1))
    assert summary.ytd_through_month == 0
    assert summary.ytd_revenue == 0
    assert summary.ytd_profit_margin is None


def test_cached_aggregate_reused_until_write(temp_db, add_expense):
    """Test that the cache serves repeated reads and drops on commit."""
    service = PnlService(temp_db, cache=AggregateCache(ttl_seconds=300))

    first = service.aggregate(TENANT, 2025)
    assert service.aggregate(TENANT, 2025) is first

    add_expense("Office > Rent", date(2025, 2, 10), "500")

    refreshed = service.aggregate(TENANT, 2025)
    assert refreshed is not first
    assert refreshed.expenses_by_month[FEB] == Decimal("500")


def test_cache_survives_other_tenant_write(temp_db, expense_service, sample_categories):
    service = PnlService(temp_db, cache=AggregateCache(ttl_seconds=300))
    first = service.aggregate(TENANT, 2025)

    expense_service.create_expense(OTHER_TENANT, date(2025, 2, 10), Decimal("1"))

    assert service.aggregate(TENANT, 2025) is first
