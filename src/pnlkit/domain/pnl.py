"""P&L aggregation engine.

Builds a 24-month window (prior year January through base year December) of
expenses by category, revenue and budget for one tenant. Aggregation is a
pure read; the optional cache in front of it is invalidated on writes.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from pnlkit.database.base import Database
from pnlkit.domain.amounts import ZERO, resolve_amount
from pnlkit.domain.cache import AggregateCache
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import (
    PNL_STATUSES,
    Budget,
    ExpenseStatus,
    LedgerExpense,
    PnlAggregate,
    PnlCategory,
    PnlExpense,
    PnlMonthSummary,
    PnlSubcategory,
    PnlYearSummary,
    Revenue,
)
from pnlkit.domain.errors import ValidationError
from pnlkit.utils.period import MONTHS_IN_WINDOW, attribution, window_index

logger = logging.getLogger(__name__)

MANUAL_REVENUE_SOURCE = "manual"


def _empty() -> list[Decimal]:
    return [ZERO] * MONTHS_IN_WINDOW


def _budget_slots(budget: Budget, base_year: int) -> list[tuple[int, Decimal]]:
    """Map a budget row's twelve values onto window indexes."""
    slots = []
    for month, value in enumerate(budget.monthly_values, start=1):
        idx = window_index(budget.year, month, base_year)
        if idx is not None:
            slots.append((idx, value))
    return slots


class PnlService:
    """Service producing P&L aggregates, drill-downs and KPIs."""

    def __init__(self, db: Database, cache: Optional[AggregateCache] = None):
        """Initialize P&L service.

        Args:
            db: Database instance
            cache: Optional aggregate cache; it is attached to db for
                invalidation
        """
        self.db = db
        self.cache = cache.attach(db) if cache is not None else None
        self.categories = CategoryService(db)

    def aggregate(self, tenant_id: str, base_year: int) -> PnlAggregate:
        """Build the 24-month aggregate for a tenant.

        Index 0-11 is base_year - 1, index 12-23 is base_year.
        """
        if self.cache is not None:
            cached = self.cache.get(tenant_id, base_year)
            if cached is not None:
                return cached

        result = self._build(tenant_id, base_year)
        if self.cache is not None:
            self.cache.put(tenant_id, base_year, result)
        return result

    def _window_rows(
        self, tenant_id: str, base_year: int
    ) -> list[tuple[int, LedgerExpense, Decimal]]:
        """Return (window index, row, amount) for every countable row."""
        rows = []
        for row in self.db.list_expenses_in_years(
            tenant_id, base_year - 1, base_year, PNL_STATUSES
        ):
            year, month = attribution(row.accounting_period, row.expense_date)
            idx = window_index(year, month, base_year)
            if idx is None:
                continue
            rows.append((idx, row, resolve_amount(row)))
        return rows

    def _build(self, tenant_id: str, base_year: int) -> PnlAggregate:
        rows = self._window_rows(tenant_id, base_year)
        budgets = self.db.list_budgets(tenant_id, base_year - 1, base_year)
        tree = self.categories.labelled_tree(tenant_id)

        expenses_by_month = _empty()
        for idx, _, amount in rows:
            expenses_by_month[idx] += amount

        categories = []
        budget_categories = []
        for parent, label, children in tree:
            cat_values = _empty()
            budget_values = _empty()
            subcategories = []
            budget_subcategories = []

            for child, child_label in children:
                sub_values = _empty()
                for idx, row, amount in rows:
                    if row.subcategory_id == child.id:
                        sub_values[idx] += amount
                        cat_values[idx] += amount
                subcategories.append(
                    PnlSubcategory(
                        id=child.id, name=child.name, label=child_label, values=tuple(sub_values)
                    )
                )

                sub_budget = _empty()
                for budget in budgets:
                    if budget.subcategory_id == child.id:
                        for idx, value in _budget_slots(budget, base_year):
                            sub_budget[idx] += value
                            budget_values[idx] += value
                budget_subcategories.append(
                    PnlSubcategory(
                        id=child.id, name=child.name, label=child_label, values=tuple(sub_budget)
                    )
                )

            # Direct rows count only when the parent has no subcategories
            if not children:
                for idx, row, amount in rows:
                    if row.category_id == parent.id:
                        cat_values[idx] += amount

            for budget in budgets:
                if budget.category_id == parent.id and budget.subcategory_id is None:
                    for idx, value in _budget_slots(budget, base_year):
                        budget_values[idx] += value

            categories.append(
                PnlCategory(
                    id=parent.id,
                    name=parent.name,
                    label=label,
                    values=tuple(cat_values),
                    subcategories=tuple(subcategories),
                )
            )
            budget_categories.append(
                PnlCategory(
                    id=parent.id,
                    name=parent.name,
                    label=label,
                    values=tuple(budget_values),
                    subcategories=tuple(budget_subcategories),
                )
            )

        revenue_by_month = _empty()
        for revenue in self.db.list_revenues(tenant_id, base_year - 1, base_year):
            idx = window_index(revenue.year, revenue.month, base_year)
            if idx is not None:
                revenue_by_month[idx] += revenue.amount

        budget_by_month = _empty()
        for budget in budgets:
            for idx, value in _budget_slots(budget, base_year):
                budget_by_month[idx] += value

        names = {c.id: c.name for c in self.db.list_categories(tenant_id, include_inactive=True)}
        expenses = tuple(self._flatten(row, amount, names) for _, row, amount in rows)

        logger.debug(
            "Built P&L aggregate for tenant %s, base year %s (%s rows)",
            tenant_id,
            base_year,
            len(rows),
        )
        return PnlAggregate(
            tenant_id=tenant_id,
            base_year=base_year,
            expenses_by_month=tuple(expenses_by_month),
            categories=tuple(categories),
            revenue_by_month=tuple(revenue_by_month),
            budget_by_month=tuple(budget_by_month),
            budget_categories=tuple(budget_categories),
            expenses=expenses,
        )

    @staticmethod
    def _flatten(row: LedgerExpense, amount: Decimal, names: dict[int, str]) -> PnlExpense:
        return PnlExpense(
            id=row.id,
            date=row.expense_date,
            accounting_period=row.accounting_period,
            supplier=row.supplier or "Unknown",
            description=row.description or "",
            document_number=row.document_number or "",
            amount=amount,
            status=row.status,
            category=names.get(row.category_id, "Uncategorized"),
            subcategory=names.get(row.subcategory_id, ""),
            type="recurente" if row.status == ExpenseStatus.RECURENT.value else "reale",
        )

    def expenses_for_category_month(
        self, tenant_id: str, label: str, year: int, month: int
    ) -> list[PnlExpense]:
        """List the expenses behind one cell of the P&L grid.

        The label may carry the grid's numbering ("3.2 Hardware"). A parent
        category includes rows booked on it or on any of its subcategories.

        Returns:
            Matching expenses, or an empty list when the label resolves to
            no category
        """
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        category = self.categories.resolve_label(tenant_id, label)
        if category is None:
            logger.debug("Label '%s' matches no category for tenant %s", label, tenant_id)
            return []

        if category.parent_id is None:
            child_ids = {
                c.id
                for c in self.db.list_categories(tenant_id, include_inactive=True)
                if c.parent_id == category.id
            }

            def matches(row: LedgerExpense) -> bool:
                return row.category_id == category.id or row.subcategory_id in child_ids

        else:

            def matches(row: LedgerExpense) -> bool:
                return row.subcategory_id == category.id

        names = {c.id: c.name for c in self.db.list_categories(tenant_id, include_inactive=True)}
        result = []
        for row in self.db.list_expenses_in_years(tenant_id, year, year, PNL_STATUSES):
            if attribution(row.accounting_period, row.expense_date) != (year, month):
                continue
            if matches(row):
                result.append(self._flatten(row, resolve_amount(row), names))
        return result

    def upsert_revenue(
        self,
        tenant_id: str,
        year: int,
        month: int,
        amount: Decimal,
        entered_by: Optional[str] = None,
        currency: str = "RON",
    ) -> int:
        """Set the manual revenue of a month. Repeating the call is harmless.

        Raises:
            ValidationError: If the month is out of range or the amount negative
        """
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        if amount is None or Decimal(amount) < 0:
            raise ValidationError(f"Revenue cannot be negative, got {amount}")
        revenue_id = self.db.upsert_revenue(
            tenant_id=tenant_id,
            year=year,
            month=month,
            amount=Decimal(amount),
            source=MANUAL_REVENUE_SOURCE,
            currency=currency,
            entered_by=entered_by,
        )
        logger.info("Set manual revenue %s-%02d for tenant %s to %s", year, month, tenant_id, amount)
        return revenue_id

    def list_revenues(self, tenant_id: str, year: int) -> list[Revenue]:
        return self.db.list_revenues(tenant_id, year, year)

    def summary(self, tenant_id: str, year: int, today: Optional[date] = None) -> PnlYearSummary:
        """Per-month KPIs and year-to-date totals for one year.

        Year to date runs through today's month for the current year, through
        December for past years, and is empty for future years.
        """
        today = today or date.today()
        agg = self.aggregate(tenant_id, year)

        months = []
        for month in range(1, 13):
            idx = month - 1 + 12
            revenue = agg.revenue_by_month[idx]
            expenses = agg.expenses_by_month[idx]
            budget = agg.budget_by_month[idx]
            months.append(
                PnlMonthSummary(
                    month=month,
                    revenue=revenue,
                    expenses=expenses,
                    budget=budget,
                    profit=revenue - expenses,
                    delta=budget - expenses,
                    profit_margin=_margin(revenue, expenses),
                )
            )

        if year < today.year:
            through = 12
        elif year == today.year:
            through = today.month
        else:
            through = 0
        ytd = months[:through]
        ytd_revenue = sum((m.revenue for m in ytd), ZERO)
        ytd_expenses = sum((m.expenses for m in ytd), ZERO)
        ytd_budget = sum((m.budget for m in ytd), ZERO)

        return PnlYearSummary(
            year=year,
            months=tuple(months),
            ytd_through_month=through,
            ytd_revenue=ytd_revenue,
            ytd_expenses=ytd_expenses,
            ytd_budget=ytd_budget,
            ytd_profit=ytd_revenue - ytd_expenses,
            ytd_delta=ytd_budget - ytd_expenses,
            ytd_profit_margin=_margin(ytd_revenue, ytd_expenses),
        )


def _margin(revenue: Decimal, expenses: Decimal) -> Optional[Decimal]:
    if revenue <= ZERO:
        return None
    return (revenue - expenses) / revenue
