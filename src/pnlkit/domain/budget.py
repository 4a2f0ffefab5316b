"""Budget domain service."""

import logging
from decimal import Decimal
from typing import Optional, Sequence

from pnlkit.database.base import Database
from pnlkit.domain.entities import Budget
from pnlkit.domain.errors import NotFoundError, ValidationError, category_not_found

logger = logging.getLogger(__name__)


class BudgetService:
    """Service for yearly budgets with twelve monthly values."""

    def __init__(self, db: Database):
        self.db = db

    def upsert_budget(
        self,
        tenant_id: str,
        year: int,
        category_id: Optional[int],
        subcategory_id: Optional[int],
        monthly_values: Sequence[Decimal],
        notes: Optional[str] = None,
    ) -> int:
        """Insert or replace the budget of a category for a year.

        Args:
            tenant_id: Owning tenant
            year: Budget year
            category_id: Parent category, or None for an uncategorised budget
            subcategory_id: Optional subcategory of category_id
            monthly_values: Twelve values, January first

        Returns:
            Budget ID

        Raises:
            ValidationError: If there are not twelve non-negative values or the
                subcategory does not belong to the category
            NotFoundError: If a category doesn't exist in the tenant
        """
        values = [Decimal(v) for v in monthly_values]
        if len(values) != 12:
            raise ValidationError(f"Expected 12 monthly values, got {len(values)}")
        if any(v < 0 for v in values):
            raise ValidationError("Budget values cannot be negative")

        category = self._category(tenant_id, category_id)
        subcategory = self._category(tenant_id, subcategory_id)
        if subcategory is not None:
            if category is None:
                category_id = subcategory.parent_id
            elif subcategory.parent_id != category.id:
                raise ValidationError(
                    f"Category {subcategory_id} is not a subcategory of {category_id}"
                )

        budget_id = self.db.upsert_budget(
            tenant_id=tenant_id,
            year=year,
            category_id=category_id,
            subcategory_id=subcategory_id,
            monthly_values=values,
            notes=notes,
        )
        logger.info(
            "Saved budget %s for tenant %s, year %s (total %s)",
            budget_id,
            tenant_id,
            year,
            sum(values, Decimal("0")),
        )
        return budget_id

    def list_budgets(self, tenant_id: str, year: int) -> list[Budget]:
        return self.db.list_budgets(tenant_id, year, year)

    def _category(self, tenant_id: str, category_id: Optional[int]):
        if category_id is None:
            return None
        category = self.db.get_category(category_id)
        if category is None or category.tenant_id != tenant_id:
            raise NotFoundError(category_not_found(category_id))
        return category
