"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Sequence

# Import entities directly to avoid circular import through domain/__init__.py
from pnlkit.domain.entities import (
    Budget,
    Category,
    LedgerExpense,
    RecurringInstance,
    RecurringTemplate,
    Revenue,
)

CommitListener = Callable[[frozenset[str]], None]


class Database(ABC):
    """Abstract database interface for pnlkit."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Group writes so they commit together or not at all.

        Blocks may nest; only the outermost block commits. Any exception
        rolls back every write made inside the outermost block.
        """
        pass

    @abstractmethod
    def add_commit_listener(self, listener: CommitListener) -> None:
        """Register a callable notified with the tenant ids touched by each commit."""
        pass

    # Category operations
    @abstractmethod
    def create_category(
        self,
        tenant_id: str,
        name: str,
        parent_id: Optional[int] = None,
        sort_order: int = 0,
        category_type: str = "expense",
    ) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def list_categories(
        self,
        tenant_id: str,
        category_type: Optional[str] = None,
        include_inactive: bool = False,
    ) -> list[Category]:
        """List a tenant's categories ordered by sort_order, then id."""
        pass

    @abstractmethod
    def set_category_active(self, category_id: int, is_active: bool) -> None:
        """Activate or deactivate a category."""
        pass

    # Recurring template operations
    @abstractmethod
    def create_template(self, **fields: Any) -> int:
        """Create a template row. Returns template ID.

        chain_root_id defaults to the new row's own id.
        """
        pass

    @abstractmethod
    def get_template(self, template_id: int) -> Optional[RecurringTemplate]:
        """Get template by ID."""
        pass

    @abstractmethod
    def list_templates(
        self,
        tenant_id: str,
        active_only: bool = False,
        include_superseded: bool = False,
    ) -> list[RecurringTemplate]:
        """List a tenant's templates, newest first."""
        pass

    @abstractmethod
    def update_template(self, template_id: int, **fields: Any) -> None:
        """Update template columns in place."""
        pass

    @abstractmethod
    def get_chain_head(self, chain_root_id: int) -> Optional[RecurringTemplate]:
        """Get the version of a chain that has not been superseded."""
        pass

    @abstractmethod
    def list_chain(self, chain_root_id: int) -> list[RecurringTemplate]:
        """List every version of a chain, oldest first."""
        pass

    @abstractmethod
    def delete_templates(self, template_ids: Iterable[int]) -> int:
        """Physically delete templates. Returns number of rows removed."""
        pass

    @abstractmethod
    def list_tenants_with_active_templates(self) -> list[str]:
        """List tenant ids owning at least one active template."""
        pass

    # Ledger operations
    @abstractmethod
    def create_expense(self, **fields: Any) -> int:
        """Create a ledger expense. Returns expense ID."""
        pass

    @abstractmethod
    def insert_recurring_expense(self, **fields: Any) -> Optional[int]:
        """Insert a RE-Form unless a live row exists for its template and period.

        Returns the new ID, or None when the uniqueness index rejected it.
        """
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Optional[LedgerExpense]:
        """Get expense by ID, including soft-deleted rows."""
        pass

    @abstractmethod
    def get_live_expense(
        self, template_ids: Sequence[int], accounting_period: str
    ) -> Optional[LedgerExpense]:
        """Get the non-deleted row for any of the templates in a period."""
        pass

    @abstractmethod
    def list_expenses(
        self,
        tenant_id: str,
        statuses: Optional[Iterable[str]] = None,
        accounting_period: Optional[str] = None,
        template_ids: Optional[Sequence[int]] = None,
        include_deleted: bool = False,
    ) -> list[LedgerExpense]:
        """List ledger expenses with optional filters."""
        pass

    @abstractmethod
    def list_expenses_in_years(
        self,
        tenant_id: str,
        start_year: int,
        end_year: int,
        statuses: Iterable[str],
    ) -> list[LedgerExpense]:
        """List live expenses attributed to the given years.

        A row is attributed by accounting_period when set, otherwise by
        expense_date.
        """
        pass

    @abstractmethod
    def update_expense(self, expense_id: int, **fields: Any) -> None:
        """Update expense columns."""
        pass

    @abstractmethod
    def soft_delete_expenses(self, expense_ids: Iterable[int], deleted_at: datetime) -> None:
        """Mark expenses as deleted."""
        pass

    @abstractmethod
    def delete_expenses_for_templates(self, template_ids: Iterable[int]) -> int:
        """Physically delete every ledger row of the templates."""
        pass

    # Recurring instance operations
    @abstractmethod
    def create_instance(self, **fields: Any) -> Optional[int]:
        """Create an instance. Returns None if one exists for the template and month."""
        pass

    @abstractmethod
    def get_instance(self, instance_id: int) -> Optional[RecurringInstance]:
        """Get instance by ID."""
        pass

    @abstractmethod
    def find_instance(
        self, template_ids: Sequence[int], year: int, month: int
    ) -> Optional[RecurringInstance]:
        """Find the instance of any of the templates for a month."""
        pass

    @abstractmethod
    def list_instances(
        self,
        tenant_id: str,
        template_ids: Optional[Sequence[int]] = None,
        year: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[RecurringInstance]:
        """List instances ordered by year and month."""
        pass

    @abstractmethod
    def find_instances_by_final_expense(self, expense_id: int) -> list[RecurringInstance]:
        """List instances closed by the given expense."""
        pass

    @abstractmethod
    def update_instance(self, instance_id: int, **fields: Any) -> None:
        """Update instance columns."""
        pass

    @abstractmethod
    def delete_instances_for_templates(self, template_ids: Iterable[int]) -> int:
        """Physically delete every instance of the templates."""
        pass

    # Revenue and budget operations
    @abstractmethod
    def upsert_revenue(
        self,
        tenant_id: str,
        year: int,
        month: int,
        amount: Decimal,
        source: str,
        currency: str = "RON",
        description: Optional[str] = None,
        entered_by: Optional[str] = None,
    ) -> int:
        """Insert or update the revenue row for (tenant, year, month, source)."""
        pass

    @abstractmethod
    def list_revenues(self, tenant_id: str, start_year: int, end_year: int) -> list[Revenue]:
        """List revenue rows for a range of years."""
        pass

    @abstractmethod
    def upsert_budget(
        self,
        tenant_id: str,
        year: int,
        category_id: Optional[int],
        subcategory_id: Optional[int],
        monthly_values: Sequence[Decimal],
        notes: Optional[str] = None,
    ) -> int:
        """Insert or update the budget row for (tenant, year, category, subcategory)."""
        pass

    @abstractmethod
    def list_budgets(self, tenant_id: str, start_year: int, end_year: int) -> list[Budget]:
        """List budget rows for a range of years."""
        pass

    # Convenience for callers needing "no such month" semantics
    def month_has_expense(self, template_ids: Sequence[int], when: date) -> bool:
        """Check whether a live row exists for the month containing a date."""
        period = f"{when.year:04d}-{when.month:02d}"
        return self.get_live_expense(template_ids, period) is not None
