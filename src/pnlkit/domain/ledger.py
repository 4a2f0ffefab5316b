"""Expense ledger domain service."""

import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional

from pnlkit.config import DEFAULT_CURRENCY
from pnlkit.database.base import Database
from pnlkit.domain.entities import ExpenseStatus, LedgerExpense
from pnlkit.domain.errors import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    category_not_found,
    expense_not_found,
)
from pnlkit.domain.instances import REOPEN_FIELDS
from pnlkit.domain.recurring import recurring_form_fields, version_in_force
from pnlkit.utils.period import parse_period

logger = logging.getLogger(__name__)

# Manual workflow transitions; recurent and skipped rows change only through
# conversion and skipping.
STATUS_TRANSITIONS = {
    ExpenseStatus.DRAFT.value: {ExpenseStatus.PENDING.value, ExpenseStatus.REJECTED.value},
    ExpenseStatus.PENDING.value: {
        ExpenseStatus.APPROVED.value,
        ExpenseStatus.REJECTED.value,
        ExpenseStatus.DRAFT.value,
    },
    ExpenseStatus.APPROVED.value: {ExpenseStatus.PAID.value, ExpenseStatus.REJECTED.value},
    ExpenseStatus.FINAL.value: {ExpenseStatus.PAID.value},
    ExpenseStatus.REJECTED.value: {ExpenseStatus.DRAFT.value},
    ExpenseStatus.PAID.value: set(),
}

# Statuses a user may give a new expense directly
_CREATABLE_STATUSES = frozenset(
    {
        ExpenseStatus.DRAFT.value,
        ExpenseStatus.PENDING.value,
        ExpenseStatus.APPROVED.value,
        ExpenseStatus.FINAL.value,
        ExpenseStatus.PAID.value,
    }
)


class ExpenseService:
    """Service for managing ledger expenses."""

    def __init__(self, db: Database):
        """Initialize expense service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_expense(
        self,
        tenant_id: str,
        expense_date: date,
        amount: Decimal,
        supplier: Optional[str] = None,
        description: Optional[str] = None,
        document_number: Optional[str] = None,
        accounting_period: Optional[str] = None,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
        vat_deductible: bool = False,
        vat_rate: Optional[Decimal] = None,
        amount_with_vat: Optional[Decimal] = None,
        amount_without_vat: Optional[Decimal] = None,
        currency: str = DEFAULT_CURRENCY,
        status: str = ExpenseStatus.DRAFT.value,
        created_by: Optional[str] = None,
    ) -> int:
        """Record a one-off expense.

        Args:
            tenant_id: Owning tenant
            expense_date: Calendar date of the document
            amount: Flat amount
            accounting_period: Optional YYYY-MM P&L month; when omitted the
                P&L attributes the row by expense_date
            status: Initial workflow status

        Returns:
            Expense ID

        Raises:
            ValidationError: If the amount, period or status is invalid
            NotFoundError: If a category doesn't exist in the tenant
        """
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        if status not in _CREATABLE_STATUSES:
            raise ValidationError(f"Cannot create an expense with status '{status}'")
        if accounting_period is not None:
            try:
                year, month = parse_period(accounting_period)
            except ValueError as e:
                raise ValidationError(str(e))
            accounting_period = f"{year:04d}-{month:02d}"
        for cid in (category_id, subcategory_id):
            if cid is not None:
                category = self.db.get_category(cid)
                if category is None or category.tenant_id != tenant_id:
                    raise NotFoundError(category_not_found(cid))

        expense_id = self.db.create_expense(
            tenant_id=tenant_id,
            expense_date=expense_date,
            accounting_period=accounting_period,
            amount=amount,
            amount_with_vat=amount_with_vat,
            amount_without_vat=amount_without_vat,
            vat_rate=vat_rate,
            vat_deductible=vat_deductible,
            currency=currency,
            supplier=supplier,
            description=description,
            document_number=document_number,
            category_id=category_id,
            subcategory_id=subcategory_id,
            status=status,
            created_by=created_by,
        )
        logger.info("Created expense %s for tenant %s", expense_id, tenant_id)
        return expense_id

    def get_expense(
        self, expense_id: int, tenant_id: str, include_deleted: bool = False
    ) -> LedgerExpense:
        """Get a tenant's expense by ID.

        Raises:
            NotFoundError: If it doesn't exist, belongs to another tenant, or
                is deleted and include_deleted is False
        """
        expense = self.db.get_expense(expense_id)
        if expense is None or expense.tenant_id != tenant_id:
            raise NotFoundError(expense_not_found(expense_id))
        if expense.is_deleted and not include_deleted:
            raise NotFoundError(expense_not_found(expense_id))
        return expense

    def list_expenses(
        self,
        tenant_id: str,
        status: Optional[str] = None,
        period: Optional[str] = None,
        template_id: Optional[int] = None,
        include_deleted: bool = False,
    ) -> list[LedgerExpense]:
        """List expenses with optional filters.

        Args:
            tenant_id: Owning tenant
            status: Only this status
            period: Only this YYYY-MM accounting period
            template_id: Only rows of this template's version chain
            include_deleted: Include soft-deleted rows

        Returns:
            Expenses ordered by date
        """
        template_ids = None
        if template_id is not None:
            template = self.db.get_template(template_id)
            if template is None or template.tenant_id != tenant_id:
                return []
            template_ids = [t.id for t in self.db.list_chain(template.chain_root_id)]
        return self.db.list_expenses(
            tenant_id,
            statuses=[status] if status is not None else None,
            accounting_period=period,
            template_ids=template_ids,
            include_deleted=include_deleted,
        )

    def set_status(self, expense_id: int, tenant_id: str, status: str) -> None:
        """Move an expense along the approval workflow.

        Raises:
            InvalidStateError: If the transition is not allowed
        """
        expense = self.get_expense(expense_id, tenant_id)
        if status == expense.status:
            return
        allowed = STATUS_TRANSITIONS.get(expense.status, set())
        if status not in allowed:
            raise InvalidStateError(
                f"Cannot change expense {expense_id} from {expense.status} to {status}"
            )
        self.db.update_expense(expense_id, status=status)
        logger.info("Expense %s: %s -> %s", expense_id, expense.status, status)

    def delete_expense(self, expense_id: int, tenant_id: str) -> Optional[int]:
        """Soft-delete an expense.

        Instances closed by this expense are reopened. If it was a reconciled
        RE-Form of a still-active template, a fresh ``recurent`` row is
        generated for the same month from the version in force then.

        Returns:
            ID of the regenerated row, if any
        """
        expense = self.get_expense(expense_id, tenant_id)
        regenerated = None

        with self.db.transaction():
            self.db.soft_delete_expenses([expense.id], datetime.now(UTC))

            for instance in self.db.find_instances_by_final_expense(expense.id):
                self.db.update_instance(instance.id, **REOPEN_FIELDS)
                logger.info("Reopened instance %s after deleting expense %s", instance.id, expense.id)

            if expense.template_id is not None and expense.is_reconciled and expense.accounting_period:
                template = self.db.get_template(expense.template_id)
                head = self.db.get_chain_head(template.chain_root_id) if template else None
                if head is not None and head.is_active:
                    year, month = parse_period(expense.accounting_period)
                    version = version_in_force(
                        self.db.list_chain(head.chain_root_id), date(year, month, 1)
                    )
                    if version is not None:
                        regenerated = self.db.insert_recurring_expense(
                            **recurring_form_fields(
                                version, date(year, month, 1), ExpenseStatus.RECURENT.value
                            )
                        )

        logger.info(
            "Deleted expense %s for tenant %s%s",
            expense.id,
            tenant_id,
            f"; regenerated as {regenerated}" if regenerated else "",
        )
        return regenerated
