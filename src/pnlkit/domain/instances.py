"""Recurring instances and the confirmation workflow.

An instance is the obligation record for one template and month. Converting
it compares the actual document against the expected amount; a difference
above the tolerance needs an explicit confirmation before anything is written.
"""

import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional

from pnlkit.config import DEFAULT_AMOUNT_TOLERANCE_PERCENT
from pnlkit.database.base import Database
from pnlkit.domain.amounts import ZERO, diff_percent, pick_amount, resolve_amount
from pnlkit.domain.entities import (
    ConvertResult,
    ExpenseData,
    ExpenseStatus,
    InstanceStatus,
    LedgerExpense,
    RecurringInstance,
    RecurringTemplate,
)
from pnlkit.domain.errors import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    expense_not_found,
    instance_not_found,
    template_not_found,
)
from pnlkit.domain.recurring import version_in_force
from pnlkit.utils.period import first_of_month, format_period, month_date, parse_period

logger = logging.getLogger(__name__)

# Instance columns cleared when an obligation goes back to open
REOPEN_FIELDS = {
    "status": InstanceStatus.OPEN.value,
    "final_expense_id": None,
    "closed_at": None,
    "closed_by": None,
    "amount_difference_percent": None,
}


def _now() -> datetime:
    return datetime.now(UTC)


class RecurringInstanceService:
    """Service for recurring instances."""

    def __init__(
        self, db: Database, tolerance_percent: Decimal = DEFAULT_AMOUNT_TOLERANCE_PERCENT
    ):
        """Initialize recurring instance service.

        Args:
            db: Database instance
            tolerance_percent: Amount difference, in percent, above which a
                conversion needs confirmation
        """
        self.db = db
        self.tolerance_percent = tolerance_percent

    def _get_template(self, template_id: int, tenant_id: str) -> RecurringTemplate:
        template = self.db.get_template(template_id)
        if template is None or template.tenant_id != tenant_id:
            raise NotFoundError(template_not_found(template_id))
        return template

    def _chain_ids(self, template: RecurringTemplate) -> list[int]:
        return [t.id for t in self.db.list_chain(template.chain_root_id)]

    def generate_instances(self, tenant_id: str, target_month: date) -> int:
        """Create open instances for every active chain covering a month.

        Expected values come from the version in force for the month.

        Returns:
            Number of instances created
        """
        month = first_of_month(target_month)
        created = 0
        for head in self.db.list_templates(tenant_id, active_only=True):
            if head.end_date is not None and first_of_month(head.end_date) < month:
                continue
            chain = self.db.list_chain(head.chain_root_id)
            template = version_in_force(chain, month)
            if template is None:
                continue
            if self.db.find_instance([t.id for t in chain], month.year, month.month):
                continue

            instance_id = self.db.create_instance(
                tenant_id=tenant_id,
                template_id=template.id,
                year=month.year,
                month=month.month,
                status=InstanceStatus.OPEN.value,
                expected_amount=template.amount,
                expected_amount_with_vat=template.amount_with_vat,
                expected_amount_without_vat=template.amount_without_vat,
                expected_vat_rate=template.vat_rate,
                expected_vat_deductible=template.vat_deductible,
                expected_currency=template.currency,
                expected_category_id=template.category_id,
                expected_subcategory_id=template.subcategory_id,
                expected_supplier=template.supplier,
                expected_description=template.description,
            )
            if instance_id is not None:
                created += 1

        logger.info(
            "Generated %s instances for tenant %s in %s",
            created,
            tenant_id,
            format_period(month.year, month.month),
        )
        return created

    def get_instance(self, instance_id: int, tenant_id: str) -> RecurringInstance:
        instance = self.db.get_instance(instance_id)
        if instance is None or instance.tenant_id != tenant_id:
            raise NotFoundError(instance_not_found(instance_id))
        return instance

    def list_instances(
        self, template_id: int, tenant_id: str, year: Optional[int] = None
    ) -> list[RecurringInstance]:
        """List instances across the template's whole version chain."""
        template = self._get_template(template_id, tenant_id)
        return self.db.list_instances(
            tenant_id, template_ids=self._chain_ids(template), year=year
        )

    def open_instances(
        self, tenant_id: str, before: Optional[tuple[int, int]] = None
    ) -> list[RecurringInstance]:
        """List open instances, optionally only those before (year, month)."""
        instances = self.db.list_instances(tenant_id, status=InstanceStatus.OPEN.value)
        if before is None:
            return instances
        return [i for i in instances if (i.year, i.month) < before]

    def convert(
        self,
        instance_id: int,
        tenant_id: str,
        user_id: str,
        actual: ExpenseData,
        confirm: bool = False,
    ) -> ConvertResult:
        """Convert an open obligation into a reconciled ledger expense.

        Args:
            instance_id: Instance to close
            tenant_id: Owning tenant
            user_id: Acting user, recorded as closed_by
            actual: Figures from the real document
            confirm: Proceed even when the difference exceeds the tolerance

        Returns:
            ConvertResult. When requires_confirmation is set nothing changed.

        Raises:
            NotFoundError: If the instance doesn't exist in the tenant
            InvalidStateError: If the instance is closed, or its month already
                has a reconciled or skipped ledger row
            ValidationError: If the actual amount is missing or not positive
        """
        instance = self.get_instance(instance_id, tenant_id)
        if not instance.is_open:
            raise InvalidStateError(f"Recurring instance {instance_id} is already closed")

        expected = pick_amount(
            instance.expected_vat_deductible,
            instance.expected_amount,
            amount_with_vat=instance.expected_amount_with_vat,
            amount_without_vat=instance.expected_amount_without_vat,
        )
        actual_amount = self._actual_amount(actual)
        diff = diff_percent(expected, actual_amount)
        over = diff > float(self.tolerance_percent)
        if over and not confirm:
            logger.info(
                "Instance %s needs confirmation: expected %s, actual %s (%.2f%%)",
                instance_id,
                expected,
                actual_amount,
                diff,
            )
            return ConvertResult(
                expected_amount=expected,
                actual_amount=actual_amount,
                diff_percent=diff,
                requires_confirmation=True,
            )

        template = self._get_template(instance.template_id, tenant_id)
        period = instance.period
        fields = {
            "accounting_period": period,
            "expense_date": actual.expense_date
            or month_date(instance.year, instance.month, template.day_of_month),
            "amount": actual.amount if actual.amount is not None else actual_amount,
            "amount_with_vat": actual.amount_with_vat,
            "amount_without_vat": actual.amount_without_vat,
            "vat_rate": actual.vat_rate,
            "vat_deductible": actual.vat_deductible,
            "currency": actual.currency or instance.expected_currency,
            "supplier": actual.supplier or instance.expected_supplier,
            "description": actual.description or instance.expected_description,
            "document_number": actual.document_number,
            "category_id": actual.category_id or instance.expected_category_id,
            "subcategory_id": actual.subcategory_id or instance.expected_subcategory_id,
            "status": ExpenseStatus.FINAL.value,
            "recurring_instance_id": instance.id,
        }

        with self.db.transaction():
            live = self.db.get_live_expense(self._chain_ids(template), period)
            if live is not None:
                if live.status != ExpenseStatus.RECURENT.value:
                    raise InvalidStateError(
                        f"Month {period} of template {instance.template_id} already has a "
                        f"{live.status} expense"
                    )
                self.db.update_expense(live.id, **fields)
                expense_id = live.id
            else:
                expense_id = self.db.create_expense(
                    tenant_id=tenant_id,
                    template_id=instance.template_id,
                    created_by=user_id,
                    **fields,
                )
            self.db.update_instance(
                instance.id,
                status=InstanceStatus.CLOSED.value,
                final_expense_id=expense_id,
                closed_at=_now(),
                closed_by=user_id,
                amount_difference_percent=diff,
            )

        logger.info(
            "Closed instance %s with expense %s (%.2f%% difference)", instance_id, expense_id, diff
        )
        return ConvertResult(
            expected_amount=expected,
            actual_amount=actual_amount,
            diff_percent=diff,
            final_expense=self.db.get_expense(expense_id),
            suggest_new_template=over,
        )

    def convert_form(
        self,
        expense_id: int,
        tenant_id: str,
        user_id: str,
        actual: ExpenseData,
        confirm: bool = False,
    ) -> ConvertResult:
        """Reconcile a bare ``recurent`` ledger row in place.

        The same tolerance rule applies as for convert. An open instance for
        the same template month is closed along with it.
        """
        row = self.db.get_expense(expense_id)
        if row is None or row.tenant_id != tenant_id or row.is_deleted:
            raise NotFoundError(expense_not_found(expense_id))
        if row.status != ExpenseStatus.RECURENT.value:
            raise InvalidStateError(
                f"Expense {expense_id} is {row.status}; only recurent rows can be converted"
            )

        expected = resolve_amount(row)
        actual_amount = self._actual_amount(actual)
        diff = diff_percent(expected, actual_amount)
        over = diff > float(self.tolerance_percent)
        if over and not confirm:
            return ConvertResult(
                expected_amount=expected,
                actual_amount=actual_amount,
                diff_percent=diff,
                requires_confirmation=True,
            )

        instance = self._instance_for_row(row)
        with self.db.transaction():
            self.db.update_expense(
                row.id,
                expense_date=actual.expense_date or row.expense_date,
                amount=actual.amount if actual.amount is not None else actual_amount,
                amount_with_vat=actual.amount_with_vat,
                amount_without_vat=actual.amount_without_vat,
                vat_rate=actual.vat_rate,
                vat_deductible=actual.vat_deductible,
                currency=actual.currency or row.currency,
                supplier=actual.supplier or row.supplier,
                description=actual.description or row.description,
                document_number=actual.document_number,
                category_id=actual.category_id or row.category_id,
                subcategory_id=actual.subcategory_id or row.subcategory_id,
                status=ExpenseStatus.FINAL.value,
                recurring_instance_id=instance.id if instance else row.recurring_instance_id,
            )
            if instance is not None:
                self.db.update_instance(
                    instance.id,
                    status=InstanceStatus.CLOSED.value,
                    final_expense_id=row.id,
                    closed_at=_now(),
                    closed_by=user_id,
                    amount_difference_percent=diff,
                )

        logger.info("Converted form %s (%.2f%% difference)", expense_id, diff)
        return ConvertResult(
            expected_amount=expected,
            actual_amount=actual_amount,
            diff_percent=diff,
            final_expense=self.db.get_expense(row.id),
            suggest_new_template=over,
        )

    def reopen_instance(self, instance_id: int, tenant_id: str) -> RecurringInstance:
        """Return a closed instance to open, clearing its closing fields."""
        instance = self.get_instance(instance_id, tenant_id)
        if instance.is_open:
            return instance
        self.db.update_instance(instance.id, **REOPEN_FIELDS)
        logger.info(
            "Reopened instance %s (was closed by expense %s)", instance_id, instance.final_expense_id
        )
        return self.get_instance(instance_id, tenant_id)

    def _instance_for_row(self, row: LedgerExpense) -> Optional[RecurringInstance]:
        if row.template_id is None or not row.accounting_period:
            return None
        template = self.db.get_template(row.template_id)
        if template is None:
            return None
        year, month = parse_period(row.accounting_period)
        instance = self.db.find_instance(self._chain_ids(template), year, month)
        if instance is None or not instance.is_open:
            return None
        return instance

    @staticmethod
    def _actual_amount(actual: ExpenseData) -> Decimal:
        figures = (actual.amount, actual.amount_with_vat, actual.amount_without_vat)
        if all(value is None for value in figures):
            raise ValidationError("Actual amount is required")
        amount = resolve_amount(actual)
        if amount <= ZERO:
            raise ValidationError(f"Actual amount must be positive, got {amount}")
        return amount
