"""Recurring template engine.

Templates are versioned: a monetary change inserts a new row that supersedes
the previous one, so past RE-Forms keep the amounts that were true when they
were generated. Every row of a version chain shares ``chain_root_id``.
"""

import logging
from dataclasses import fields as dataclass_fields
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from pnlkit.config import DEFAULT_CURRENCY
from pnlkit.database.base import Database
from pnlkit.domain.entities import (
    CurrentUser,
    ExpenseStatus,
    RecurringTemplate,
)
from pnlkit.domain.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    category_not_found,
    month_already_reconciled,
    not_allowed,
    start_before_editable,
    template_not_found,
)
from pnlkit.utils.period import (
    add_months,
    first_of_month,
    format_period,
    iter_months,
    month_date,
    parse_period,
    period_of,
)

logger = logging.getLogger(__name__)

MONETARY_FIELDS = frozenset(
    {
        "amount",
        "amount_with_vat",
        "amount_without_vat",
        "vat_rate",
        "vat_deductible",
        "currency",
    }
)

EDITABLE_FIELDS = frozenset(
    {
        "supplier",
        "supplier_cui",
        "description",
        "tags",
        "category_id",
        "subcategory_id",
        "doc_type",
        "day_of_month",
        "end_date",
    }
)

# Template columns carried over to a new version
_COPIED_FIELDS = MONETARY_FIELDS | EDITABLE_FIELDS | {"tenant_id"}


def _now() -> datetime:
    return datetime.now(UTC)


def recurring_form_fields(template: RecurringTemplate, month: date, status: str) -> dict[str, Any]:
    """Column values for a template's ledger row in the given month."""
    return {
        "tenant_id": template.tenant_id,
        "template_id": template.id,
        "accounting_period": period_of(month),
        "expense_date": month_date(month.year, month.month, template.day_of_month),
        "amount": template.amount,
        "amount_with_vat": template.amount_with_vat,
        "amount_without_vat": template.amount_without_vat,
        "vat_rate": template.vat_rate,
        "vat_deductible": template.vat_deductible,
        "currency": template.currency,
        "supplier": template.supplier,
        "description": template.description,
        "category_id": template.category_id,
        "subcategory_id": template.subcategory_id,
        "status": status,
        "created_by": template.created_by,
    }


def version_in_force(
    chain: Iterable[RecurringTemplate], month: date
) -> Optional[RecurringTemplate]:
    """Return the version of a chain that covers a month.

    A revision may start after the current month; until then the version it
    superseded still applies. Among versions started on or before the month
    the newest one wins.

    Args:
        chain: Every version of the chain, oldest first
        month: First day of the month

    Returns:
        The covering version, or None before the chain's first start month
    """
    in_force = None
    for version in chain:
        if version.start_date <= month:
            in_force = version
    return in_force


class RecurringTemplateService:
    """Service for recurring templates and the RE-Forms they generate."""

    def __init__(self, db: Database):
        """Initialize recurring template service.

        Args:
            db: Database instance
        """
        self.db = db

    # Template definitions
    def create_template(
        self,
        tenant_id: str,
        created_by: str,
        supplier: str,
        amount: Decimal,
        start_date: date,
        currency: str = DEFAULT_CURRENCY,
        vat_deductible: bool = False,
        vat_rate: Optional[Decimal] = None,
        amount_with_vat: Optional[Decimal] = None,
        amount_without_vat: Optional[Decimal] = None,
        supplier_cui: Optional[str] = None,
        description: Optional[str] = None,
        tags: Iterable[str] = (),
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
        doc_type: Optional[str] = None,
        day_of_month: int = 1,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> int:
        """Create version 1 of a recurring template.

        Args:
            tenant_id: Owning tenant
            created_by: ID of the creating user
            supplier: Supplier name
            amount: Flat amount
            start_date: Any day of the first month to generate; normalised to the 1st
            today: Current date (defaults to date.today())

        Returns:
            Template ID

        Raises:
            ValidationError: If required fields are missing or invalid
            InvalidStateError: If the start month is in the past
            NotFoundError: If a referenced category doesn't exist in the tenant
        """
        today = today or date.today()
        supplier = supplier.strip() if supplier else ""
        if not supplier:
            raise ValidationError("Supplier is required")
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError(f"Amount must be positive, got {amount}")
        self._validate_day_of_month(day_of_month)

        start = first_of_month(start_date)
        if start < first_of_month(today):
            raise InvalidStateError(
                f"Start month {period_of(start)} is in the past; "
                f"the earliest allowed month is {period_of(today)}"
            )
        if end_date is not None and end_date < start:
            raise ValidationError("End date cannot be before the start month")
        self._check_categories(tenant_id, category_id, subcategory_id)

        template_id = self.db.create_template(
            tenant_id=tenant_id,
            version=1,
            is_active=True,
            start_date=start,
            end_date=end_date,
            day_of_month=day_of_month,
            supplier=supplier,
            supplier_cui=supplier_cui,
            description=description,
            tags=list(tags),
            category_id=category_id,
            subcategory_id=subcategory_id,
            vat_deductible=vat_deductible,
            vat_rate=vat_rate,
            amount=amount,
            amount_with_vat=amount_with_vat,
            amount_without_vat=amount_without_vat,
            currency=currency,
            doc_type=doc_type,
            created_by=created_by,
        )
        logger.info(
            "Created recurring template %s for tenant %s starting %s",
            template_id,
            tenant_id,
            period_of(start),
        )
        return template_id

    def get_template(self, template_id: int, tenant_id: str) -> RecurringTemplate:
        """Get a tenant's template by ID.

        Raises:
            NotFoundError: If it doesn't exist or belongs to another tenant
        """
        template = self.db.get_template(template_id)
        if template is None or template.tenant_id != tenant_id:
            raise NotFoundError(template_not_found(template_id))
        return template

    def list_templates(
        self,
        tenant_id: str,
        active_only: bool = False,
        include_superseded: bool = False,
    ) -> list[RecurringTemplate]:
        return self.db.list_templates(
            tenant_id, active_only=active_only, include_superseded=include_superseded
        )

    def update_template(self, template_id: int, tenant_id: str, **changes: Any) -> None:
        """Edit non-monetary fields of the current version in place.

        Raises:
            InvalidStateError: If a monetary field is changed or the version
                has been superseded
            ValidationError: If a field is unknown or invalid
        """
        template = self.get_template(template_id, tenant_id)
        if template.is_superseded:
            raise InvalidStateError(
                f"Template {template_id} has been superseded; edit version "
                "history through its current version"
            )

        monetary = sorted(set(changes) & MONETARY_FIELDS)
        if monetary:
            raise InvalidStateError(
                f"Cannot change {', '.join(monetary)} in place; "
                "create a new version with revise_versioned"
            )
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown template fields: {', '.join(unknown)}")
        if not changes:
            return

        if "supplier" in changes and not (changes["supplier"] or "").strip():
            raise ValidationError("Supplier is required")
        if "day_of_month" in changes:
            self._validate_day_of_month(changes["day_of_month"])
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or ())
        self._check_categories(
            tenant_id, changes.get("category_id"), changes.get("subcategory_id")
        )

        self.db.update_template(template_id, **changes)
        logger.info("Updated template %s fields: %s", template_id, ", ".join(sorted(changes)))

    # Version chains
    def get_active_version(self, chain_root_id: int) -> Optional[RecurringTemplate]:
        """Return the current (non-superseded) version of a chain."""
        return self.db.get_chain_head(chain_root_id)

    def version_history(self, template_id: int, tenant_id: str) -> list[RecurringTemplate]:
        """Return every version of the template's chain, oldest first."""
        template = self.get_template(template_id, tenant_id)
        return self.db.list_chain(template.chain_root_id)

    def _chain_ids(self, template: RecurringTemplate) -> list[int]:
        return [t.id for t in self.db.list_chain(template.chain_root_id)]

    def earliest_editable_month(
        self, template_id: int, tenant_id: str, today: Optional[date] = None
    ) -> date:
        """Return the first month a new version may start in.

        This is the current month, or the next one when the current month's
        obligation is already closed out (a ledger row that is no longer
        ``recurent``, or a closed instance).
        """
        template = self.get_template(template_id, tenant_id)
        current = first_of_month(today or date.today())
        chain_ids = self._chain_ids(template)

        live = self.db.get_live_expense(chain_ids, period_of(current))
        instance = self.db.find_instance(chain_ids, current.year, current.month)
        closed_out = (live is not None and live.status != ExpenseStatus.RECURENT.value) or (
            instance is not None and not instance.is_open
        )
        if closed_out:
            return add_months(current, 1)
        return current

    def revise_versioned(
        self,
        template_id: int,
        tenant_id: str,
        user_id: str,
        new_fields: dict[str, Any],
        start_date: date,
        today: Optional[date] = None,
    ) -> RecurringTemplate:
        """Create a new version of a template, starting at start_date.

        In one transaction the new version is inserted, the old one is
        superseded, open instances move to the new version, and the chain's
        ledger rows from the start month on are handed over: reconciled or
        skipped rows are re-linked, unreconciled ``recurent`` rows (which
        carry the old amount) are soft-deleted. Generating the new version's
        obligations is left to the caller.

        Args:
            template_id: Current version of the chain
            tenant_id: Owning tenant
            user_id: Acting user, recorded as the new version's creator
            new_fields: Fields to change (monetary or editable)
            start_date: Any day of the first month the new version covers
            today: Current date (defaults to date.today())

        Returns:
            The new template version

        Raises:
            InvalidStateError: If the template is superseded or inactive, or
                the start month is before the earliest editable month
            ValidationError: If new_fields is invalid
        """
        old = self.get_template(template_id, tenant_id)
        if old.is_superseded:
            raise InvalidStateError(
                f"Template {template_id} has already been superseded by a newer version"
            )
        if not old.is_active:
            raise InvalidStateError(f"Template {template_id} is inactive; reactivate it first")

        unknown = sorted(set(new_fields) - MONETARY_FIELDS - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown template fields: {', '.join(unknown)}")
        if "amount" in new_fields and (
            new_fields["amount"] is None or Decimal(new_fields["amount"]) <= 0
        ):
            raise ValidationError(f"Amount must be positive, got {new_fields['amount']}")
        if "day_of_month" in new_fields:
            self._validate_day_of_month(new_fields["day_of_month"])
        self._check_categories(
            tenant_id, new_fields.get("category_id"), new_fields.get("subcategory_id")
        )

        start = first_of_month(start_date)
        earliest = self.earliest_editable_month(template_id, tenant_id, today=today)
        if start < earliest:
            raise InvalidStateError(start_before_editable(period_of(start), period_of(earliest)))

        values = {
            f.name: getattr(old, f.name)
            for f in dataclass_fields(old)
            if f.name in _COPIED_FIELDS
        }
        values.update(new_fields)
        values["tags"] = list(values.get("tags") or ())
        values.update(
            version=old.version + 1,
            superseded_template_id=old.id,
            chain_root_id=old.chain_root_id,
            is_active=True,
            start_date=start,
            created_by=user_id,
        )

        chain_ids = self._chain_ids(old)
        start_period = period_of(start)
        with self.db.transaction():
            new_id = self.db.create_template(**values)
            self.db.update_template(old.id, is_active=False, superseded_at=_now())
            migrated = self.migrate_open_instances(old.id, new_id)

            stale = []
            for row in self.db.list_expenses(tenant_id, template_ids=chain_ids):
                if row.accounting_period is None or row.accounting_period < start_period:
                    continue
                if row.status == ExpenseStatus.RECURENT.value:
                    stale.append(row.id)
                else:
                    self.db.update_expense(row.id, template_id=new_id)
            self.db.soft_delete_expenses(stale, _now())

        logger.info(
            "Revised template %s to version %s (id %s) from %s; "
            "%s instances migrated, %s stale obligations removed",
            old.id,
            old.version + 1,
            new_id,
            start_period,
            migrated,
            len(stale),
        )
        return self.get_template(new_id, tenant_id)

    def migrate_open_instances(self, old_template_id: int, new_template_id: int) -> int:
        """Reassign open instances of one version to another.

        Year and month are kept. An instance whose month the target version
        already tracks is left in place.

        Returns:
            Number of instances moved
        """
        old = self.db.get_template(old_template_id)
        new = self.db.get_template(new_template_id)
        if old is None:
            raise NotFoundError(template_not_found(old_template_id))
        if new is None:
            raise NotFoundError(template_not_found(new_template_id))
        if old.chain_root_id != new.chain_root_id:
            raise ValidationError(
                f"Templates {old_template_id} and {new_template_id} are not versions "
                "of the same recurring expense"
            )

        moved = 0
        with self.db.transaction():
            for instance in self.db.list_instances(
                old.tenant_id, template_ids=[old_template_id], status="open"
            ):
                if self.db.find_instance([new_template_id], instance.year, instance.month):
                    logger.debug(
                        "Instance %s not moved; template %s already tracks %s",
                        instance.id,
                        new_template_id,
                        instance.period,
                    )
                    continue
                self.db.update_instance(instance.id, template_id=new_template_id)
                moved += 1
        return moved

    # Generation
    def generate(
        self,
        tenant_id: str,
        target_month: date,
        template_ids: Optional[Iterable[int]] = None,
    ) -> int:
        """Generate ``recurent`` RE-Forms for one month.

        Idempotent: a template that already has a live row for the month
        (including a skip marker) is left alone, and the storage uniqueness
        index settles concurrent callers. Each chain generates from the
        version in force for the month, so months before a revision's start
        keep the superseded amount.

        Args:
            tenant_id: Owning tenant
            target_month: Any day of the month to generate
            template_ids: Optional subset of templates

        Returns:
            Number of rows created
        """
        month = first_of_month(target_month)
        period = period_of(month)
        wanted = set(template_ids) if template_ids is not None else None

        created = 0
        for template in self.db.list_templates(tenant_id, active_only=True):
            if wanted is not None and template.id not in wanted:
                continue
            if template.end_date is not None and first_of_month(template.end_date) < month:
                continue
            chain = self.db.list_chain(template.chain_root_id)
            version = version_in_force(chain, month)
            if version is None:
                continue

            chain_ids = [t.id for t in chain]
            if self.db.get_live_expense(chain_ids, period) is not None:
                logger.debug("Template %s already has a row for %s", template.id, period)
                continue

            expense_id = self.db.insert_recurring_expense(
                **recurring_form_fields(version, month, ExpenseStatus.RECURENT.value)
            )
            if expense_id is not None:
                created += 1

        logger.info("Generated %s recurring forms for tenant %s in %s", created, tenant_id, period)
        return created

    def generate_all(self, target_month: date) -> dict[str, int]:
        """Run generate for every tenant that has active templates."""
        return {
            tenant_id: self.generate(tenant_id, target_month)
            for tenant_id in self.db.list_tenants_with_active_templates()
        }

    def catch_up(self, tenant_id: str, through_month: date) -> int:
        """Generate every month from the earliest active start through through_month."""
        templates = self.db.list_templates(tenant_id, active_only=True)
        if not templates:
            return 0
        earliest = min(
            version.start_date
            for t in templates
            for version in self.db.list_chain(t.chain_root_id)
        )
        return sum(
            self.generate(tenant_id, month) for month in iter_months(earliest, through_month)
        )

    # Skipping
    def skip_month(self, template_id: int, tenant_id: str, year: int, month: int) -> None:
        """Exclude one month from generation.

        An existing ``recurent`` row becomes the skip marker. Open instances
        for the month are left alone.

        Raises:
            InvalidStateError: If the month is already reconciled
            ValidationError: If the month is invalid or before the template start
        """
        template = self.get_template(template_id, tenant_id)
        period = self._period(year, month)
        if date(year, month, 1) < template.start_date:
            raise ValidationError(
                f"Month {period} is before template {template_id} starts "
                f"({period_of(template.start_date)})"
            )

        live = self.db.get_live_expense(self._chain_ids(template), period)
        if live is not None:
            if live.is_reconciled:
                raise InvalidStateError(month_already_reconciled(template_id, period))
            if live.status == ExpenseStatus.SKIPPED.value:
                logger.debug("Template %s already skips %s", template_id, period)
                return
            self.db.update_expense(live.id, status=ExpenseStatus.SKIPPED.value)
        else:
            self.db.insert_recurring_expense(
                **recurring_form_fields(template, date(year, month, 1), ExpenseStatus.SKIPPED.value)
            )
        logger.info("Skipped %s for template %s", period, template_id)

    def unskip_month(self, template_id: int, tenant_id: str, year: int, month: int) -> None:
        """Remove a skip marker so the month can be generated again."""
        template = self.get_template(template_id, tenant_id)
        period = self._period(year, month)
        live = self.db.get_live_expense(self._chain_ids(template), period)
        if live is None or live.status != ExpenseStatus.SKIPPED.value:
            logger.debug("Template %s has no skip marker for %s", template_id, period)
            return
        self.db.soft_delete_expenses([live.id], _now())
        logger.info("Unskipped %s for template %s", period, template_id)

    # Lifecycle
    def deactivate(self, template_id: int, tenant_id: str, user: CurrentUser) -> None:
        """Stop future generation. Existing rows and open instances are kept."""
        template = self._current_version(template_id, tenant_id)
        self._check_permission(template, user, "deactivate")
        if not template.is_active:
            return
        self.db.update_template(template.id, is_active=False)
        logger.info("Deactivated template %s by %s", template.id, user.id)

    def reactivate(self, template_id: int, tenant_id: str, user: CurrentUser) -> None:
        template = self._current_version(template_id, tenant_id)
        self._check_permission(template, user, "reactivate")
        if template.is_active:
            return
        self.db.update_template(template.id, is_active=True)
        logger.info("Reactivated template %s by %s", template.id, user.id)

    def delete(self, template_id: int, tenant_id: str, user: CurrentUser) -> int:
        """Permanently delete a template's whole version chain.

        Generated ledger rows and instances go with it.

        Returns:
            Number of ledger rows removed
        """
        template = self.get_template(template_id, tenant_id)
        self._check_permission(template, user, "delete")
        chain_ids = self._chain_ids(template)
        with self.db.transaction():
            self.db.delete_instances_for_templates(chain_ids)
            removed = self.db.delete_expenses_for_templates(chain_ids)
            self.db.delete_templates(chain_ids)
        logger.info(
            "Deleted template chain %s (%s versions, %s ledger rows) by %s",
            template.chain_root_id,
            len(chain_ids),
            removed,
            user.id,
        )
        return removed

    # Queries
    def template_months(self, template_id: int, tenant_id: str, year: int) -> dict[int, Optional[str]]:
        """Return month -> ledger status for the chain's live rows in a year."""
        template = self.get_template(template_id, tenant_id)
        months: dict[int, Optional[str]] = {m: None for m in range(1, 13)}
        for row in self.db.list_expenses(tenant_id, template_ids=self._chain_ids(template)):
            if not row.accounting_period:
                continue
            row_year, row_month = parse_period(row.accounting_period)
            if row_year == year:
                months[row_month] = row.status
        return months

    def find_matching_template(
        self,
        tenant_id: str,
        supplier: Optional[str] = None,
        subcategory_id: Optional[int] = None,
    ) -> Optional[RecurringTemplate]:
        """Suggest an active template resembling a one-off expense."""
        if not supplier and subcategory_id is None:
            return None
        needle = supplier.strip().lower() if supplier else None
        for template in self.db.list_templates(tenant_id, active_only=True):
            if needle and needle not in template.supplier.lower():
                continue
            if subcategory_id is not None and template.subcategory_id != subcategory_id:
                continue
            return template
        return None

    # Helpers
    def _current_version(self, template_id: int, tenant_id: str) -> RecurringTemplate:
        template = self.get_template(template_id, tenant_id)
        if template.is_superseded:
            head = self.db.get_chain_head(template.chain_root_id)
            if head is not None:
                return head
        return template

    def _check_permission(
        self, template: RecurringTemplate, user: CurrentUser, action: str
    ) -> None:
        if user.is_tenant_admin(template.tenant_id):
            return
        chain = self.db.list_chain(template.chain_root_id)
        creator = chain[0].created_by if chain else template.created_by
        if user.id != creator:
            raise PermissionDeniedError(not_allowed(user.id, action, template.id))

    def _check_categories(
        self, tenant_id: str, category_id: Optional[int], subcategory_id: Optional[int]
    ) -> None:
        for cid in (category_id, subcategory_id):
            if cid is None:
                continue
            category = self.db.get_category(cid)
            if category is None or category.tenant_id != tenant_id:
                raise NotFoundError(category_not_found(cid))

    @staticmethod
    def _period(year: int, month: int) -> str:
        try:
            return format_period(year, month)
        except ValueError as e:
            raise ValidationError(str(e))

    @staticmethod
    def _validate_day_of_month(day_of_month: int) -> None:
        if not 1 <= int(day_of_month) <= 31:
            raise ValidationError(f"Day of month must be between 1 and 31, got {day_of_month}")
