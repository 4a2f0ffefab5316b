"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so the services never see ORM rows.
"""

from decimal import Decimal

from pnlkit.domain import entities as domain
from pnlkit.database.models import (
    MONTH_COLUMNS,
    Budget as ORMBudget,
    Category as ORMCategory,
    LedgerExpense as ORMLedgerExpense,
    RecurringInstance as ORMRecurringInstance,
    RecurringTemplate as ORMRecurringTemplate,
    Revenue as ORMRevenue,
)


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        tenant_id=orm_category.tenant_id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        sort_order=orm_category.sort_order or 0,
        is_active=bool(orm_category.is_active),
        category_type=orm_category.category_type,
        created_at=orm_category.created_at,
    )


def template_to_domain(orm_template: ORMRecurringTemplate) -> domain.RecurringTemplate:
    """Convert SQLAlchemy RecurringTemplate model to domain entity."""
    return domain.RecurringTemplate(
        id=orm_template.id,
        tenant_id=orm_template.tenant_id,
        version=orm_template.version,
        chain_root_id=orm_template.chain_root_id or orm_template.id,
        superseded_template_id=orm_template.superseded_template_id,
        is_active=bool(orm_template.is_active),
        start_date=orm_template.start_date,
        supplier=orm_template.supplier,
        amount=orm_template.amount,
        currency=orm_template.currency,
        created_by=orm_template.created_by,
        created_at=orm_template.created_at,
        supplier_cui=orm_template.supplier_cui,
        description=orm_template.description,
        tags=tuple(orm_template.tags or ()),
        category_id=orm_template.category_id,
        subcategory_id=orm_template.subcategory_id,
        vat_deductible=bool(orm_template.vat_deductible),
        vat_rate=orm_template.vat_rate,
        amount_with_vat=orm_template.amount_with_vat,
        amount_without_vat=orm_template.amount_without_vat,
        doc_type=orm_template.doc_type,
        day_of_month=orm_template.day_of_month or 1,
        end_date=orm_template.end_date,
        superseded_at=orm_template.superseded_at,
    )


def expense_to_domain(orm_expense: ORMLedgerExpense) -> domain.LedgerExpense:
    """Convert SQLAlchemy LedgerExpense model to domain entity."""
    return domain.LedgerExpense(
        id=orm_expense.id,
        tenant_id=orm_expense.tenant_id,
        template_id=orm_expense.template_id,
        accounting_period=orm_expense.accounting_period,
        expense_date=orm_expense.expense_date,
        amount=orm_expense.amount,
        vat_deductible=bool(orm_expense.vat_deductible),
        supplier=orm_expense.supplier,
        status=orm_expense.status,
        currency=orm_expense.currency,
        created_at=orm_expense.created_at,
        amount_without_vat=orm_expense.amount_without_vat,
        amount_with_vat=orm_expense.amount_with_vat,
        vat_rate=orm_expense.vat_rate,
        description=orm_expense.description,
        document_number=orm_expense.document_number,
        category_id=orm_expense.category_id,
        subcategory_id=orm_expense.subcategory_id,
        recurring_instance_id=orm_expense.recurring_instance_id,
        created_by=orm_expense.created_by,
        deleted_at=orm_expense.deleted_at,
    )


def instance_to_domain(orm_instance: ORMRecurringInstance) -> domain.RecurringInstance:
    """Convert SQLAlchemy RecurringInstance model to domain entity."""
    return domain.RecurringInstance(
        id=orm_instance.id,
        tenant_id=orm_instance.tenant_id,
        template_id=orm_instance.template_id,
        year=orm_instance.year,
        month=orm_instance.month,
        status=orm_instance.status,
        expected_amount=orm_instance.expected_amount,
        expected_vat_deductible=bool(orm_instance.expected_vat_deductible),
        expected_currency=orm_instance.expected_currency,
        created_at=orm_instance.created_at,
        expected_amount_without_vat=orm_instance.expected_amount_without_vat,
        expected_amount_with_vat=orm_instance.expected_amount_with_vat,
        expected_vat_rate=orm_instance.expected_vat_rate,
        expected_category_id=orm_instance.expected_category_id,
        expected_subcategory_id=orm_instance.expected_subcategory_id,
        expected_supplier=orm_instance.expected_supplier,
        expected_description=orm_instance.expected_description,
        final_expense_id=orm_instance.final_expense_id,
        closed_at=orm_instance.closed_at,
        closed_by=orm_instance.closed_by,
        amount_difference_percent=orm_instance.amount_difference_percent,
    )


def revenue_to_domain(orm_revenue: ORMRevenue) -> domain.Revenue:
    """Convert SQLAlchemy Revenue model to domain entity."""
    return domain.Revenue(
        id=orm_revenue.id,
        tenant_id=orm_revenue.tenant_id,
        year=orm_revenue.year,
        month=orm_revenue.month,
        amount=orm_revenue.amount,
        source=orm_revenue.source,
        currency=orm_revenue.currency,
        description=orm_revenue.description,
        entered_by=orm_revenue.entered_by,
    )


def budget_to_domain(orm_budget: ORMBudget) -> domain.Budget:
    """Convert SQLAlchemy Budget model to domain entity."""
    return domain.Budget(
        id=orm_budget.id,
        tenant_id=orm_budget.tenant_id,
        year=orm_budget.year,
        category_id=orm_budget.category_id,
        subcategory_id=orm_budget.subcategory_id,
        monthly_values=tuple(
            Decimal(getattr(orm_budget, column) or 0) for column in MONTH_COLUMNS
        ),
        notes=orm_budget.notes,
    )
