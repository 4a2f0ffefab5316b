"""Ledger expense commands."""

import click

from pnlkit.cli.category_resolution import resolve_category_or_exit
from pnlkit.cli.error_handling import handle_domain_error
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import ExpenseStatus
from pnlkit.domain.errors import DomainError
from pnlkit.domain.ledger import ExpenseService
from pnlkit.domain.recurring import RecurringTemplateService
from pnlkit.utils.amount_parser import parse_amount, parse_positive_amount
from pnlkit.utils.date_parser import parse_date


@click.group()
def expense_group():
    """Manage ledger expenses."""
    pass


@expense_group.command("add")
@click.option("--date", "date_str", default="today", help="Expense date (YYYY-MM-DD or 'today', 'yesterday')")
@click.option("--amount", required=True, help="Amount (e.g., 123.45 or '1.234,56 RON')")
@click.option("--supplier", help="Supplier name")
@click.option("--description", help="Description")
@click.option("--document", "document_number", help="Invoice or receipt number")
@click.option("--period", help="Accounting period YYYY-MM (P&L uses the expense date when omitted)")
@click.option("--category", help="Category ID or label")
@click.option("--subcategory", help="Subcategory ID or label")
@click.option("--vat-deductible", is_flag=True, help="VAT is deductible; the net amount counts")
@click.option("--amount-with-vat", help="Gross amount")
@click.option("--amount-without-vat", help="Net amount")
@click.option("--vat-rate", help="VAT rate in percent")
@click.option(
    "--status",
    type=click.Choice(
        [
            ExpenseStatus.DRAFT.value,
            ExpenseStatus.PENDING.value,
            ExpenseStatus.APPROVED.value,
            ExpenseStatus.FINAL.value,
            ExpenseStatus.PAID.value,
        ]
    ),
    default=ExpenseStatus.DRAFT.value,
    help="Initial status (default: draft)",
)
@click.pass_context
def add_expense(
    ctx,
    date_str: str,
    amount: str,
    supplier: str | None,
    description: str | None,
    document_number: str | None,
    period: str | None,
    category: str | None,
    subcategory: str | None,
    vat_deductible: bool,
    amount_with_vat: str | None,
    amount_without_vat: str | None,
    vat_rate: str | None,
    status: str,
) -> None:
    """Record a one-off expense.

    Examples:
        pnlkit expense add --amount 250 --supplier "Office Depot" --subcategory "1.3 Supplies"
        pnlkit expense add --date 2025-03-02 --period 2025-02 --amount "1.190,00"
    """
    db = ctx.obj["db"]
    tenant = ctx.obj["tenant"]
    category_service = CategoryService(db)

    try:
        expense_date = parse_date(date_str)
        parsed_amount = parse_positive_amount(amount)
        gross = parse_amount(amount_with_vat) if amount_with_vat else None
        net = parse_amount(amount_without_vat) if amount_without_vat else None
        rate = parse_amount(vat_rate) if vat_rate else None
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    category_id = resolve_category_or_exit(ctx, category_service, tenant, category)
    subcategory_id = resolve_category_or_exit(ctx, category_service, tenant, subcategory)

    try:
        expense_id = ExpenseService(db).create_expense(
            tenant,
            expense_date=expense_date,
            amount=parsed_amount,
            supplier=supplier,
            description=description,
            document_number=document_number,
            accounting_period=period,
            category_id=category_id,
            subcategory_id=subcategory_id,
            vat_deductible=vat_deductible,
            vat_rate=rate,
            amount_with_vat=gross,
            amount_without_vat=net,
            currency=ctx.obj["settings"].default_currency,
            status=status,
            created_by=ctx.obj["user"].id,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Created expense {expense_id}")

    match = RecurringTemplateService(db).find_matching_template(
        tenant, supplier=supplier, subcategory_id=subcategory_id
    )
    if match is not None:
        click.echo(
            f"Note: this looks like recurring template {match.id} ({match.supplier}); "
            f"use 'pnlkit instance convert' to reconcile obligations instead."
        )


@expense_group.command("list")
@click.option("--status", type=click.Choice([s.value for s in ExpenseStatus]), help="Only this status")
@click.option("--period", help="Only this accounting period (YYYY-MM)")
@click.option("--template", "template_id", type=int, help="Only rows of this recurring template")
@click.option("--include-deleted", is_flag=True, help="Include deleted expenses")
@click.pass_context
def list_expenses(
    ctx, status: str | None, period: str | None, template_id: int | None, include_deleted: bool
) -> None:
    """List ledger expenses."""
    expenses = ExpenseService(ctx.obj["db"]).list_expenses(
        ctx.obj["tenant"],
        status=status,
        period=period,
        template_id=template_id,
        include_deleted=include_deleted,
    )
    if not expenses:
        click.echo("No expenses found.")
        return

    click.echo(f"\n{'ID':<6} {'Date':<12} {'Period':<8} {'Status':<10} {'Amount':>12}  Supplier")
    click.echo("-" * 72)
    for e in expenses:
        deleted = " (deleted)" if e.is_deleted else ""
        click.echo(
            f"{e.id:<6} {e.expense_date.isoformat():<12} {e.accounting_period or '':<8} "
            f"{e.status:<10} {e.amount:>12.2f}  {e.supplier or ''}{deleted}"
        )


@expense_group.command("status")
@click.argument("expense_id", type=int)
@click.argument(
    "new_status",
    type=click.Choice(
        [
            ExpenseStatus.DRAFT.value,
            ExpenseStatus.PENDING.value,
            ExpenseStatus.APPROVED.value,
            ExpenseStatus.PAID.value,
            ExpenseStatus.REJECTED.value,
        ]
    ),
)
@click.pass_context
def set_status(ctx, expense_id: int, new_status: str) -> None:
    """Move an expense along the approval workflow."""
    try:
        ExpenseService(ctx.obj["db"]).set_status(expense_id, ctx.obj["tenant"], new_status)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Expense {expense_id} is now {new_status}")


@expense_group.command("delete")
@click.argument("expense_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_expense(ctx, expense_id: int, yes: bool) -> None:
    """Delete an expense.

    Deleting a reconciled recurring expense reopens its obligation.

    Examples:
        pnlkit expense delete 12
    """
    service = ExpenseService(ctx.obj["db"])
    tenant = ctx.obj["tenant"]

    try:
        service.get_expense(expense_id, tenant)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    # Confirm deletion
    if not yes and not click.confirm(f"Are you sure you want to delete expense {expense_id}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        regenerated = service.delete_expense(expense_id, tenant)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted expense {expense_id}")
    if regenerated is not None:
        click.echo(f"Regenerated recurring obligation as expense {regenerated}")


def register_commands(cli: click.Group) -> None:
    """Register expense commands with main CLI."""
    cli.add_command(expense_group, name="expense")
