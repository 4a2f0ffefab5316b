"""Recurring instance (obligation) commands."""

from datetime import date

import click

from pnlkit.cli.category_resolution import resolve_category_or_exit
from pnlkit.cli.error_handling import handle_domain_error
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import ConvertResult, ExpenseData, RecurringInstance
from pnlkit.domain.errors import DomainError
from pnlkit.domain.instances import RecurringInstanceService
from pnlkit.utils.amount_parser import parse_amount
from pnlkit.utils.date_parser import parse_date, parse_month
from pnlkit.utils.period import period_of


def _service(ctx) -> RecurringInstanceService:
    return RecurringInstanceService(
        ctx.obj["db"], tolerance_percent=ctx.obj["settings"].amount_tolerance_percent
    )


def _print_instances(instances: list[RecurringInstance]) -> None:
    click.echo(f"\n{'ID':<6} {'Tmpl':<6} {'Period':<8} {'Status':<8} {'Expected':>12}  Supplier")
    click.echo("-" * 64)
    for i in instances:
        click.echo(
            f"{i.id:<6} {i.template_id:<6} {i.period:<8} {i.status:<8} "
            f"{i.expected_amount:>12.2f}  {i.expected_supplier or ''}"
        )


def _print_result(result: ConvertResult) -> None:
    expense = result.final_expense
    click.echo(
        f"Reconciled as expense {expense.id} ({expense.status}); "
        f"expected {result.expected_amount:.2f}, actual {result.actual_amount:.2f}, "
        f"difference {result.diff_percent:.1f}%"
    )
    if result.suggest_new_template:
        click.echo(
            "The amount changed noticeably; consider 'pnlkit recurring revise' "
            "to update the template."
        )


@click.group()
def instance_group():
    """Track and reconcile monthly obligations."""
    pass


@instance_group.command("generate")
@click.option("--month", default="this month", help="Month to open obligations for")
@click.pass_context
def generate(ctx, month: str) -> None:
    """Open obligations for every active template. Safe to run repeatedly."""
    try:
        target = parse_month(month)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    created = _service(ctx).generate_instances(ctx.obj["tenant"], target)
    click.echo(f"Opened {created} obligations for {period_of(target)}")


@instance_group.command("list")
@click.argument("template_id", type=int)
@click.option("--year", type=int, help="Only this year")
@click.pass_context
def list_instances(ctx, template_id: int, year: int | None) -> None:
    """List obligations of a template across all its versions."""
    try:
        instances = _service(ctx).list_instances(template_id, ctx.obj["tenant"], year=year)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    if not instances:
        click.echo("No obligations found.")
        return
    _print_instances(instances)


@instance_group.command("open")
@click.option("--overdue", is_flag=True, help="Only months before the current one")
@click.pass_context
def open_instances(ctx, overdue: bool) -> None:
    """List obligations still waiting for an invoice."""
    today = date.today()
    before = (today.year, today.month) if overdue else None
    instances = _service(ctx).open_instances(ctx.obj["tenant"], before=before)
    if not instances:
        click.echo("No open obligations.")
        return
    _print_instances(instances)


@instance_group.command("convert")
@click.argument("instance_id", type=int)
@click.option("--amount", help="Actual flat amount")
@click.option("--amount-with-vat", help="Actual gross amount")
@click.option("--amount-without-vat", help="Actual net amount")
@click.option("--vat-rate", help="VAT rate in percent")
@click.option("--vat-deductible", is_flag=True, help="VAT is deductible; the net amount counts")
@click.option("--date", "date_str", help="Invoice date (default: the obligation's date)")
@click.option("--document", "document_number", help="Invoice number")
@click.option("--supplier", help="Supplier, if different")
@click.option("--description", help="Description")
@click.option("--category", help="Category ID or label, if different")
@click.option("--subcategory", help="Subcategory ID or label, if different")
@click.option("--confirm", "confirmed", is_flag=True, help="Accept a large amount difference")
@click.pass_context
def convert(
    ctx,
    instance_id: int,
    amount: str | None,
    amount_with_vat: str | None,
    amount_without_vat: str | None,
    vat_rate: str | None,
    vat_deductible: bool,
    date_str: str | None,
    document_number: str | None,
    supplier: str | None,
    description: str | None,
    category: str | None,
    subcategory: str | None,
    confirmed: bool,
) -> None:
    """Reconcile an obligation against a real invoice.

    When the actual amount differs from the expected one by more than the
    tolerance, you are asked to confirm.

    Examples:
        pnlkit instance convert 7 --amount 1095 --document F-2031
        pnlkit instance convert 7 --amount 1150 --confirm
    """
    tenant = ctx.obj["tenant"]
    category_service = CategoryService(ctx.obj["db"])
    try:
        actual = ExpenseData(
            amount=parse_amount(amount) if amount else None,
            amount_with_vat=parse_amount(amount_with_vat) if amount_with_vat else None,
            amount_without_vat=parse_amount(amount_without_vat) if amount_without_vat else None,
            vat_rate=parse_amount(vat_rate) if vat_rate else None,
            vat_deductible=vat_deductible,
            expense_date=parse_date(date_str) if date_str else None,
            supplier=supplier,
            description=description,
            document_number=document_number,
            category_id=resolve_category_or_exit(ctx, category_service, tenant, category),
            subcategory_id=resolve_category_or_exit(ctx, category_service, tenant, subcategory),
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    service = _service(ctx)
    user_id = ctx.obj["user"].id
    try:
        result = service.convert(instance_id, tenant, user_id, actual, confirm=confirmed)
        if result.requires_confirmation:
            click.echo(
                f"Expected {result.expected_amount:.2f} but got {result.actual_amount:.2f} "
                f"({result.diff_percent:.1f}% difference)."
            )
            if not click.confirm("Reconcile anyway?"):
                click.echo("Conversion cancelled.")
                return
            result = service.convert(instance_id, tenant, user_id, actual, confirm=True)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    _print_result(result)


@instance_group.command("reopen")
@click.argument("instance_id", type=int)
@click.pass_context
def reopen(ctx, instance_id: int) -> None:
    """Reopen a closed obligation."""
    try:
        _service(ctx).reopen_instance(instance_id, ctx.obj["tenant"])
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Reopened obligation {instance_id}")


def register_commands(cli: click.Group) -> None:
    """Register instance commands with main CLI."""
    cli.add_command(instance_group, name="instance")
