"""P&L reporting commands."""

from datetime import date
from decimal import Decimal

import click

from pnlkit.cli.category_resolution import resolve_category_or_exit
from pnlkit.cli.error_handling import handle_domain_error
from pnlkit.domain.budget import BudgetService
from pnlkit.domain.cache import AggregateCache
from pnlkit.domain.category import CategoryService
from pnlkit.domain.pnl import PnlService
from pnlkit.utils.amount_parser import parse_amount
from pnlkit.utils.date_parser import parse_month

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _service(ctx) -> PnlService:
    cache = AggregateCache(ttl_seconds=ctx.obj["settings"].cache_ttl_seconds)
    return PnlService(ctx.obj["db"], cache=cache)


def _row(label: str, values, width: int = 28) -> str:
    cells = "".join(f"{v:>11.2f}" for v in values)
    return f"{label[:width]:<{width}}{cells}"


@click.group()
def pnl_group():
    """Profit and loss reports."""
    pass


@pnl_group.command("grid")
@click.option("--year", type=int, help="Base year (default: current year)")
@click.option("--prior", is_flag=True, help="Show the prior year instead of the base year")
@click.option("--budget", "show_budget", is_flag=True, help="Show budget by category instead")
@click.pass_context
def grid(ctx, year: int | None, prior: bool, show_budget: bool) -> None:
    """Show expenses by category and month."""
    year = year or date.today().year
    agg = _service(ctx).aggregate(ctx.obj["tenant"], year)
    window = slice(0, 12) if prior else slice(12, 24)

    shown = year - 1 if prior else year
    click.echo(f"\nP&L {shown}" + (" (budget)" if show_budget else ""))
    click.echo(f"{'':<28}" + "".join(f"{m:>11}" for m in MONTH_NAMES))
    click.echo("-" * (28 + 11 * 12))
    for category in agg.budget_categories if show_budget else agg.categories:
        click.echo(_row(category.label, category.values[window]))
        for sub in category.subcategories:
            click.echo(_row(f"  {sub.label}", sub.values[window]))
    click.echo("-" * (28 + 11 * 12))
    click.echo(_row("Total expenses", agg.expenses_by_month[window]))
    click.echo(_row("Revenue", agg.revenue_by_month[window]))
    click.echo(_row("Budget", agg.budget_by_month[window]))


@pnl_group.command("summary")
@click.option("--year", type=int, help="Year (default: current year)")
@click.pass_context
def summary(ctx, year: int | None) -> None:
    """Show monthly KPIs and year-to-date totals."""
    year = year or date.today().year
    result = _service(ctx).summary(ctx.obj["tenant"], year)

    click.echo(
        f"\n{'Month':<6}{'Revenue':>13}{'Expenses':>13}{'Budget':>13}"
        f"{'Profit':>13}{'Delta':>13}{'Margin':>9}"
    )
    click.echo("-" * 80)
    for m in result.months:
        margin = f"{m.profit_margin * 100:.1f}%" if m.profit_margin is not None else "-"
        click.echo(
            f"{MONTH_NAMES[m.month - 1]:<6}{m.revenue:>13.2f}{m.expenses:>13.2f}"
            f"{m.budget:>13.2f}{m.profit:>13.2f}{m.delta:>13.2f}{margin:>9}"
        )
    click.echo("-" * 80)
    margin = (
        f"{result.ytd_profit_margin * 100:.1f}%" if result.ytd_profit_margin is not None else "-"
    )
    click.echo(
        f"{'YTD':<6}{result.ytd_revenue:>13.2f}{result.ytd_expenses:>13.2f}"
        f"{result.ytd_budget:>13.2f}{result.ytd_profit:>13.2f}{result.ytd_delta:>13.2f}{margin:>9}"
    )
    if result.ytd_through_month:
        click.echo(f"Year to date through {MONTH_NAMES[result.ytd_through_month - 1]} {year}")


@pnl_group.command("drilldown")
@click.argument("label")
@click.argument("month")
@click.pass_context
def drilldown(ctx, label: str, month: str) -> None:
    """List the expenses behind one grid cell.

    Examples:
        pnlkit pnl drilldown "3.1 Hardware" 2025-03
    """
    try:
        target = parse_month(month)
        expenses = _service(ctx).expenses_for_category_month(
            ctx.obj["tenant"], label, target.year, target.month
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if not expenses:
        click.echo("No expenses found.")
        return

    click.echo(f"\n{'ID':<6} {'Date':<12} {'Type':<10} {'Status':<10} {'Amount':>12}  Supplier")
    click.echo("-" * 72)
    for e in expenses:
        click.echo(
            f"{e.id:<6} {e.date.isoformat():<12} {e.type:<10} {e.status:<10} "
            f"{e.amount:>12.2f}  {e.supplier}"
        )
    click.echo(f"Total: {sum((e.amount for e in expenses), Decimal('0')):.2f}")


@pnl_group.command("revenue")
@click.argument("month", required=False)
@click.argument("amount", required=False)
@click.option("--year", type=int, help="Year to list (default: current year)")
@click.pass_context
def revenue(ctx, month: str | None, amount: str | None, year: int | None) -> None:
    """Set the manual revenue of MONTH, or list revenue when no MONTH is given.

    Examples:
        pnlkit pnl revenue 2025-03 48000
        pnlkit pnl revenue --year 2025
    """
    service = _service(ctx)
    tenant = ctx.obj["tenant"]

    if month is None:
        year = year or date.today().year
        rows = service.list_revenues(tenant, year)
        if not rows:
            click.echo(f"No revenue recorded for {year}.")
            return
        for r in rows:
            click.echo(f"{r.year}-{r.month:02d}  {r.source:<10} {r.amount:>14.2f} {r.currency}")
        return

    if amount is None:
        click.echo("Error: AMOUNT is required when MONTH is given", err=True)
        ctx.exit(1)

    try:
        target = parse_month(month)
        value = parse_amount(amount)
        service.upsert_revenue(
            tenant,
            target.year,
            target.month,
            value,
            entered_by=ctx.obj["user"].id,
            currency=ctx.obj["settings"].default_currency,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Revenue for {target.year}-{target.month:02d} set to {value:.2f}")


@pnl_group.command("budget")
@click.argument("year", type=int)
@click.option("--category", help="Category ID or label")
@click.option("--subcategory", help="Subcategory ID or label")
@click.option(
    "--value",
    "values",
    multiple=True,
    help="Monthly value; give once for every month or twelve times",
)
@click.option("--notes", help="Notes")
@click.pass_context
def budget(
    ctx,
    year: int,
    category: str | None,
    subcategory: str | None,
    values: tuple[str, ...],
    notes: str | None,
) -> None:
    """Set a category budget for YEAR, or list budgets when no --value is given."""
    db = ctx.obj["db"]
    tenant = ctx.obj["tenant"]
    service = BudgetService(db)

    if not values:
        budgets = service.list_budgets(tenant, year)
        if not budgets:
            click.echo(f"No budgets for {year}.")
            return
        names = {c.id: c.name for c in CategoryService(db).list_categories(tenant, include_inactive=True)}
        for b in budgets:
            name = names.get(b.subcategory_id) or names.get(b.category_id) or "Uncategorized"
            click.echo(f"{b.id:<6} {name:<30} {b.annual_total:>14.2f}")
        return

    category_service = CategoryService(db)
    category_id = resolve_category_or_exit(ctx, category_service, tenant, category)
    subcategory_id = resolve_category_or_exit(ctx, category_service, tenant, subcategory)
    try:
        parsed = [parse_amount(v) for v in values]
        if len(parsed) == 1:
            parsed = parsed * 12
        budget_id = service.upsert_budget(
            tenant, year, category_id, subcategory_id, parsed, notes=notes
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Saved budget {budget_id} for {year} (total {sum(parsed, Decimal('0')):.2f})")


def register_commands(cli: click.Group) -> None:
    """Register P&L commands with main CLI."""
    cli.add_command(pnl_group, name="pnl")
