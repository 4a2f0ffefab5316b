"""Recurring template commands."""

from datetime import date

import click

from pnlkit.cli.category_resolution import resolve_category_or_exit
from pnlkit.cli.error_handling import handle_domain_error
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import RecurringTemplate
from pnlkit.domain.errors import DomainError
from pnlkit.domain.recurring import RecurringTemplateService
from pnlkit.utils.amount_parser import parse_amount, parse_positive_amount
from pnlkit.utils.date_parser import parse_date, parse_month
from pnlkit.utils.period import first_of_month, period_of

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _parse_month_or_exit(ctx, value: str) -> date:
    try:
        return parse_month(value)
    except ValueError as e:
        handle_domain_error(ctx, e)


def _print_template(t: RecurringTemplate) -> None:
    state = "active" if t.is_active else "inactive"
    if t.is_superseded:
        state = f"superseded {t.superseded_at:%Y-%m-%d}"
    click.echo(f"Template {t.id} (version {t.version}, {state})")
    click.echo(f"  Supplier:     {t.supplier}")
    click.echo(f"  Amount:       {t.amount:.2f} {t.currency}")
    if t.amount_with_vat is not None or t.amount_without_vat is not None:
        gross = f"{t.amount_with_vat:.2f}" if t.amount_with_vat is not None else "-"
        net = f"{t.amount_without_vat:.2f}" if t.amount_without_vat is not None else "-"
        click.echo(f"  With VAT:     {gross}   Without VAT: {net}")
    click.echo(f"  VAT deduct.:  {'yes' if t.vat_deductible else 'no'}")
    click.echo(f"  Starts:       {period_of(t.start_date)} (day {t.day_of_month})")
    if t.end_date:
        click.echo(f"  Ends:         {t.end_date.isoformat()}")
    if t.description:
        click.echo(f"  Description:  {t.description}")
    if t.tags:
        click.echo(f"  Tags:         {', '.join(t.tags)}")


def _parse_amounts(ctx, amount, amount_with_vat, amount_without_vat, vat_rate) -> dict:
    values = {}
    try:
        if amount is not None:
            values["amount"] = parse_positive_amount(amount)
        if amount_with_vat is not None:
            values["amount_with_vat"] = parse_amount(amount_with_vat)
        if amount_without_vat is not None:
            values["amount_without_vat"] = parse_amount(amount_without_vat)
        if vat_rate is not None:
            values["vat_rate"] = parse_amount(vat_rate)
    except ValueError as e:
        handle_domain_error(ctx, e)
    return values


def _generate_current(ctx, service: RecurringTemplateService, template: RecurringTemplate) -> None:
    """Create the current month's obligation right away, as saving a template does."""
    today = date.today()
    if template.start_date <= first_of_month(today):
        created = service.generate(ctx.obj["tenant"], today, template_ids=[template.id])
        if created:
            click.echo(f"Generated obligation for {period_of(today)}")


@click.group()
def recurring_group():
    """Manage recurring expense templates."""
    pass


@recurring_group.command("create")
@click.option("--supplier", required=True, help="Supplier name")
@click.option("--amount", required=True, help="Monthly amount")
@click.option("--start", default="this month", help="First month (YYYY-MM, 'this month', 'next month')")
@click.option("--day", "day_of_month", type=int, default=1, help="Day of month for the expense date")
@click.option("--end", "end_date", help="Last date to generate for")
@click.option("--category", help="Category ID or label")
@click.option("--subcategory", help="Subcategory ID or label")
@click.option("--vat-deductible", is_flag=True, help="VAT is deductible; the net amount counts")
@click.option("--amount-with-vat", help="Gross amount")
@click.option("--amount-without-vat", help="Net amount")
@click.option("--vat-rate", help="VAT rate in percent")
@click.option("--description", help="Description")
@click.option("--supplier-cui", help="Supplier tax ID")
@click.option("--doc-type", help="Expected document type (e.g., invoice)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def create_template(
    ctx,
    supplier: str,
    amount: str,
    start: str,
    day_of_month: int,
    end_date: str | None,
    category: str | None,
    subcategory: str | None,
    vat_deductible: bool,
    amount_with_vat: str | None,
    amount_without_vat: str | None,
    vat_rate: str | None,
    description: str | None,
    supplier_cui: str | None,
    doc_type: str | None,
    tags: tuple[str, ...],
) -> None:
    """Create a recurring expense template.

    Examples:
        pnlkit recurring create --supplier "Landlord SRL" --amount 4500 --subcategory "2.1 Rent"
        pnlkit recurring create --supplier Hosting --amount 119 --amount-without-vat 100 --vat-deductible
    """
    db = ctx.obj["db"]
    tenant = ctx.obj["tenant"]
    service = RecurringTemplateService(db)
    category_service = CategoryService(db)

    start_month = _parse_month_or_exit(ctx, start)
    amounts = _parse_amounts(ctx, amount, amount_with_vat, amount_without_vat, vat_rate)
    end = None
    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            handle_domain_error(ctx, e)
    category_id = resolve_category_or_exit(ctx, category_service, tenant, category)
    subcategory_id = resolve_category_or_exit(ctx, category_service, tenant, subcategory)

    try:
        template_id = service.create_template(
            tenant,
            ctx.obj["user"].id,
            supplier=supplier,
            start_date=start_month,
            currency=ctx.obj["settings"].default_currency,
            vat_deductible=vat_deductible,
            supplier_cui=supplier_cui,
            description=description,
            tags=tags,
            category_id=category_id,
            subcategory_id=subcategory_id,
            doc_type=doc_type,
            day_of_month=day_of_month,
            end_date=end,
            **amounts,
        )
        template = service.get_template(template_id, tenant)
        click.echo(f"Created recurring template {template_id} starting {period_of(template.start_date)}")
        _generate_current(ctx, service, template)
    except DomainError as e:
        handle_domain_error(ctx, e)


@recurring_group.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include inactive templates")
@click.option("--history", is_flag=True, help="Include superseded versions")
@click.pass_context
def list_templates(ctx, show_all: bool, history: bool) -> None:
    """List recurring templates."""
    templates = RecurringTemplateService(ctx.obj["db"]).list_templates(
        ctx.obj["tenant"], active_only=not (show_all or history), include_superseded=history
    )
    if not templates:
        click.echo("No recurring templates found.")
        return

    click.echo(f"\n{'ID':<6} {'Ver':<4} {'Start':<8} {'Amount':>12} {'State':<10} Supplier")
    click.echo("-" * 64)
    for t in templates:
        state = "superseded" if t.is_superseded else ("active" if t.is_active else "inactive")
        click.echo(
            f"{t.id:<6} {t.version:<4} {period_of(t.start_date):<8} {t.amount:>12.2f} "
            f"{state:<10} {t.supplier}"
        )


@recurring_group.command("show")
@click.argument("template_id", type=int)
@click.option("--year", type=int, help="Year of the month grid (default: current year)")
@click.pass_context
def show_template(ctx, template_id: int, year: int | None) -> None:
    """Show a template and the status of each month."""
    service = RecurringTemplateService(ctx.obj["db"])
    tenant = ctx.obj["tenant"]
    year = year or date.today().year
    try:
        template = service.get_template(template_id, tenant)
        months = service.template_months(template_id, tenant, year)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    _print_template(template)
    click.echo(f"\nMonths in {year}:")
    for month, status in months.items():
        click.echo(f"  {MONTH_NAMES[month - 1]}: {status or '-'}")


@recurring_group.command("edit")
@click.argument("template_id", type=int)
@click.option("--supplier", help="Supplier name")
@click.option("--description", help="Description")
@click.option("--category", help="Category ID or label")
@click.option("--subcategory", help="Subcategory ID or label")
@click.option("--day", "day_of_month", type=int, help="Day of month for the expense date")
@click.option("--end", "end_date", help="Last date to generate for")
@click.option("--doc-type", help="Expected document type")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable)")
@click.pass_context
def edit_template(
    ctx,
    template_id: int,
    supplier: str | None,
    description: str | None,
    category: str | None,
    subcategory: str | None,
    day_of_month: int | None,
    end_date: str | None,
    doc_type: str | None,
    tags: tuple[str, ...],
) -> None:
    """Edit non-monetary fields in place. Use 'revise' to change amounts."""
    db = ctx.obj["db"]
    tenant = ctx.obj["tenant"]
    category_service = CategoryService(db)

    changes = {}
    if supplier is not None:
        changes["supplier"] = supplier
    if description is not None:
        changes["description"] = description
    if category is not None:
        changes["category_id"] = resolve_category_or_exit(ctx, category_service, tenant, category)
    if subcategory is not None:
        changes["subcategory_id"] = resolve_category_or_exit(
            ctx, category_service, tenant, subcategory
        )
    if day_of_month is not None:
        changes["day_of_month"] = day_of_month
    if end_date is not None:
        try:
            changes["end_date"] = parse_date(end_date) if end_date else None
        except ValueError as e:
            handle_domain_error(ctx, e)
    if doc_type is not None:
        changes["doc_type"] = doc_type
    if tags:
        changes["tags"] = tags

    if not changes:
        click.echo("Nothing to change.")
        return

    try:
        RecurringTemplateService(db).update_template(template_id, tenant, **changes)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Updated template {template_id}")


@recurring_group.command("revise")
@click.argument("template_id", type=int)
@click.option("--amount", help="New monthly amount")
@click.option("--amount-with-vat", help="New gross amount")
@click.option("--amount-without-vat", help="New net amount")
@click.option("--vat-rate", help="New VAT rate in percent")
@click.option("--vat-deductible/--no-vat-deductible", default=None, help="Change VAT deductibility")
@click.option("--start", help="First month of the new version (default: earliest editable month)")
@click.pass_context
def revise_template(
    ctx,
    template_id: int,
    amount: str | None,
    amount_with_vat: str | None,
    amount_without_vat: str | None,
    vat_rate: str | None,
    vat_deductible: bool | None,
    start: str | None,
) -> None:
    """Create a new version of a template with different amounts.

    Months before the new version's start keep the old amounts.

    Examples:
        pnlkit recurring revise 3 --amount 4800 --start "next month"
    """
    service = RecurringTemplateService(ctx.obj["db"])
    tenant = ctx.obj["tenant"]

    new_fields = _parse_amounts(ctx, amount, amount_with_vat, amount_without_vat, vat_rate)
    if vat_deductible is not None:
        new_fields["vat_deductible"] = vat_deductible
    if not new_fields:
        click.echo("Error: Nothing to revise; pass at least one amount option.", err=True)
        ctx.exit(1)

    try:
        if start is None:
            start_month = service.earliest_editable_month(template_id, tenant)
        else:
            start_month = _parse_month_or_exit(ctx, start)
        new = service.revise_versioned(
            template_id, tenant, ctx.obj["user"].id, new_fields, start_month
        )
        click.echo(
            f"Created version {new.version} (template {new.id}) starting {period_of(new.start_date)}"
        )
        _generate_current(ctx, service, new)
    except DomainError as e:
        handle_domain_error(ctx, e)


@recurring_group.command("history")
@click.argument("template_id", type=int)
@click.pass_context
def template_history(ctx, template_id: int) -> None:
    """Show every version of a template."""
    try:
        versions = RecurringTemplateService(ctx.obj["db"]).version_history(
            template_id, ctx.obj["tenant"]
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    for t in versions:
        _print_template(t)
        click.echo("")


@recurring_group.command("generate")
@click.option("--month", default="this month", help="Month to generate (default: this month)")
@click.option("--all", "all_tenants", is_flag=True, help="Generate for every tenant")
@click.option("--catch-up", is_flag=True, help="Also fill every missed month since the earliest start")
@click.pass_context
def generate(ctx, month: str, all_tenants: bool, catch_up: bool) -> None:
    """Generate monthly obligations. Safe to run repeatedly."""
    service = RecurringTemplateService(ctx.obj["db"])
    target = _parse_month_or_exit(ctx, month)

    if all_tenants:
        results = service.generate_all(target)
        for tenant_id, created in results.items():
            click.echo(f"{tenant_id}: {created} created")
        click.echo(f"Generated {sum(results.values())} obligations for {period_of(target)}")
        return

    tenant = ctx.obj["tenant"]
    if catch_up:
        created = service.catch_up(tenant, target)
        click.echo(f"Generated {created} obligations through {period_of(target)}")
    else:
        created = service.generate(tenant, target)
        click.echo(f"Generated {created} obligations for {period_of(target)}")


@recurring_group.command("skip")
@click.argument("template_id", type=int)
@click.argument("month")
@click.pass_context
def skip_month(ctx, template_id: int, month: str) -> None:
    """Exclude one month (YYYY-MM) from generation."""
    target = _parse_month_or_exit(ctx, month)
    try:
        RecurringTemplateService(ctx.obj["db"]).skip_month(
            template_id, ctx.obj["tenant"], target.year, target.month
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Skipped {period_of(target)} for template {template_id}")


@recurring_group.command("unskip")
@click.argument("template_id", type=int)
@click.argument("month")
@click.pass_context
def unskip_month(ctx, template_id: int, month: str) -> None:
    """Make a skipped month (YYYY-MM) eligible for generation again."""
    target = _parse_month_or_exit(ctx, month)
    try:
        RecurringTemplateService(ctx.obj["db"]).unskip_month(
            template_id, ctx.obj["tenant"], target.year, target.month
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Unskipped {period_of(target)} for template {template_id}")


@recurring_group.command("deactivate")
@click.argument("template_id", type=int)
@click.pass_context
def deactivate(ctx, template_id: int) -> None:
    """Stop generating a template. Existing expenses are kept."""
    try:
        RecurringTemplateService(ctx.obj["db"]).deactivate(
            template_id, ctx.obj["tenant"], ctx.obj["user"]
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deactivated template {template_id}")


@recurring_group.command("reactivate")
@click.argument("template_id", type=int)
@click.pass_context
def reactivate(ctx, template_id: int) -> None:
    """Resume generating a deactivated template."""
    try:
        RecurringTemplateService(ctx.obj["db"]).reactivate(
            template_id, ctx.obj["tenant"], ctx.obj["user"]
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Reactivated template {template_id}")


@recurring_group.command("delete")
@click.argument("template_id", type=int)
@click.option("--yes", "-y", count=True, help="Skip a confirmation (pass twice to skip both)")
@click.pass_context
def delete(ctx, template_id: int, yes: int) -> None:
    """Permanently delete a template, all its versions and generated expenses."""
    service = RecurringTemplateService(ctx.obj["db"])
    tenant = ctx.obj["tenant"]
    try:
        template = service.get_template(template_id, tenant)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    prompts = (
        f"Delete recurring template {template_id} ({template.supplier}) and all its versions?",
        "This also deletes every expense it generated and cannot be undone. Continue?",
    )
    for prompt in prompts[yes:]:
        if not click.confirm(prompt):
            click.echo("Deletion cancelled.")
            return

    try:
        removed = service.delete(template_id, tenant, ctx.obj["user"])
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted template {template_id} and {removed} expenses")


def register_commands(cli: click.Group) -> None:
    """Register recurring commands with main CLI."""
    cli.add_command(recurring_group, name="recurring")
