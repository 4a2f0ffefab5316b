"""Category management commands."""

import click

from pnlkit.cli.category_resolution import resolve_category_or_exit
from pnlkit.cli.error_handling import handle_domain_error
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import CategoryType
from pnlkit.domain.errors import DomainError


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.option(
    "--type",
    "category_type",
    type=click.Choice([t.value for t in CategoryType], case_sensitive=False),
    default=CategoryType.EXPENSE.value,
    help="Chart to show (default: expense)",
)
@click.pass_context
def list_categories(ctx, category_type: str):
    """List active categories with their P&L labels."""
    service = CategoryService(ctx.obj["db"])

    tree = service.labelled_tree(ctx.obj["tenant"], category_type.lower())
    if not tree:
        click.echo("No categories found. Run 'init-categories' to create default categories.")
        return

    click.echo("\nCategories:")
    for parent, label, children in tree:
        click.echo(f"{label} (ID: {parent.id})")
        for child, child_label in children:
            click.echo(f"  {child_label} (ID: {child.id})")


@category_group.command("create")
@click.argument("name")
@click.option("--parent", help="Parent category ID or label (e.g., '3. IT & Software')")
@click.option("--sort-order", type=int, help="Position among siblings")
@click.option(
    "--type",
    "category_type",
    type=click.Choice([t.value for t in CategoryType], case_sensitive=False),
    default=CategoryType.EXPENSE.value,
    help="Category type (default: expense)",
)
@click.pass_context
def create_category(ctx, name: str, parent: str | None, sort_order: int | None, category_type: str):
    """Create a new category."""
    tenant = ctx.obj["tenant"]
    service = CategoryService(ctx.obj["db"])
    parent_id = resolve_category_or_exit(ctx, service, tenant, parent)

    try:
        category_id = service.create_category(
            tenant,
            name,
            parent_id=parent_id,
            sort_order=sort_order,
            category_type=category_type.lower(),
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    parent_str = f" under '{parent}'" if parent else ""
    click.echo(f"Created category '{name}'{parent_str} (ID: {category_id})")


@category_group.command("deactivate")
@click.argument("category_id", type=int)
@click.pass_context
def deactivate_category(ctx, category_id: int):
    """Hide a category from the P&L grid. Its expenses are kept."""
    service = CategoryService(ctx.obj["db"])
    try:
        service.deactivate_category(ctx.obj["tenant"], category_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deactivated category {category_id}")


@category_group.command("reactivate")
@click.argument("category_id", type=int)
@click.pass_context
def reactivate_category(ctx, category_id: int):
    """Show a deactivated category again."""
    service = CategoryService(ctx.obj["db"])
    try:
        service.reactivate_category(ctx.obj["tenant"], category_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Reactivated category {category_id}")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
