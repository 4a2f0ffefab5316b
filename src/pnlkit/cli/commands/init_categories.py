"""Initialize the default expense chart of accounts."""

import click

from pnlkit.domain.category import CategoryService
from pnlkit.domain.errors import DomainError


# Initial category tree structure
INITIAL_CATEGORIES = [
    # Root categories
    ("Personnel", None),
    ("Office", None),
    ("IT & Software", None),
    ("Marketing", None),
    ("Professional Services", None),
    ("Transport", None),
    ("Taxes & Fees", None),
    ("Other", None),
    # Personnel subcategories
    ("Salaries", "Personnel"),
    ("Contributions", "Personnel"),
    ("Training", "Personnel"),
    # Office subcategories
    ("Rent", "Office"),
    ("Utilities", "Office"),
    ("Supplies", "Office"),
    # IT & Software subcategories
    ("Hardware", "IT & Software"),
    ("Software Subscriptions", "IT & Software"),
    ("Hosting", "IT & Software"),
    # Marketing subcategories
    ("Advertising", "Marketing"),
    ("Events", "Marketing"),
    # Professional Services subcategories
    ("Accounting", "Professional Services"),
    ("Legal", "Professional Services"),
    ("Consulting", "Professional Services"),
    # Transport subcategories
    ("Fuel", "Transport"),
    ("Leasing", "Transport"),
]


def seed_categories(service: CategoryService, tenant_id: str) -> tuple[int, int]:
    """Create any missing default categories.

    Returns:
        (created, errors)
    """
    existing = {
        (c.name, c.parent_id): c.id
        for c in service.list_categories(tenant_id, include_inactive=True)
    }
    root_ids = {name: cid for (name, parent_id), cid in existing.items() if parent_id is None}

    created = 0
    errors = 0

    # Create root categories first
    for category_name, parent_name in INITIAL_CATEGORIES:
        if parent_name is not None or category_name in root_ids:
            continue
        try:
            root_ids[category_name] = service.create_category(tenant_id, category_name)
            created += 1
        except DomainError as e:
            click.echo(f"Warning: Could not create category '{category_name}': {e}", err=True)
            errors += 1

    # Then create child categories
    for category_name, parent_name in INITIAL_CATEGORIES:
        if parent_name is None:
            continue
        parent_id = root_ids.get(parent_name)
        if parent_id is None or (category_name, parent_id) in existing:
            continue
        try:
            service.create_category(tenant_id, category_name, parent_id=parent_id)
            created += 1
        except DomainError as e:
            click.echo(f"Warning: Could not create category '{category_name}': {e}", err=True)
            errors += 1

    return created, errors


@click.command("init-categories")
@click.option("--force", is_flag=True, help="Add missing defaults even if categories exist")
@click.pass_context
def init_categories(ctx, force: bool):
    """Initialize the tenant with the default category tree."""
    tenant = ctx.obj["tenant"]
    service = CategoryService(ctx.obj["db"])

    # Check if categories already exist
    if service.list_categories(tenant, include_inactive=True) and not force:
        click.echo("Categories already exist. Use --force to add missing defaults.")
        return

    click.echo("Creating initial category tree...")
    created, errors = seed_categories(service, tenant)

    if errors == 0:
        click.echo(f"Successfully created {created} categories.")
    else:
        click.echo(f"Created {created} categories with {errors} errors.")


def register_commands(cli):
    """Register init-categories command with main CLI."""
    cli.add_command(init_categories)
