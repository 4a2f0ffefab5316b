"""CLI helpers for category resolution."""

from __future__ import annotations

import click

from pnlkit.domain.category import CategoryService
from pnlkit.domain.errors import category_label_not_found


def resolve_category_or_exit(
    ctx: click.Context, service: CategoryService, tenant_id: str, value: str | None
) -> int | None:
    """Resolve a category given by ID or display label, or exit with a CLI error."""
    if value is None or value == "":
        return None
    if value.isdigit():
        try:
            return service.get_category(tenant_id, int(value)).id
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(1)
    category = service.resolve_label(tenant_id, value)
    if category is None:
        click.echo(f"Error: {category_label_not_found(value)}", err=True)
        ctx.exit(1)
    return category.id
