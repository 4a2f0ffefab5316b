"""Main CLI entry point."""

import logging

import click

from pnlkit.config import Settings
from pnlkit.database.factories import create_sqlite_database
from pnlkit.domain.entities import CurrentUser, Role

# Import and register all commands at module level
from pnlkit.cli.commands import (
    category,
    expense,
    init_categories,
    instance,
    pnl,
    recurring,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides PNLKIT_DB_PATH environment variable)",
    envvar="PNLKIT_DB_PATH",
)
@click.option(
    "--tenant",
    default="default",
    show_default=True,
    envvar="PNLKIT_TENANT",
    help="Tenant (company) to act on",
)
@click.option(
    "--user",
    "user_id",
    default="cli",
    show_default=True,
    envvar="PNLKIT_USER",
    help="Acting user ID",
)
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role], case_sensitive=False),
    default=Role.MEMBER.value,
    show_default=True,
    envvar="PNLKIT_ROLE",
    help="Acting user's role in the tenant",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    envvar="PNLKIT_LOG_LEVEL",
    help="Log level (default: WARNING)",
)
@click.pass_context
def cli(ctx, db_path: str | None, tenant: str, user_id: str, role: str, log_level: str | None):
    """Pnlkit - Recurring expenses and P&L reporting.

    Turn recurring expense templates into monthly obligations, reconcile them
    against real invoices and roll everything up into a 24-month P&L grid.
    """
    ctx.ensure_object(dict)
    settings = Settings.from_env()

    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path or settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.obj["tenant"] = tenant
        ctx.obj["user"] = CurrentUser(id=user_id, tenant_roles={tenant: role.lower()})


# Register all commands
category.register_commands(cli)
init_categories.register_commands(cli)
expense.register_commands(cli)
recurring.register_commands(cli)
instance.register_commands(cli)
pnl.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
