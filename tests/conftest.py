"""Shared pytest fixtures for pnlkit tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal

import pytest

from pnlkit.database.factories import create_sqlite_database
from pnlkit.domain.budget import BudgetService
from pnlkit.domain.category import CategoryService
from pnlkit.domain.entities import CurrentUser, Role
from pnlkit.domain.instances import RecurringInstanceService
from pnlkit.domain.ledger import ExpenseService
from pnlkit.domain.pnl import PnlService
from pnlkit.domain.recurring import RecurringTemplateService

TENANT = "acme"
OTHER_TENANT = "globex"
TODAY = date(2025, 3, 15)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def template_service(temp_db):
    """Create a RecurringTemplateService with a temporary database."""
    return RecurringTemplateService(temp_db)


@pytest.fixture
def instance_service(temp_db):
    """Create a RecurringInstanceService with the default 10% tolerance."""
    return RecurringInstanceService(temp_db)


@pytest.fixture
def expense_service(temp_db):
    """Create an ExpenseService with a temporary database."""
    return ExpenseService(temp_db)


@pytest.fixture
def pnl_service(temp_db):
    """Create an uncached PnlService with a temporary database."""
    return PnlService(temp_db)


@pytest.fixture
def budget_service(temp_db):
    """Create a BudgetService with a temporary database."""
    return BudgetService(temp_db)


@pytest.fixture
def owner():
    """The member who creates templates in tests."""
    return CurrentUser(id="alice", tenant_roles={TENANT: Role.MEMBER.value})


@pytest.fixture
def admin():
    return CurrentUser(id="root", tenant_roles={TENANT: Role.ADMIN.value})


@pytest.fixture
def sample_categories(category_service):
    """Initialize the default categories and return IDs keyed by name.

    Subcategories are keyed as "Parent > Child".
    """
    from pnlkit.cli.commands.init_categories import seed_categories

    seed_categories(category_service, TENANT)

    categories = category_service.list_categories(TENANT)
    names = {c.id: c.name for c in categories}
    category_ids = {}
    for c in categories:
        if c.parent_id is None:
            category_ids[c.name] = c.id
        else:
            category_ids[f"{names[c.parent_id]} > {c.name}"] = c.id
    return category_ids


@pytest.fixture
def rent_template(template_service, sample_categories, owner):
    """A 1000 RON monthly rent template starting January 2025."""
    template_id = template_service.create_template(
        tenant_id=TENANT,
        created_by=owner.id,
        supplier="Landlord SRL",
        amount=Decimal("1000"),
        start_date=date(2025, 1, 1),
        category_id=sample_categories["Office"],
        subcategory_id=sample_categories["Office > Rent"],
        day_of_month=5,
        today=date(2025, 1, 10),
    )
    return template_service.get_template(template_id, TENANT)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
