"""SQLAlchemy models for pnlkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Float,
    JSON,
    Index,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

MONTH_COLUMNS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Category(Base):
    """Expense or revenue category, at most two levels deep."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    category_type = Column(String, default="expense", nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")


class RecurringTemplate(Base):
    """Recurring expense template; each version is its own row."""

    __tablename__ = "recurring_templates"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)
    chain_root_id = Column(Integer, nullable=True)
    superseded_template_id = Column(Integer, ForeignKey("recurring_templates.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    day_of_month = Column(Integer, default=1, nullable=False)
    supplier = Column(String, nullable=False)
    supplier_cui = Column(String, nullable=True)
    description = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    subcategory_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    vat_deductible = Column(Boolean, default=False, nullable=False)
    vat_rate = Column(Numeric(5, 2), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    amount_with_vat = Column(Numeric(12, 2), nullable=True)
    amount_without_vat = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), default="RON", nullable=False)
    doc_type = Column(String, nullable=True)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    superseded_at = Column(DateTime, nullable=True)

    # The chain head is the only row of a chain without superseded_at
    __table_args__ = (Index("ix_template_chain_head", "chain_root_id", "superseded_at"),)


class LedgerExpense(Base):
    """Ledger expense row; RE-Forms carry a template_id."""

    __tablename__ = "ledger_expenses"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False)
    template_id = Column(Integer, ForeignKey("recurring_templates.id"), nullable=True)
    recurring_instance_id = Column(Integer, nullable=True)
    accounting_period = Column(String(7), nullable=True)
    expense_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    amount_without_vat = Column(Numeric(12, 2), nullable=True)
    amount_with_vat = Column(Numeric(12, 2), nullable=True)
    vat_rate = Column(Numeric(5, 2), nullable=True)
    vat_deductible = Column(Boolean, default=False, nullable=False)
    currency = Column(String(3), default="RON", nullable=False)
    supplier = Column(String, nullable=True)
    description = Column(String, nullable=True)
    document_number = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    subcategory_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    status = Column(String, default="draft", nullable=False)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    # At most one live row per template and period; concurrent generators
    # race on this index rather than on application checks.
    __table_args__ = (
        Index(
            "uq_ledger_template_period_live",
            "template_id",
            "accounting_period",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_ledger_tenant_period", "tenant_id", "accounting_period"),
    )


class RecurringInstance(Base):
    """Obligation record for one template and month."""

    __tablename__ = "recurring_instances"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("recurring_templates.id"), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    status = Column(String, default="open", nullable=False)
    expected_amount = Column(Numeric(12, 2), nullable=False)
    expected_amount_without_vat = Column(Numeric(12, 2), nullable=True)
    expected_amount_with_vat = Column(Numeric(12, 2), nullable=True)
    expected_vat_rate = Column(Numeric(5, 2), nullable=True)
    expected_vat_deductible = Column(Boolean, default=False, nullable=False)
    expected_currency = Column(String(3), default="RON", nullable=False)
    expected_category_id = Column(Integer, nullable=True)
    expected_subcategory_id = Column(Integer, nullable=True)
    expected_supplier = Column(String, nullable=True)
    expected_description = Column(String, nullable=True)
    final_expense_id = Column(Integer, ForeignKey("ledger_expenses.id"), nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(String, nullable=True)
    amount_difference_percent = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("template_id", "year", "month", name="uq_instance_template_month"),
    )


class Revenue(Base):
    """Monthly revenue per source."""

    __tablename__ = "revenues"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    source = Column(String, default="general", nullable=False)
    currency = Column(String(3), default="RON", nullable=False)
    description = Column(String, nullable=True)
    entered_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "year", "month", "source", name="uq_revenue_month_source"),
    )


class Budget(Base):
    """Yearly budget row with one column per month."""

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    year = Column(Integer, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    subcategory_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    jan = Column(Numeric(14, 2), default=0, nullable=False)
    feb = Column(Numeric(14, 2), default=0, nullable=False)
    mar = Column(Numeric(14, 2), default=0, nullable=False)
    apr = Column(Numeric(14, 2), default=0, nullable=False)
    may = Column(Numeric(14, 2), default=0, nullable=False)
    jun = Column(Numeric(14, 2), default=0, nullable=False)
    jul = Column(Numeric(14, 2), default=0, nullable=False)
    aug = Column(Numeric(14, 2), default=0, nullable=False)
    sep = Column(Numeric(14, 2), default=0, nullable=False)
    oct = Column(Numeric(14, 2), default=0, nullable=False)
    nov = Column(Numeric(14, 2), default=0, nullable=False)
    dec = Column(Numeric(14, 2), default=0, nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "year", "category_id", "subcategory_id", name="uq_budget_year_category"
        ),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
