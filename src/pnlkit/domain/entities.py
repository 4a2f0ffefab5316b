"""Domain model entities for pnlkit.

These are pure data classes representing business concepts, independent of
database schema. Services exchange these with the Database interface; ORM rows
never leave the database layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional


class ExpenseStatus(str, Enum):
    """Lifecycle status of a ledger expense."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    RECURENT = "recurent"
    FINAL = "final"
    SKIPPED = "skipped"
    REJECTED = "rejected"
    PAID = "paid"


# Statuses whose amounts count toward P&L totals.
PNL_STATUSES = frozenset(
    status.value
    for status in (
        ExpenseStatus.APPROVED,
        ExpenseStatus.PAID,
        ExpenseStatus.PENDING,
        ExpenseStatus.DRAFT,
        ExpenseStatus.FINAL,
        ExpenseStatus.RECURENT,
    )
)

# Statuses meaning the obligation was matched against a real document.
RECONCILED_STATUSES = frozenset(
    status.value
    for status in (
        ExpenseStatus.DRAFT,
        ExpenseStatus.PENDING,
        ExpenseStatus.APPROVED,
        ExpenseStatus.FINAL,
        ExpenseStatus.PAID,
    )
)


class InstanceStatus(str, Enum):
    """Status of a recurring instance."""

    OPEN = "open"
    CLOSED = "closed"


class CategoryType(str, Enum):
    """Chart of accounts a category belongs to."""

    EXPENSE = "expense"
    REVENUE = "revenue"


class Role(str, Enum):
    """Tenant role of a user."""

    MEMBER = "member"
    APPROVER = "approver"
    ADMIN = "admin"
    ACCOUNTING_VIEWER = "accounting_viewer"


@dataclass(frozen=True)
class CurrentUser:
    """Acting user as supplied by the identity provider."""

    id: str
    tenant_roles: Mapping[str, str] = field(default_factory=dict)

    def role_in(self, tenant_id: str) -> Optional[str]:
        return self.tenant_roles.get(tenant_id)

    def is_tenant_admin(self, tenant_id: str) -> bool:
        return self.role_in(tenant_id) == Role.ADMIN.value


@dataclass(frozen=True)
class Category:
    """Category domain entity with a two-level hierarchy."""

    id: int
    tenant_id: str
    name: str
    parent_id: Optional[int]
    sort_order: int
    is_active: bool
    category_type: str
    created_at: datetime


@dataclass(frozen=True)
class CategoryTreeNode:
    """Category with its active children, for hierarchical display."""

    id: int
    name: str
    parent_id: Optional[int]
    sort_order: int
    category_type: str
    children: tuple["CategoryTreeNode", ...] = ()


@dataclass(frozen=True)
class RecurringTemplate:
    """Recurring expense template; one row per version."""

    id: int
    tenant_id: str
    version: int
    chain_root_id: int
    superseded_template_id: Optional[int]
    is_active: bool
    start_date: date
    supplier: str
    amount: Decimal
    currency: str
    created_by: str
    created_at: datetime
    supplier_cui: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    vat_deductible: bool = False
    vat_rate: Optional[Decimal] = None
    amount_with_vat: Optional[Decimal] = None
    amount_without_vat: Optional[Decimal] = None
    doc_type: Optional[str] = None
    day_of_month: int = 1
    end_date: Optional[date] = None
    superseded_at: Optional[datetime] = None

    @property
    def is_superseded(self) -> bool:
        return self.superseded_at is not None


@dataclass(frozen=True)
class LedgerExpense:
    """Ledger expense; a RE-Form when template_id is set."""

    id: int
    tenant_id: str
    template_id: Optional[int]
    accounting_period: Optional[str]
    expense_date: date
    amount: Decimal
    vat_deductible: bool
    supplier: Optional[str]
    status: str
    currency: str
    created_at: datetime
    amount_without_vat: Optional[Decimal] = None
    amount_with_vat: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    description: Optional[str] = None
    document_number: Optional[str] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    recurring_instance_id: Optional[int] = None
    created_by: Optional[str] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_reconciled(self) -> bool:
        return self.status in RECONCILED_STATUSES


@dataclass(frozen=True)
class RecurringInstance:
    """Obligation record tracked by the confirmation workflow."""

    id: int
    tenant_id: str
    template_id: int
    year: int
    month: int
    status: str
    expected_amount: Decimal
    expected_vat_deductible: bool
    expected_currency: str
    created_at: datetime
    expected_amount_without_vat: Optional[Decimal] = None
    expected_amount_with_vat: Optional[Decimal] = None
    expected_vat_rate: Optional[Decimal] = None
    expected_category_id: Optional[int] = None
    expected_subcategory_id: Optional[int] = None
    expected_supplier: Optional[str] = None
    expected_description: Optional[str] = None
    final_expense_id: Optional[int] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    amount_difference_percent: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status == InstanceStatus.OPEN.value

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class Revenue:
    """Monthly revenue entry."""

    id: int
    tenant_id: str
    year: int
    month: int
    amount: Decimal
    source: str
    currency: str
    description: Optional[str] = None
    entered_by: Optional[str] = None


@dataclass(frozen=True)
class Budget:
    """Budget row with twelve fixed monthly values."""

    id: int
    tenant_id: str
    year: int
    category_id: Optional[int]
    subcategory_id: Optional[int]
    monthly_values: tuple[Decimal, ...]
    notes: Optional[str] = None

    @property
    def annual_total(self) -> Decimal:
        return sum(self.monthly_values, Decimal("0"))


@dataclass(frozen=True)
class ExpenseData:
    """Actual figures entered when confirming an obligation."""

    amount: Optional[Decimal]
    amount_without_vat: Optional[Decimal] = None
    amount_with_vat: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    vat_deductible: bool = False
    expense_date: Optional[date] = None
    supplier: Optional[str] = None
    description: Optional[str] = None
    document_number: Optional[str] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class ConvertResult:
    """Outcome of converting an obligation to a reconciled expense.

    When requires_confirmation is set nothing was written and the caller has
    to repeat the call with confirmation.
    """

    expected_amount: Decimal
    actual_amount: Decimal
    diff_percent: float
    requires_confirmation: bool = False
    final_expense: Optional[LedgerExpense] = None
    suggest_new_template: bool = False


@dataclass(frozen=True)
class PnlSubcategory:
    """Subcategory row of the P&L grid."""

    id: int
    name: str
    label: str
    values: tuple[Decimal, ...]


@dataclass(frozen=True)
class PnlCategory:
    """Parent category row of the P&L grid."""

    id: int
    name: str
    label: str
    values: tuple[Decimal, ...]
    subcategories: tuple[PnlSubcategory, ...] = ()


@dataclass(frozen=True)
class PnlExpense:
    """Flattened expense used for drill-down."""

    id: int
    date: date
    accounting_period: Optional[str]
    supplier: str
    description: str
    document_number: str
    amount: Decimal
    status: str
    category: str
    subcategory: str
    type: str


@dataclass(frozen=True)
class PnlAggregate:
    """24-month P&L aggregate for one tenant and base year.

    Index 0-11 holds the prior year, 12-23 the base year.
    """

    tenant_id: str
    base_year: int
    expenses_by_month: tuple[Decimal, ...]
    categories: tuple[PnlCategory, ...]
    revenue_by_month: tuple[Decimal, ...]
    budget_by_month: tuple[Decimal, ...]
    budget_categories: tuple[PnlCategory, ...]
    expenses: tuple[PnlExpense, ...]


@dataclass(frozen=True)
class PnlMonthSummary:
    """KPIs for one month."""

    month: int
    revenue: Decimal
    expenses: Decimal
    budget: Decimal
    profit: Decimal
    delta: Decimal
    profit_margin: Optional[Decimal] = None


@dataclass(frozen=True)
class PnlYearSummary:
    """Per-month KPIs plus year-to-date totals."""

    year: int
    months: tuple[PnlMonthSummary, ...]
    ytd_through_month: int
    ytd_revenue: Decimal
    ytd_expenses: Decimal
    ytd_budget: Decimal
    ytd_profit: Decimal
    ytd_delta: Decimal
    ytd_profit_margin: Optional[Decimal] = None
