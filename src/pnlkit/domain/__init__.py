"""Domain layer for pnlkit application."""

_SERVICES = {
    "BudgetService": "pnlkit.domain.budget",
    "CategoryService": "pnlkit.domain.category",
    "ExpenseService": "pnlkit.domain.ledger",
    "PnlService": "pnlkit.domain.pnl",
    "RecurringInstanceService": "pnlkit.domain.instances",
    "RecurringTemplateService": "pnlkit.domain.recurring",
}

__all__ = sorted(_SERVICES)


# Services import the database layer, which imports domain.entities;
# resolve them lazily so importing entities never drags the services in.
def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
