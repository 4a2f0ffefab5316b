"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested entity does not exist or belongs to another tenant."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidStateError(DomainError):
    """Operation not allowed in the entity's current lifecycle state."""


class PermissionDeniedError(DomainError):
    """Acting user is not allowed to perform the operation."""


class StorageError(DomainError):
    """Underlying store failed while executing a transaction."""


def template_not_found(template_id: int) -> str:
    """Return message for missing recurring template."""
    return f"Recurring template {template_id} not found"


def instance_not_found(instance_id: int) -> str:
    """Return message for missing recurring instance."""
    return f"Recurring instance {instance_id} not found"


def expense_not_found(expense_id: int) -> str:
    """Return message for missing ledger expense."""
    return f"Expense {expense_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_label_not_found(label: str) -> str:
    """Return message for a display label that matches no category."""
    return f"Category '{label}' not found"


def month_already_reconciled(template_id: int, period: str) -> str:
    """Return message when a month is closed out for a template."""
    return f"Month {period} is already reconciled for template {template_id}"


def start_before_editable(start_period: str, earliest_period: str) -> str:
    """Return message when a start month is earlier than allowed."""
    return (
        f"Start month {start_period} is before the earliest editable month "
        f"{earliest_period}"
    )


def not_allowed(user_id: str, action: str, template_id: int) -> str:
    """Return message when a user may not act on a template."""
    return (
        f"User '{user_id}' is not allowed to {action} template {template_id}: "
        "only a tenant admin or the template creator can"
    )
