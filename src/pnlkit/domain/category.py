"""Category domain service."""

import logging
import re
from typing import Optional

from pnlkit.database.base import Database
from pnlkit.domain.entities import Category, CategoryTreeNode, CategoryType
from pnlkit.domain.errors import (
    NotFoundError,
    ValidationError,
    category_not_found,
)

logger = logging.getLogger(__name__)

# "3.", "3.2" or "3.2." followed by whitespace; a bare number is part of the name
_LABEL_PREFIX_RE = re.compile(r"^\s*\d+\.(\d+\.?)?\s+")


def strip_label_prefix(label: str) -> str:
    """Remove a leading "N." or "N.M" numbering prefix from a display label."""
    return _LABEL_PREFIX_RE.sub("", label).strip()


def parent_label(position: int, name: str) -> str:
    return f"{position}. {name}"


def child_label(parent_position: int, position: int, name: str) -> str:
    return f"{parent_position}.{position} {name}"


class CategoryService:
    """Service for managing the two-level category tree of a tenant."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(
        self,
        tenant_id: str,
        name: str,
        parent_id: Optional[int] = None,
        sort_order: Optional[int] = None,
        category_type: str = CategoryType.EXPENSE.value,
    ) -> int:
        """Create a category.

        Args:
            tenant_id: Owning tenant
            name: Category name
            parent_id: Optional parent category ID (must be a root category)
            sort_order: Position among siblings; defaults to the next free slot
            category_type: "expense" or "revenue"

        Returns:
            Category ID

        Raises:
            ValidationError: If the name is empty or the parent is not usable
            NotFoundError: If the parent doesn't exist in this tenant
        """
        name = name.strip() if name else ""
        if not name:
            raise ValidationError("Category name cannot be empty")
        if category_type not in {t.value for t in CategoryType}:
            raise ValidationError(f"Unknown category type '{category_type}'")

        if parent_id is not None:
            parent = self.get_category(tenant_id, parent_id)
            if parent.parent_id is not None:
                raise ValidationError(
                    f"Category '{parent.name}' is already a subcategory; "
                    "categories are at most two levels deep"
                )
            if parent.category_type != category_type:
                raise ValidationError(
                    f"Parent category '{parent.name}' is a {parent.category_type} category"
                )

        if sort_order is None:
            siblings = [
                c
                for c in self.db.list_categories(tenant_id, include_inactive=True)
                if c.parent_id == parent_id and c.category_type == category_type
            ]
            sort_order = max((c.sort_order for c in siblings), default=0) + 1

        category_id = self.db.create_category(
            tenant_id=tenant_id,
            name=name,
            parent_id=parent_id,
            sort_order=sort_order,
            category_type=category_type,
        )
        logger.info("Created category %s '%s' for tenant %s", category_id, name, tenant_id)
        return category_id

    def get_category(self, tenant_id: str, category_id: int) -> Category:
        """Get a tenant's category by ID.

        Raises:
            NotFoundError: If it doesn't exist or belongs to another tenant
        """
        category = self.db.get_category(category_id)
        if category is None or category.tenant_id != tenant_id:
            raise NotFoundError(category_not_found(category_id))
        return category

    def list_categories(
        self,
        tenant_id: str,
        category_type: Optional[str] = None,
        include_inactive: bool = False,
    ) -> list[Category]:
        return self.db.list_categories(
            tenant_id, category_type=category_type, include_inactive=include_inactive
        )

    def get_category_tree(
        self, tenant_id: str, category_type: str = CategoryType.EXPENSE.value
    ) -> list[CategoryTreeNode]:
        """Get the active category tree.

        Returns:
            Root categories ordered by sort_order, each with its active children
        """
        categories = self.db.list_categories(tenant_id, category_type=category_type)
        roots = [c for c in categories if c.parent_id is None]
        tree = []
        for root in roots:
            children = tuple(
                CategoryTreeNode(
                    id=c.id,
                    name=c.name,
                    parent_id=c.parent_id,
                    sort_order=c.sort_order,
                    category_type=c.category_type,
                )
                for c in categories
                if c.parent_id == root.id
            )
            tree.append(
                CategoryTreeNode(
                    id=root.id,
                    name=root.name,
                    parent_id=None,
                    sort_order=root.sort_order,
                    category_type=root.category_type,
                    children=children,
                )
            )
        return tree

    def labelled_tree(
        self, tenant_id: str, category_type: str = CategoryType.EXPENSE.value
    ) -> list[tuple[CategoryTreeNode, str, list[tuple[CategoryTreeNode, str]]]]:
        """Pair every tree node with its numbered display label."""
        result = []
        for i, root in enumerate(self.get_category_tree(tenant_id, category_type), start=1):
            children = [
                (child, child_label(i, j, child.name))
                for j, child in enumerate(root.children, start=1)
            ]
            result.append((root, parent_label(i, root.name), children))
        return result

    def deactivate_category(self, tenant_id: str, category_id: int) -> None:
        self.get_category(tenant_id, category_id)
        self.db.set_category_active(category_id, False)
        logger.info("Deactivated category %s for tenant %s", category_id, tenant_id)

    def reactivate_category(self, tenant_id: str, category_id: int) -> None:
        self.get_category(tenant_id, category_id)
        self.db.set_category_active(category_id, True)
        logger.info("Reactivated category %s for tenant %s", category_id, tenant_id)

    def resolve_label(
        self,
        tenant_id: str,
        label: str,
        category_type: str = CategoryType.EXPENSE.value,
    ) -> Optional[Category]:
        """Resolve a possibly numbered display label to a stored category.

        A name equal to the whole label wins. Otherwise the numbering prefix
        is stripped, then names are compared case-insensitively: an exact
        match wins over a prefix match, which wins over a substring match.
        Ties go to the first category in sort order.

        Args:
            tenant_id: Owning tenant
            label: Display label such as "3.2 Hardware"
            category_type: Chart to search

        Returns:
            Matching category or None
        """
        raw = (label or "").strip().lower()
        needle = strip_label_prefix(raw)
        if not needle:
            return None

        categories = self.db.list_categories(tenant_id, category_type=category_type)
        for category in categories:
            if category.name.strip().lower() == raw:
                return category
        for matches in (
            lambda name: name == needle,
            lambda name: name.startswith(needle),
            lambda name: needle in name,
        ):
            for category in categories:
                if matches(category.name.strip().lower()):
                    return category
        return None
