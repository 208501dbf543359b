"""
Repository mixins shared by entities with a unique ``name`` column.

The database enforces the unique index. These lookups let callers check for a
clash (including against disabled rows, which still hold their name) before
attempting a write.
"""

from sqlalchemy import func
from sqlmodel import select


class NamedEntityMixin:
    """Case-insensitive name lookups for Line, Product and OperationType."""

    def find_by_name(self, name: str, enabled_only: bool = False) -> list:
        """
        Find rows whose name matches ``name`` ignoring case.

        Args:
            name: Name to look for
            enabled_only: Restrict the search to enabled rows

        Returns:
            Matching rows, usually zero or one
        """
        statement = select(self.model).where(
            func.lower(self.model.name) == name.strip().lower()
        )
        if enabled_only:
            statement = statement.where(self.model.enabled == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(self.model.id)).all())

    def name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        """Whether any row, enabled or not, already uses ``name``."""
        statement = select(self.model.id).where(
            func.lower(self.model.name) == name.strip().lower()
        )
        if exclude_id is not None:
            statement = statement.where(self.model.id != exclude_id)
        return self.session.exec(statement.limit(1)).first() is not None
