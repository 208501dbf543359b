"""
Repository for Operation entities.
"""

from sqlalchemy.orm import joinedload
from sqlmodel import Session

from metalflow.infrastructure.database.models import Operation

from .base import BaseRepository


class OperationRepository(BaseRepository[Operation]):
    """Repository for managing operations."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(Operation, session, auto_commit)

    @staticmethod
    def _detail_options() -> list:
        return [joinedload(Operation.operation_type), joinedload(Operation.work_center)]

    def _check_details(self, operation: Operation) -> Operation:
        return self._require_related(operation, "operation_type", "work_center")

    def get_by_id_with_details(self, operation_id: int) -> Operation | None:
        """
        Get an operation with its operation type and work center.

        Raises:
            RelationshipIntegrityError: If either relationship is missing
        """
        operation = self._get_with_options(operation_id, self._detail_options())
        if operation is None:
            return None
        return self._check_details(operation)

    def get_all_enabled_with_details(self) -> list[Operation]:
        """Get all enabled operations with operation type and work center loaded."""
        operations = self._all_enabled_with_options(self._detail_options())
        return [self._check_details(operation) for operation in operations]
