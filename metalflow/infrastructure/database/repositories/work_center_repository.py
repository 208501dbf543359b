"""
Repository for WorkCenter entities.
"""

from sqlalchemy.orm import joinedload
from sqlmodel import Session

from metalflow.infrastructure.database.models import (
    WorkCenter,
    WorkCenterOperationRoute,
)

from .base import BaseRepository


class WorkCenterRepository(BaseRepository[WorkCenter]):
    """Repository for managing work centers."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(WorkCenter, session, auto_commit)

    @staticmethod
    def _detail_options() -> list:
        return [
            joinedload(WorkCenter.line),
            joinedload(WorkCenter.operation_routes).joinedload(
                WorkCenterOperationRoute.operation_type
            ),
        ]

    def _check_details(self, work_center: WorkCenter) -> WorkCenter:
        self._require_related(work_center, "line")
        for route in work_center.operation_routes:
            self._require_related(route, "operation_type")
        return work_center

    def get_by_id_with_details(self, work_center_id: int) -> WorkCenter | None:
        """
        Get a work center with its line and operation routes.

        Returns:
            WorkCenter with line and operation routes (each with its
            operation type) loaded, None if not found

        Raises:
            RelationshipIntegrityError: If the line or a route's operation
                type is missing
        """
        work_center = self._get_with_options(work_center_id, self._detail_options())
        if work_center is None:
            return None
        return self._check_details(work_center)

    def get_all_enabled_with_details(self) -> list[WorkCenter]:
        """Get all enabled work centers with line and operation routes loaded."""
        work_centers = self._all_enabled_with_options(self._detail_options())
        return [self._check_details(work_center) for work_center in work_centers]

    def find_by_line(self, line_id: int, enabled_only: bool = True) -> list[WorkCenter]:
        """Find the work centers that belong to a line."""
        criteria = [WorkCenter.line_id == line_id]
        if enabled_only:
            criteria.append(WorkCenter.enabled == True)  # noqa: E712
        return self.find(*criteria)
