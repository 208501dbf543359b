"""
Repository for Line entities.

Adds the detail reads that assemble a line together with its work center
routes and the products available on it.
"""

from sqlalchemy.orm import joinedload
from sqlmodel import Session

from metalflow.infrastructure.database.models import (
    Line,
    LineWorkCenterRoute,
    ProductAvailablePerLine,
)

from .base import BaseRepository
from .mixins import NamedEntityMixin


class LineRepository(NamedEntityMixin, BaseRepository[Line]):
    """Repository for managing production lines."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(Line, session, auto_commit)

    @staticmethod
    def _detail_options() -> list:
        return [
            joinedload(Line.work_center_routes).joinedload(
                LineWorkCenterRoute.work_center
            ),
            joinedload(Line.available_products).joinedload(
                ProductAvailablePerLine.product
            ),
        ]

    def _check_details(self, line: Line) -> Line:
        for route in line.work_center_routes:
            self._require_related(route, "work_center")
        for availability in line.available_products:
            self._require_related(availability, "product")
        return line

    def get_by_id_with_details(self, line_id: int) -> Line | None:
        """
        Get a line with its work center routes and available products.

        Returns:
            Line with routes (and their work centers) and available products
            (and their products) loaded, None if not found

        Raises:
            RelationshipIntegrityError: If a route or availability row points
                at a missing work center or product
        """
        line = self._get_with_options(line_id, self._detail_options())
        if line is None:
            return None
        return self._check_details(line)

    def get_all_enabled_with_details(self) -> list[Line]:
        """Get all enabled lines with the same relationships as get_by_id_with_details."""
        lines = self._all_enabled_with_options(self._detail_options())
        return [self._check_details(line) for line in lines]
