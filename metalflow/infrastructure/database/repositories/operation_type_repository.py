"""
Repository for OperationType entities.
"""

from sqlmodel import Session

from metalflow.infrastructure.database.models import OperationType

from .base import BaseRepository
from .mixins import NamedEntityMixin


class OperationTypeRepository(NamedEntityMixin, BaseRepository[OperationType]):
    """Repository for managing operation types."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(OperationType, session, auto_commit)
