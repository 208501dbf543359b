"""
Base repository implementation providing generic CRUD and soft-delete operations.

This module provides a generic repository over any table that derives from
``AuditedModel`` (integer id, audit timestamps, enabled flag). Concrete
repositories extend it with entity-specific eager-loaded reads.

Every mutating call runs as one database transaction. Storage errors are not
translated: the session is rolled back and the SQLAlchemy exception propagates
with the driver's original detail. Writes aimed at a row that no longer exists
raise StaleDataError instead of inserting or silently doing nothing.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, func, inspect, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import attributes, object_session
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from metalflow.domain.shared.exceptions import ArgumentError, RelationshipIntegrityError
from metalflow.infrastructure.database.models import (
    AuditedEntity,
    AuditedModel,
    next_timestamp,
)

logger = logging.getLogger(__name__)

# Type variable for generic repository. Bound to the table base rather than
# AuditedEntity because queries are built from the model's columns.
EntityType = TypeVar("EntityType", bound=AuditedModel)

# Session.info key marking a unit of work whose earlier writes were rolled back
FAILED_WRITE_KEY = "metalflow.failed_write"


def stamp_created(entity: AuditedEntity, now: datetime) -> None:
    """Apply the creation stamp: enabled with both timestamps at ``now``."""
    entity.created_at = now
    entity.last_update = now
    entity.enabled = True


class BaseRepository(Generic[EntityType]):
    """
    Base repository class providing generic persistence operations.

    Args:
        model: The SQLModel table class managed by this repository
        session: SQLModel database session
        auto_commit: Commit after each write; when False the repository only
            flushes and leaves the commit to the unit of work
    """

    def __init__(
        self, model: type[EntityType], session: Session, auto_commit: bool = True
    ):
        if session is None:
            raise ArgumentError("session")
        self.model = model
        self.session = session
        self.auto_commit = auto_commit

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # Reads

    def get_by_id(self, entity_id: int) -> EntityType | None:
        """
        Get entity by primary key.

        Args:
            entity_id: Integer id of the entity

        Returns:
            Entity if found, None otherwise
        """
        return self.session.get(self.model, entity_id)

    def get_all(self) -> list[EntityType]:
        """Get every row, enabled or not."""
        statement = select(self.model).order_by(self.model.id)
        return list(self.session.exec(statement).all())

    def get_all_enabled(self) -> list[EntityType]:
        """Get the rows with enabled = true, filtered in SQL."""
        statement = (
            select(self.model)
            .where(self.model.enabled == True)  # noqa: E712
            .order_by(self.model.id)
        )
        return list(self.session.exec(statement).all())

    def find(self, *criteria: ColumnElement[bool]) -> list[EntityType]:
        """
        Find entities matching SQL criteria.

        Criteria are SQLAlchemy boolean expressions over the model's columns,
        e.g. ``repo.find(Product.priority > 2, Product.enabled == True)``.
        They are combined with AND and evaluated by the database.

        Raises:
            ArgumentError: If no criterion is given
        """
        if not criteria:
            raise ArgumentError("criteria", "At least one criterion is required")
        statement = select(self.model).where(*criteria).order_by(self.model.id)
        return list(self.session.exec(statement).all())

    def count(self, enabled_only: bool = False) -> int:
        """Count rows in SQL, optionally only the enabled ones."""
        statement = select(func.count()).select_from(self.model)
        if enabled_only:
            statement = statement.where(self.model.enabled == True)  # noqa: E712
        return self.session.exec(statement).one()

    def exists(self, entity_id: int) -> bool:
        return self.get_by_id(entity_id) is not None

    # Writes

    def add(self, entity: EntityType) -> EntityType:
        """
        Stamp and persist a new entity.

        Sets created_at and last_update to the same instant and enabled to
        True. New rows reachable from the entity through its relationships
        (e.g. routes appended to a new line) get the same stamp.

        Raises:
            ArgumentError: If entity is None or already has an id
            sqlalchemy.exc.IntegrityError: On unique or foreign key violation
        """
        if entity is None:
            raise ArgumentError("entity")
        self._require_new(entity)

        now = next_timestamp()
        self.session.add(entity)
        self._stamp_cascaded(entity, now)
        self._save(f"add {self.entity_name}")
        self.session.refresh(entity)
        logger.debug("Added %s %s", self.entity_name, entity.id)
        return entity

    def add_range(self, entities: Iterable[EntityType]) -> list[EntityType]:
        """
        Stamp and persist a batch of new entities in one transaction.

        Raises:
            ArgumentError: If entities is None or empty, or one already has an id
        """
        batch = self._require_batch(entities)
        for entity in batch:
            self._require_new(entity)

        now = next_timestamp()
        self.session.add_all(batch)
        for entity in batch:
            self._stamp_cascaded(entity, now)
        self._save(f"add_range {self.entity_name}")
        for entity in batch:
            self.session.refresh(entity)
        logger.debug("Added %d %s rows", len(batch), self.entity_name)
        return batch

    def update(self, entity: EntityType) -> EntityType:
        """
        Refresh last_update and write the entity's full row.

        Every loaded column is written, whether or not it changed, so the
        stored row ends up equal to the in-memory object (last writer wins).

        Returns:
            The session's instance of the entity

        Raises:
            ArgumentError: If entity is None or was never persisted
            sqlalchemy.orm.exc.StaleDataError: If the row no longer exists
        """
        if entity is None:
            raise ArgumentError("entity")

        persistent = self._attach_persisted(entity)
        now = next_timestamp(persistent.last_update)
        persistent.last_update = now
        state = attributes.instance_state(persistent)
        for column in state.mapper.column_attrs:
            if column.key not in state.unloaded and column.key != "id":
                attributes.flag_modified(persistent, column.key)
        # Children appended to the entity's collections are inserted now
        self._stamp_cascaded(persistent, now)

        self._save(f"update {self.entity_name}")
        self.session.refresh(persistent)
        logger.debug("Updated %s %s", self.entity_name, persistent.id)
        return persistent

    def remove(self, entity: EntityType) -> None:
        """
        Physically delete the entity's row.

        Raises:
            ArgumentError: If entity is None or was never persisted
            sqlalchemy.orm.exc.StaleDataError: If the row no longer exists
            sqlalchemy.exc.IntegrityError: If other rows still reference it
        """
        if entity is None:
            raise ArgumentError("entity")

        entity_id = entity.id
        self.session.delete(self._attach_persisted(entity))
        self._save(f"remove {self.entity_name}")
        logger.debug("Removed %s %s", self.entity_name, entity_id)

    def soft_remove(self, entity: EntityType) -> EntityType:
        """
        Disable the entity, writing only enabled and last_update.

        The row stays in place and remains a valid foreign key target. Unsaved
        changes to other attributes of ``entity`` are left on the object and
        are not written by this call.

        Raises:
            ArgumentError: If entity is None or was never persisted
            sqlalchemy.orm.exc.StaleDataError: If no row has the entity's id
        """
        if entity is None:
            raise ArgumentError("entity")
        if entity.id is None:
            raise ArgumentError("entity", f"{self.entity_name} has not been persisted")

        operation = f"soft_remove {self.entity_name}"
        with self.session.no_autoflush:
            now = next_timestamp(entity.last_update)
            if object_session(entity) is self.session and self.session.is_modified(
                entity
            ):
                # Keep pending edits of this object out of the commit below
                self.session.expunge(entity)

        table = self.model.__table__
        statement = (
            update(table)
            .where(table.c.id == entity.id)
            .values(enabled=False, last_update=now)
        )
        try:
            result = self.session.connection().execute(statement)
        except SQLAlchemyError:
            self._rollback(operation)
            raise

        if result.rowcount == 0:
            logger.warning(
                "soft_remove found no %s row with id %s", self.entity_name, entity.id
            )
            if self.auto_commit:
                self.session.rollback()
            raise StaleDataError(
                f"{self.entity_name} {entity.id} no longer exists; nothing was disabled"
            )
        self._save(operation)

        attributes.set_committed_value(entity, "enabled", False)
        attributes.set_committed_value(entity, "last_update", now)
        logger.debug("Disabled %s %s", self.entity_name, entity.id)
        return entity

    def remove_range(self, entities: Iterable[EntityType]) -> None:
        """
        Physically delete a batch of rows in one transaction.

        Raises:
            ArgumentError: If entities is None or empty
            sqlalchemy.orm.exc.StaleDataError: If one of the rows no longer exists
        """
        batch = self._require_batch(entities)

        for entity in batch:
            self.session.delete(self._attach_persisted(entity))
        self._save(f"remove_range {self.entity_name}")
        logger.debug("Removed %d %s rows", len(batch), self.entity_name)

    # Eager-loading helpers for specialized repositories

    def _get_with_options(
        self, entity_id: int, options: list[Any]
    ) -> EntityType | None:
        """Load one entity and its relationship graph in a single statement."""
        statement = select(self.model).options(*options).where(self.model.id == entity_id)
        return self.session.exec(statement).unique().one_or_none()

    def _all_enabled_with_options(self, options: list[Any]) -> list[EntityType]:
        """Load the enabled set and its relationship graph in a single statement."""
        statement = (
            select(self.model)
            .options(*options)
            .where(self.model.enabled == True)  # noqa: E712
            .order_by(self.model.id)
        )
        return list(self.session.exec(statement).unique().all())

    # Helpers

    def _require_batch(self, entities: Iterable[EntityType] | None) -> list[EntityType]:
        if entities is None:
            raise ArgumentError("entities")
        batch = list(entities)
        if not batch:
            raise ArgumentError("entities", "At least one entity is required")
        if any(entity is None for entity in batch):
            raise ArgumentError("entities", "Entities must not contain None")
        return batch

    def _require_new(self, entity: EntityType) -> None:
        if entity.id is not None:
            raise ArgumentError(
                "entity", f"{self.entity_name} {entity.id} is already persisted"
            )

    def _attach_persisted(self, entity: EntityType) -> EntityType:
        """
        Return the session's instance for a stored entity, merging it if detached.

        Raises:
            ArgumentError: If the entity was never persisted
            StaleDataError: If its row has been deleted
        """
        if entity.id is None:
            raise ArgumentError("entity", f"{self.entity_name} has not been persisted")

        with self.session.no_autoflush:
            statement = select(self.model.id).where(self.model.id == entity.id)
            found = self.session.exec(statement).first()
        if found is None:
            raise StaleDataError(f"{self.entity_name} {entity.id} no longer exists")

        if entity in self.session:
            return entity
        persistent = self.session.merge(entity)
        if persistent in self.session.new:
            # Deleted between the check and the merge
            self.session.expunge(persistent)
            raise StaleDataError(f"{self.entity_name} {entity.id} no longer exists")
        return persistent

    def _stamp_cascaded(self, entity: EntityType, now: datetime) -> None:
        """Stamp the entity and the unsaved rows reachable from it."""
        state = inspect(entity)
        if state.key is None:
            stamp_created(entity, now)
        for related, _, related_state, _ in state.mapper.cascade_iterator(
            "save-update", state
        ):
            if related_state.key is None and isinstance(related, AuditedEntity):
                stamp_created(related, now)

    def _save(self, operation: str) -> None:
        """Commit (or flush, inside a unit of work), rolling back on failure."""
        try:
            if self.auto_commit:
                self.session.commit()
            else:
                self.session.flush()
        except SQLAlchemyError:
            self._rollback(operation)
            raise

    def _rollback(self, operation: str) -> None:
        logger.warning("%s failed, rolling back", operation)
        self.session.rollback()
        if not self.auto_commit:
            # Earlier writes of the unit of work went with the rollback
            self.session.info[FAILED_WRITE_KEY] = operation

    def _require_related(self, entity: Any, *relationships: str) -> Any:
        """
        Check that eager-loaded many-to-one relationships are present.

        Raises:
            RelationshipIntegrityError: If any named relationship is None
        """
        for relationship in relationships:
            if getattr(entity, relationship) is None:
                raise RelationshipIntegrityError(
                    type(entity).__name__, entity.id, relationship
                )
        return entity
