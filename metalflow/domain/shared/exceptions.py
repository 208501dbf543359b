"""
Domain Exceptions

Error types raised by the persistence layer itself. Storage engine failures
(unique or foreign key violations, connection errors) are not wrapped here:
they propagate as SQLAlchemy exceptions so the caller sees the driver detail.
"""

from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    ARGUMENT = "argument"
    RELATIONSHIP_INTEGRITY = "relationship_integrity"
    REPOSITORY = "repository"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class ArgumentError(DomainError, ValueError):
    """Raised when a required argument is missing or empty."""

    def __init__(self, argument_name: str, message: str | None = None) -> None:
        self.argument_name = argument_name
        super().__init__(
            message or f"Argument '{argument_name}' is required",
            ErrorType.ARGUMENT,
            {"argument": argument_name},
        )


class RepositoryError(DomainError):
    """Base class for repository layer errors."""

    def __init__(
        self, message: str, details: dict[str, str | int | bool | None] | None = None
    ) -> None:
        super().__init__(message, ErrorType.REPOSITORY, details)


class DatabaseError(RepositoryError):
    """Raised when the unit of work has no active session or cannot commit."""

    pass


class RelationshipIntegrityError(RepositoryError):
    """Raised when a loaded entity is missing a relationship it must have."""

    def __init__(self, entity_name: str, entity_id: int | None, relationship: str) -> None:
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.relationship = relationship
        super().__init__(
            f"{entity_name} {entity_id} has no related '{relationship}'",
            {
                "entity": entity_name,
                "entity_id": entity_id,
                "relationship": relationship,
            },
        )
        self.error_type = ErrorType.RELATIONSHIP_INTEGRITY
