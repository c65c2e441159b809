"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so handlers can use it without parsing
    # str(exception). Never raise this directly - always a specific subclass so callers can
    # catch precisely (the API layer maps each subclass to its own HTTP status).
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEntityException(DomainException):
    """Raised when trying to create a duplicate entity."""

    # Yo, server names are unique (they're how operators address servers from the API and
    # how log entries are tagged). Adding "Movies" twice raises this, not a DB IntegrityError.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when entity validation fails (bad URL, empty name, ...)."""

    pass


class ConfigurationError(DomainException):
    """Raised for invalid configuration values.

    Covers out-of-range schedule intervals, rate limits and retention days as well as
    wiring problems such as a server category without a registered client factory.
    Rejected synchronously, before anything is persisted.
    """

    pass


class ExternalServiceError(DomainException):
    """Raised when a library manager call fails (network, HTTP, bad payload).

    Hey future me - this is the "transient network failure" class. The detector and the
    search trigger CATCH it per server/per item and record it in their results. It must
    never escape an automation cycle.
    """

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service_name = service_name
        self.status_code = status_code


class CycleInProgressError(DomainException):
    """Raised when a manual cycle is requested while another cycle is running.

    Reported straight back to the caller. Never queued, never retried.
    """

    def __init__(self, message: str = "An automation cycle is already in progress") -> None:
        super().__init__(message)


class PersistenceError(DomainException):
    """Raised when the activity log or config store cannot be read or written."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Persistence failure during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class CredentialDecryptionError(DomainException):
    """Raised when a stored credential cannot be decrypted.

    Wrong key or corrupted envelope. Never return garbage plaintext instead.
    """

    pass


__all__ = [
    "ConfigurationError",
    "CredentialDecryptionError",
    "CycleInProgressError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "PersistenceError",
    "ValidationException",
]
