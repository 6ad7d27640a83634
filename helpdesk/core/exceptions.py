"""
Core Exceptions
================

Custom exceptions for the helpdesk intake pipeline.

Only StorageFailure is allowed to abort intake; the other conditions are
absorbed by the services into degraded-but-successful outcomes.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class StorageFailure(RepositoryException):
    """The persistent store could not complete an operation."""


class DuplicateIdentity(RepositoryException):
    """A natural key ((source, external_id), email, (source, source_id)) is already taken."""

    def __init__(self, key: Any, details: Optional[dict] = None):
        self.key = key
        super().__init__(f"Record with key {key!r} already exists", details)


class InvalidTransition(DomainException):
    """Requested ticket status is not reachable from the current one."""

    def __init__(
        self,
        ticket_id: str,
        current: str,
        attempted: str,
        reason: Optional[str] = None
    ):
        self.ticket_id = ticket_id
        self.current = current
        self.attempted = attempted
        message = f"Transition from {current} to {attempted} is not permitted for ticket {ticket_id}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            {"ticket_id": ticket_id, "current_state": current, "attempted_state": attempted}
        )


class TicketClosed(DomainException):
    """Ticket is resolved or closed and no longer accepts annotation."""

    def __init__(self, ticket_id: str, status: str):
        self.ticket_id = ticket_id
        self.status = status
        super().__init__(
            f"Ticket {ticket_id} is {status} and cannot be triaged",
            {"ticket_id": ticket_id, "status": status}
        )


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class ClassificationUnavailable(ExternalServiceException):
    """The scoring service failed or returned an unusable answer."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Classification Service", message, details)
