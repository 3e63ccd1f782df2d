"""Exception hierarchy shared by messaging, storage and access control."""

from __future__ import annotations


class GatewayError(Exception):
    """Root exception for the tenant gateway."""


class ConfigurationError(GatewayError):
    """Raised when settings are missing or invalid."""


class MessagingError(GatewayError):
    """Base class for all broker-related errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class MessagingSerializationError(MessagingError):
    """Raised when a message body cannot be encoded or decoded."""


class ValidationError(GatewayError):
    """Raised when an upload envelope is malformed.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class AccessDeniedError(GatewayError):
    """Raised when a requester may not touch a key outside its tenant prefix."""

    def __init__(self, key: str, requester_id: str) -> None:
        self.key = key
        self.requester_id = requester_id
        super().__init__(f"Access denied to {key!r} for requester {requester_id!r}")


class StorageError(GatewayError):
    """Raised when an object-store operation fails."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object {key!r} not found")
