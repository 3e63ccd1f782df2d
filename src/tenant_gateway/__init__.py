"""Multi-tenant object storage behind a queue-backed upload pipeline."""

from __future__ import annotations

from .config import GatewaySettings, get_settings
from .consumer import UploadConsumer
from .exceptions import (
    AccessDeniedError,
    ConfigurationError,
    GatewayError,
    MessagingConnectionError,
    MessagingError,
    MessagingSerializationError,
    ObjectNotFoundError,
    StorageError,
    ValidationError,
)
from .gateway import FileGateway
from .messaging import DeduplicationCache, RetryPolicy, UploadEnvelope
from .storage import Requester, Role, TenantObjectStorage, authorize

__all__ = [
    "AccessDeniedError",
    "ConfigurationError",
    "DeduplicationCache",
    "FileGateway",
    "GatewayError",
    "GatewaySettings",
    "MessagingConnectionError",
    "MessagingError",
    "MessagingSerializationError",
    "ObjectNotFoundError",
    "Requester",
    "RetryPolicy",
    "Role",
    "StorageError",
    "TenantObjectStorage",
    "UploadConsumer",
    "UploadEnvelope",
    "ValidationError",
    "authorize",
    "get_settings",
]
