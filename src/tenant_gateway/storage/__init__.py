"""Tenant-isolated object storage on an S3-compatible store."""

from __future__ import annotations

from .access import Requester, Role, authorize, owner_prefix, validate_owner_id
from .connection import S3ConnectionManager
from .models import FileUpload, RetrievedObject, StorageObject, StoredObject
from .service import TenantObjectStorage

__all__ = [
    "FileUpload",
    "Requester",
    "RetrievedObject",
    "Role",
    "S3ConnectionManager",
    "StorageObject",
    "StoredObject",
    "TenantObjectStorage",
    "authorize",
    "owner_prefix",
    "validate_owner_id",
]
