"""TenantObjectStorage — tenant-prefixed put/get/delete/list against one bucket."""

from __future__ import annotations

import builtins
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from ..exceptions import AccessDeniedError, ObjectNotFoundError, StorageError
from ..observability.metrics import GatewayMetrics
from .access import Requester, authorize, owner_prefix
from .models import FileUpload, RetrievedObject, StorageObject, StoredObject

if TYPE_CHECKING:
    from .connection import S3ConnectionManager

_logger = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})
_MISSING_KEY_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_BUCKET_RACE_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})


def _error_code(exc: BaseException) -> str:
    """Extract the S3 error code (or HTTP status) from a client error."""
    response = getattr(exc, "response", None) or {}
    code = response.get("Error", {}).get("Code")
    if code:
        return str(code)
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(status) if status else ""


def _header_safe(value: str) -> str:
    """S3 user metadata travels as HTTP headers and must stay ASCII."""
    return quote(value, safe=" @._-+:,")


class TenantObjectStorage:
    """Storage access layer for a single bucket shared by all tenants.

    Keys are ``"<owner id>/<epoch ms>-<original name>"``. Reads, deletes and
    listings pass through ``authorize``; a failed check raises
    ``AccessDeniedError`` before any call reaches the store.
    """

    def __init__(
        self,
        connection: S3ConnectionManager,
        bucket: str,
        *,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._connection = connection
        self._bucket = bucket
        self._metrics = metrics or GatewayMetrics()

    @classmethod
    async def create(
        cls,
        connection: S3ConnectionManager,
        bucket: str,
        *,
        metrics: GatewayMetrics | None = None,
    ) -> TenantObjectStorage:
        """Build the storage layer and make sure its bucket exists.

        Raises:
            StorageError: if the bucket can neither be found nor created.
        """
        storage = cls(connection, bucket, metrics=metrics)
        await storage.ensure_container_exists()
        return storage

    @property
    def bucket(self) -> str:
        return self._bucket

    async def ensure_container_exists(self) -> bool:
        """Create the bucket if missing. Returns True if this call created it."""
        client = await self._connection.get_client()
        try:
            await client.head_bucket(Bucket=self._bucket)
            return False
        except Exception as e:
            if _error_code(e) not in _MISSING_BUCKET_CODES:
                raise StorageError(
                    f"Cannot check bucket {self._bucket!r}: {e}"
                ) from e

        kwargs: dict[str, Any] = {"Bucket": self._bucket}
        region = self._connection.region_name
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            await client.create_bucket(**kwargs)
        except Exception as e:
            if _error_code(e) in _BUCKET_RACE_CODES:
                _logger.info("Bucket %s was created concurrently", self._bucket)
                return False
            raise StorageError(f"Cannot create bucket {self._bucket!r}: {e}") from e
        _logger.info("Created bucket %s", self._bucket)
        return True

    async def list(self, requester: Requester) -> builtins.list[StorageObject]:
        """List objects visible to *requester*.

        Never raises: a listing failure is logged and yields an empty list.
        """
        prefix = "" if requester.is_admin else f"{requester.id}/"
        try:
            client = await self._connection.get_client()
            paginator = client.get_paginator("list_objects_v2")
            objects: builtins.list[StorageObject] = []
            async for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for item in page.get("Contents", []) or []:
                    key = item["Key"]
                    if not authorize(key, requester.id, requester.role):
                        continue
                    objects.append(
                        StorageObject(
                            key=key,
                            size=int(item.get("Size", 0)),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except Exception:  # noqa: BLE001
            _logger.exception("Error listing objects in %s", self._bucket)
            return []
        return objects

    async def store(self, file: FileUpload, owner: Requester) -> StoredObject:
        """Write *file* under *owner*'s prefix.

        Raises:
            ValidationError: if the owner id cannot be used as a prefix.
            StorageError: if the write fails.
        """
        key = f"{owner_prefix(owner.id)}{int(time.time() * 1000)}-{file.original_name}"
        metadata = {
            "owner-id": owner.id,
            "owner-name": owner.name or "",
            "owner-email": owner.email or "",
            "original-name": file.original_name,
        }
        metadata = {k: _header_safe(v) for k, v in metadata.items()}

        with self._metrics.track_upload():
            try:
                client = await self._connection.get_client()
                await client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=file.content,
                    ContentType=file.mime_type,
                    Metadata=metadata,
                )
            except Exception as e:
                self._metrics.record_upload("error", owner.id)
                _logger.error("Error uploading %s: %s", key, e)
                raise StorageError("Failed to upload file") from e
            self._metrics.record_upload("success", owner.id, file.size)

        return StoredObject(
            key=key,
            location=self._location(key),
            mime_type=file.mime_type,
            metadata=metadata,
        )

    async def retrieve(self, key: str, requester: Requester) -> RetrievedObject:
        """Open *key* for reading.

        Raises:
            AccessDeniedError: if the key is outside the requester's tenant.
            ObjectNotFoundError: if the key does not exist.
            StorageError: for any other store failure.
        """
        self._require_access(key, requester)
        with self._metrics.track_download():
            try:
                client = await self._connection.get_client()
                response = await client.get_object(Bucket=self._bucket, Key=key)
            except Exception as e:
                self._metrics.record_download("error", requester.id)
                if _error_code(e) in _MISSING_KEY_CODES:
                    raise ObjectNotFoundError(key) from e
                _logger.error("Error downloading %s: %s", key, e)
                raise StorageError("Failed to download file") from e

            length = response.get("ContentLength")
            self._metrics.record_download(
                "success", requester.id, int(length) if length else 0
            )

        return RetrievedObject(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType"),
            content_length=int(length) if length is not None else None,
            last_modified=response.get("LastModified"),
            metadata=dict(response.get("Metadata") or {}),
        )

    async def remove(self, key: str, requester: Requester) -> None:
        """Delete *key*.

        Raises:
            AccessDeniedError: if the key is outside the requester's tenant.
            StorageError: if the delete fails.
        """
        self._require_access(key, requester)
        try:
            client = await self._connection.get_client()
            await client.delete_object(Bucket=self._bucket, Key=key)
        except Exception as e:
            _logger.error("Error deleting %s: %s", key, e)
            raise StorageError("Failed to delete file") from e

    def check_access(self, key: str, requester: Requester) -> bool:
        return authorize(key, requester.id, requester.role)

    async def health_check(self) -> bool:
        try:
            client = await self._connection.get_client()
            await client.head_bucket(Bucket=self._bucket)
            return True
        except Exception:  # noqa: BLE001
            return False

    def _require_access(self, key: str, requester: Requester) -> None:
        if not authorize(key, requester.id, requester.role):
            _logger.warning("Access denied: %s -> %s", requester.id, key)
            raise AccessDeniedError(key, requester.id)

    def _location(self, key: str) -> str:
        endpoint = (self._connection.endpoint_url or "").rstrip("/")
        return f"{endpoint}/{self._bucket}/{key}"
