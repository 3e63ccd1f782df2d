"""UploadConsumer — turns upload queue messages into tenant-prefixed writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .messaging.envelope import UploadEnvelope, decode_buffer
from .messaging.idempotency import DeduplicationCache
from .messaging.identity import dedup_key
from .observability.structured_logging import message_log_context
from .storage.access import Requester
from .storage.models import FileUpload

if TYPE_CHECKING:
    from .messaging.rabbitmq.consumer import RabbitMQConsumer
    from .storage.service import TenantObjectStorage

_logger = logging.getLogger(__name__)

SKIPPED_DUPLICATE: dict[str, Any] = {"skipped": True, "reason": "duplicate"}


@dataclass
class _InFlight:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class UploadConsumer:
    """Handles upload envelopes delivered by the broker.

    Duplicate deliveries (same ``message_id``, or the same payload when the
    broker supplied none) inside the dedup window are acknowledged without
    touching storage. Any other failure propagates so the broker consumer
    rejects the message without requeue.

    Deliveries sharing an identity are processed one at a time, so with a
    prefetch above one a concurrent duplicate waits for the first attempt
    and then sees its dedup mark.
    """

    def __init__(
        self,
        storage: TenantObjectStorage,
        *,
        queue_name: str = "file_upload_queue",
        dedup: DeduplicationCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._queue_name = queue_name
        self._dedup = dedup or DeduplicationCache()
        self._log = logger or _logger
        self._in_flight: dict[str, _InFlight] = {}

    @property
    def dedup(self) -> DeduplicationCache:
        return self._dedup

    async def start(self, consumer: RabbitMQConsumer) -> None:
        """Subscribe this handler to the upload queue."""
        await consumer.subscribe(self._queue_name, self.handle)
        self._log.info("Message consumer initialized for uploads only")

    async def handle(self, message: Any, properties: Any = None) -> dict[str, Any]:
        """Process one upload message.

        Returns the stored object description, or ``{"skipped": True,
        "reason": "duplicate"}`` for a repeated delivery.

        Raises:
            ValidationError: for a malformed envelope.
            StorageError: if the write fails.
        """
        message_id = dedup_key(message, properties)
        async with self._claim(message_id):
            return await self._process(message, message_id)

    async def _process(self, message: Any, message_id: str) -> dict[str, Any]:
        with message_log_context(self._queue_name, message_id, self._log) as outcome:
            if self._dedup.is_duplicate(message_id):
                outcome.value = "skipped"
                self._log.info("Skipping duplicate message: %s", message_id[:20])
                return dict(SKIPPED_DUPLICATE)

            envelope = UploadEnvelope.from_payload(message)
            metadata = envelope.metadata.normalized()
            content = decode_buffer(envelope.file.buffer)

            owner = Requester(
                id=metadata.owner_id,
                role=metadata.role,
                name=metadata.name,
                email=metadata.email,
            )
            upload = FileUpload(
                content=content,
                original_name=envelope.file.original_name,
                mime_type=envelope.file.mime_type,
            )
            self._log.info(
                "Processing upload via queue: %s (%s)", upload.original_name, owner.id
            )
            stored = await self._storage.store(upload, owner)

            self._dedup.mark_processed(message_id)
            outcome.extra["key"] = stored.key
            self._log.info("Upload completed via queue: %s", stored.key.rsplit("/", 1)[-1])
            return stored.model_dump()

    async def handle_download(self, message: Any) -> dict[str, Any]:
        """Serve a legacy queued download request (metadata only).

        Downloads are served directly by the HTTP layer; this path remains so
        that stray messages on the old download queue are still answered.

        Raises:
            ValidationError: if ``key`` or ``user`` is missing or malformed.
            AccessDeniedError: if the key is outside the user's tenant.
        """
        if not isinstance(message, dict) or not message.get("key") or not message.get("user"):
            raise ValidationError("Invalid download message: missing key or user")
        key = str(message["key"])
        try:
            requester = Requester.model_validate(message["user"])
        except PydanticValidationError as e:
            errors: dict[str, list[str]] = {}
            for err in e.errors():
                field_name = ".".join(["user", *(str(p) for p in err["loc"])])
                errors.setdefault(field_name, []).append(err["msg"])
            raise ValidationError(errors) from e
        self._log.warning(
            "Download message received via queue for: %s", key.rsplit("/", 1)[-1]
        )
        retrieved = await self._storage.retrieve(key, requester)
        body = retrieved.body
        if hasattr(body, "close"):
            body.close()
        return {
            "key": retrieved.key,
            "content_type": retrieved.content_type,
            "content_length": retrieved.content_length,
            "last_modified": retrieved.last_modified,
            "metadata": retrieved.metadata,
        }

    @asynccontextmanager
    async def _claim(self, message_id: str) -> AsyncIterator[None]:
        state = self._in_flight.get(message_id)
        if state is None:
            state = self._in_flight[message_id] = _InFlight()
        state.holders += 1
        try:
            async with state.lock:
                yield
        finally:
            state.holders -= 1
            if state.holders == 0:
                self._in_flight.pop(message_id, None)
