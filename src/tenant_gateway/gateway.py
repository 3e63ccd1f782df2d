"""FileGateway — the operations the HTTP layer calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from .config import GatewaySettings
from .consumer import UploadConsumer
from .exceptions import ConfigurationError
from .health import HealthRegistry, MessageBrokerHealthCheck, ObjectStoreHealthCheck
from .messaging.idempotency import DeduplicationCache
from .messaging.rabbitmq import (
    RabbitMQConnectionManager,
    RabbitMQConsumer,
    RabbitMQPublisher,
)
from .messaging.retry import RetryPolicy
from .observability.metrics import GatewayMetrics
from .observability.structured_logging import configure_logging
from .storage.connection import S3ConnectionManager
from .storage.service import TenantObjectStorage

if TYPE_CHECKING:
    from .messaging.envelope import UploadEnvelope
    from .storage.access import Requester
    from .storage.models import RetrievedObject, StorageObject

_logger = logging.getLogger(__name__)


class FileGateway:
    """Wires broker, consumer and storage together behind four operations.

    Uploads are published to the upload queue and written later by the
    ``UploadConsumer``; listing, downloads and deletes go straight to the
    storage layer.
    """

    def __init__(
        self,
        *,
        connection: RabbitMQConnectionManager,
        publisher: RabbitMQPublisher,
        consumer: RabbitMQConsumer,
        storage: TenantObjectStorage,
        upload_consumer: UploadConsumer,
        metrics: GatewayMetrics,
        s3: S3ConnectionManager | None = None,
        upload_queue: str = "file_upload_queue",
    ) -> None:
        self._connection = connection
        self._publisher = publisher
        self._consumer = consumer
        self._storage = storage
        self._upload_consumer = upload_consumer
        self._metrics = metrics
        self._s3 = s3
        self._upload_queue = upload_queue
        self._health = HealthRegistry()
        self._health.register("rabbitmq", MessageBrokerHealthCheck(connection))
        self._health.register("object_store", ObjectStoreHealthCheck(storage))

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings | None = None,
        *,
        metrics: GatewayMetrics | None = None,
    ) -> FileGateway:
        """Build a gateway from configuration (environment by default).

        Raises:
            ConfigurationError: if the environment holds invalid values.
        """
        if settings is None:
            try:
                settings = GatewaySettings()
            except PydanticValidationError as e:
                raise ConfigurationError(str(e)) from e
        configure_logging(settings.log_level)
        metrics = metrics or GatewayMetrics(app_name=settings.app_name)
        retry_policy = RetryPolicy(
            base_delay=settings.reconnect_delay_seconds,
            max_delay=max(settings.reconnect_delay_seconds, 60.0),
        )
        connection = RabbitMQConnectionManager(
            settings.rabbitmq_url,
            queues=(settings.upload_queue, settings.download_queue),
            retry_policy=retry_policy,
            metrics=metrics,
            metrics_interval=settings.queue_metrics_interval_seconds,
        )
        s3 = S3ConnectionManager(
            settings.minio_endpoint,
            region_name=settings.minio_region,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
        )
        storage = TenantObjectStorage(s3, settings.minio_bucket, metrics=metrics)
        return cls(
            connection=connection,
            publisher=RabbitMQPublisher(connection),
            consumer=RabbitMQConsumer(
                connection,
                prefetch_count=settings.prefetch_count,
                retry_policy=retry_policy,
                metrics=metrics,
            ),
            storage=storage,
            upload_consumer=UploadConsumer(
                storage,
                queue_name=settings.upload_queue,
                dedup=DeduplicationCache(
                    ttl_ms=settings.dedup_ttl_ms,
                    max_entries=settings.dedup_max_entries,
                ),
            ),
            metrics=metrics,
            s3=s3,
            upload_queue=settings.upload_queue,
        )

    async def start(self) -> None:
        """Provision the bucket, connect to the broker and start consuming."""
        await self._storage.ensure_container_exists()
        attempts = await self._connection.connect_with_retry()
        _logger.info("Broker connected after %d attempt(s)", attempts)
        await self._upload_consumer.start(self._consumer)

    async def close(self) -> None:
        await self._consumer.stop()
        await self._connection.close()
        if self._s3 is not None:
            await self._s3.close()

    async def publish_upload(self, envelope: UploadEnvelope) -> bool:
        """Queue *envelope* for asynchronous storage.

        Raises:
            MessagingConnectionError: if publishing fails after one reconnect.
        """
        return await self._publisher.publish(self._upload_queue, envelope)

    async def list_objects(self, requester: Requester) -> list[StorageObject]:
        return await self._storage.list(requester)

    async def retrieve_object(self, key: str, requester: Requester) -> RetrievedObject:
        """Raises ``AccessDeniedError`` or ``ObjectNotFoundError``."""
        return await self._storage.retrieve(key, requester)

    async def delete_object(self, key: str, requester: Requester) -> None:
        """Raises ``AccessDeniedError``."""
        await self._storage.remove(key, requester)

    async def health(self) -> dict[str, Any]:
        return await self._health.status()

    def render_metrics(self) -> tuple[bytes, str]:
        """Prometheus exposition payload and content type for ``/metrics``."""
        return self._metrics.render()
