"""GatewayMetrics — Prometheus collectors for uploads, downloads and queues.

Collectors:
  - ``upload_requests_total{status, owner_id}`` / ``upload_bytes_total{status, owner_id}``
  - ``download_requests_total{status, owner_id}`` / ``download_bytes_total{status, owner_id}``
  - ``active_uploads_current`` / ``active_downloads_current``
  - ``rabbitmq_queue_size{queue}``
  - ``queue_messages_total{queue, outcome}``

A registry built here also carries the process, platform and GC collectors
plus a ``target_info{app}`` sample naming the service.

Emission never raises: a failing label call is logged at debug level.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

_logger = logging.getLogger(__name__)


class GatewayMetrics:
    """Owns every collector the gateway emits, bound to one registry.

    Pass a fresh ``CollectorRegistry`` per instance in tests; the process
    default is a private registry so repeated construction never collides.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        app_name: str = "downloader-service",
    ) -> None:
        if registry is None:
            registry = CollectorRegistry()
            ProcessCollector(registry=registry)
            PlatformCollector(registry=registry)
            GCCollector(registry=registry)
        self.registry = registry
        self.app_name = app_name
        self.registry.set_target_info({"app": app_name})
        labels = ["status", "owner_id"]
        self.upload_requests = Counter(
            "upload_requests_total",
            "Total number of upload requests",
            labels,
            registry=self.registry,
        )
        self.upload_bytes = Counter(
            "upload_bytes_total",
            "Total number of bytes uploaded",
            labels,
            registry=self.registry,
        )
        self.download_requests = Counter(
            "download_requests_total",
            "Total number of download requests",
            labels,
            registry=self.registry,
        )
        self.download_bytes = Counter(
            "download_bytes_total",
            "Total number of bytes downloaded",
            labels,
            registry=self.registry,
        )
        self.active_uploads = Gauge(
            "active_uploads_current",
            "Number of uploads currently being processed",
            registry=self.registry,
        )
        self.active_downloads = Gauge(
            "active_downloads_current",
            "Number of downloads currently being processed",
            registry=self.registry,
        )
        self.queue_size = Gauge(
            "rabbitmq_queue_size",
            "Number of messages in RabbitMQ queue",
            ["queue"],
            registry=self.registry,
        )
        self.queue_messages = Counter(
            "queue_messages_total",
            "Consumed queue messages by outcome",
            ["queue", "outcome"],
            registry=self.registry,
        )

    @contextmanager
    def track_upload(self) -> Iterator[None]:
        """Hold the active-uploads gauge up for the duration of the block."""
        self._safe(self.active_uploads.inc)
        try:
            yield
        finally:
            self._safe(self.active_uploads.dec)

    @contextmanager
    def track_download(self) -> Iterator[None]:
        """Hold the active-downloads gauge up for the duration of the block."""
        self._safe(self.active_downloads.inc)
        try:
            yield
        finally:
            self._safe(self.active_downloads.dec)

    def record_upload(self, status: str, owner_id: str, size: int = 0) -> None:
        labels = {"status": status, "owner_id": owner_id}
        self._safe(lambda: self.upload_requests.labels(**labels).inc())
        if size > 0:
            self._safe(lambda: self.upload_bytes.labels(**labels).inc(size))

    def record_download(self, status: str, owner_id: str, size: int = 0) -> None:
        labels = {"status": status, "owner_id": owner_id}
        self._safe(lambda: self.download_requests.labels(**labels).inc())
        if size > 0:
            self._safe(lambda: self.download_bytes.labels(**labels).inc(size))

    def set_queue_size(self, queue: str, count: int) -> None:
        self._safe(lambda: self.queue_size.labels(queue=queue).set(count))

    def record_message(self, queue: str, outcome: str) -> None:
        self._safe(lambda: self.queue_messages.labels(queue=queue, outcome=outcome).inc())

    def render(self) -> tuple[bytes, str]:
        """Return the exposition payload and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

    @staticmethod
    def _safe(emit: Callable[[], object]) -> None:
        try:
            emit()
        except Exception:  # noqa: BLE001
            _logger.debug("Failed to emit metric", exc_info=True)
