"""RabbitMQConsumer — prefetch-bounded consumption with ack / reject-without-requeue."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...exceptions import MessagingSerializationError
from ..retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from aio_pika.abc import AbstractIncomingMessage, AbstractQueue

    from ...observability.metrics import GatewayMetrics
    from .connection import RabbitMQConnectionManager

    MessageHandler = Callable[[Any, "DeliveryProperties"], Awaitable[Any]]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryProperties:
    """Broker-supplied properties of one delivery."""

    message_id: str | None = None
    content_type: str | None = None
    redelivered: bool = False
    headers: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, raw: AbstractIncomingMessage) -> DeliveryProperties:
        return cls(
            message_id=raw.message_id,
            content_type=raw.content_type,
            redelivered=bool(raw.redelivered),
            headers=dict(raw.headers or {}),
        )


def decode_body(body: bytes) -> Any:
    """Decode a UTF-8 JSON message body."""
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MessagingSerializationError(str(e)) from e


class RabbitMQConsumer:
    """Consumes named queues with manual acknowledgement.

    With the default prefetch of 1 the broker hands this consumer at most one
    unacknowledged message at a time, so a handler never races with itself.
    A handler that returns normally gets its message acked; one that raises
    gets it rejected without requeue (there is no dead-letter queue, the
    message is dropped). Subscriptions are re-established after a reconnect.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        prefetch_count: int = 1,
        retry_policy: RetryPolicy | None = None,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        """Configure consumer.

        Args:
            connection: Shared connection manager.
            prefetch_count: QoS prefetch.
            retry_policy: Delay schedule for failed subscribe attempts.
            metrics: If set, acks and rejects are counted per queue.
        """
        if prefetch_count < 1:
            raise ValueError("prefetch_count must be >= 1")
        self._connection = connection
        self._prefetch_count = prefetch_count
        self._retry_policy = retry_policy or RetryPolicy()
        self._metrics = metrics
        self._handlers: dict[str, MessageHandler] = {}
        self._consumer_tags: dict[str, tuple[AbstractQueue, str]] = {}
        self.subscribe_attempts = 0
        connection.add_reconnect_listener(self._resubscribe_all)

    async def subscribe(self, queue_name: str, handler: MessageHandler) -> None:
        """Start consuming *queue_name* with *handler*.

        A failed attempt resets the connection and is retried under the
        retry policy.
        """
        self._handlers[queue_name] = handler
        await self._retry_policy.run(
            lambda: self._consume(queue_name, handler),
            description=f"Subscribe to {queue_name}",
            on_failure=lambda _e: self._connection.reset(),
        )

    async def _consume(self, queue_name: str, handler: MessageHandler) -> None:
        self.subscribe_attempts += 1
        await self._connection.connect()
        channel = self._connection.channel
        await channel.set_qos(prefetch_count=self._prefetch_count)
        queue = await channel.declare_queue(queue_name, durable=True)

        async def on_message(raw: AbstractIncomingMessage) -> None:
            await self._dispatch(queue_name, handler, raw)

        tag = await queue.consume(on_message, no_ack=False)
        self._consumer_tags[queue_name] = (queue, tag)
        _logger.info(
            "Consumer registered for queue %s (prefetch=%d)",
            queue_name,
            self._prefetch_count,
        )

    async def _dispatch(
        self,
        queue_name: str,
        handler: MessageHandler,
        raw: AbstractIncomingMessage,
    ) -> None:
        _logger.debug("Received message from %s", queue_name)
        try:
            payload = decode_body(raw.body)
            await handler(payload, DeliveryProperties.from_message(raw))
        except Exception as e:  # noqa: BLE001
            _logger.error(
                "Error processing message from queue %s: %s; rejecting without requeue",
                queue_name,
                e,
            )
            self._count(queue_name, "rejected")
            try:
                await raw.reject(requeue=False)
            except Exception:  # noqa: BLE001
                _logger.exception("Failed to reject message from %s", queue_name)
            return

        self._count(queue_name, "acked")
        try:
            await raw.ack()
        except Exception:  # noqa: BLE001
            # Unacked messages return to the queue when the channel closes.
            _logger.exception("Failed to ack message from %s", queue_name)

    async def _resubscribe_all(self) -> None:
        for queue_name, handler in list(self._handlers.items()):
            await self.subscribe(queue_name, handler)

    async def stop(self) -> None:
        """Cancel every active consumer; errors are logged."""
        for queue_name, (queue, tag) in list(self._consumer_tags.items()):
            try:
                await queue.cancel(tag)
            except Exception:  # noqa: BLE001
                _logger.debug("Error cancelling consumer on %s", queue_name, exc_info=True)
        self._consumer_tags.clear()
        self._handlers.clear()

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()

    def _count(self, queue_name: str, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_message(queue_name, outcome)
