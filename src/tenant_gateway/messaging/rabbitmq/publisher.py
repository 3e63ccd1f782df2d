"""RabbitMQPublisher — persistent JSON messages with one reconnect-and-retry."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import aio_pika

from ...exceptions import MessagingConnectionError, MessagingSerializationError
from ..identity import generate_message_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from .connection import RabbitMQConnectionManager

_logger = logging.getLogger(__name__)


def _message_to_payload(message: Any) -> Any:
    """Return the JSON-ready payload for *message* (envelope, model or dict)."""
    if hasattr(message, "to_payload"):
        return message.to_payload()
    if hasattr(message, "model_dump"):
        return message.model_dump(mode="json", by_alias=True)
    if isinstance(message, Mapping):
        return dict(message)
    return message


class RabbitMQPublisher:
    """Publishes to a named queue through the default exchange.

    Every message is persistent and carries a ``message_id`` for consumer-side
    deduplication. A failed send discards the connection, reconnects exactly
    once and retries the same message (same id) once.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        id_factory: Callable[[Any], str] = generate_message_id,
    ) -> None:
        """Configure publisher.

        Args:
            connection: Shared connection manager.
            id_factory: Builds the ``message_id`` from the payload.
        """
        self._connection = connection
        self._id_factory = id_factory

    async def publish(self, queue_name: str, message: Any) -> bool:
        """Publish *message* to *queue_name* and return True once sent.

        Raises:
            MessagingSerializationError: if the payload is not JSON-serializable.
            MessagingConnectionError: if the broker is unreachable, or the
                retry after one reconnect also fails.
        """
        payload = _message_to_payload(message)
        try:
            body = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e
        message_id = self._id_factory(payload)

        if not self._connection.is_connected:
            await self._connection.connect()

        try:
            await self._send(queue_name, body, message_id)
        except Exception as first:  # noqa: BLE001
            _logger.error("Error sending message to queue %s: %s", queue_name, first)
            await self._connection.reset()
            try:
                await self._connection.connect()
                await self._send(queue_name, body, message_id)
            except Exception as e:
                raise MessagingConnectionError(
                    f"Publish to {queue_name!r} failed after reconnect: {e}"
                ) from e

        self._connection.schedule_queue_metrics_refresh()
        return True

    async def _send(self, queue_name: str, body: bytes, message_id: str) -> None:
        await self._connection.channel.default_exchange.publish(
            aio_pika.Message(
                body=body,
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                message_id=message_id,
            ),
            routing_key=queue_name,
        )

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()
