"""Unit tests for RabbitMQPublisher with mocked connection (no real broker)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import aio_pika
import pytest

from tenant_gateway.exceptions import MessagingConnectionError, MessagingSerializationError
from tenant_gateway.messaging.envelope import UploadEnvelope
from tenant_gateway.messaging.rabbitmq.connection import RabbitMQConnectionManager
from tenant_gateway.messaging.rabbitmq.publisher import RabbitMQPublisher
from tenant_gateway.messaging.retry import RetryPolicy


@pytest.fixture
def mock_connection() -> MagicMock:
    conn = MagicMock()
    conn.is_connected = True
    conn.connect = AsyncMock()
    conn.reset = AsyncMock()
    conn.health_check = AsyncMock(return_value=True)
    conn.channel.default_exchange.publish = AsyncMock()
    return conn


@pytest.fixture
def publisher(mock_connection: MagicMock) -> RabbitMQPublisher:
    return RabbitMQPublisher(mock_connection, id_factory=lambda _payload: "msg-1")


def _published(mock_connection: MagicMock) -> list[aio_pika.Message]:
    publish = mock_connection.channel.default_exchange.publish
    return [c.args[0] for c in publish.await_args_list]


@pytest.mark.asyncio
async def test_publish_envelope_as_persistent_json(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    envelope = UploadEnvelope.build(b"hi", original_name="a.txt", owner_id="u1")
    assert await publisher.publish("file_upload_queue", envelope) is True

    publish = mock_connection.channel.default_exchange.publish
    publish.assert_awaited_once()
    assert publish.call_args.kwargs["routing_key"] == "file_upload_queue"
    message = publish.call_args.args[0]
    assert message.delivery_mode == aio_pika.DeliveryMode.PERSISTENT
    assert message.content_type == "application/json"
    assert message.message_id == "msg-1"
    body = json.loads(message.body)
    assert body["file"]["originalname"] == "a.txt"
    assert body["metadata"]["userId"] == "u1"
    mock_connection.connect.assert_not_awaited()
    mock_connection.schedule_queue_metrics_refresh.assert_called_once()


@pytest.mark.asyncio
async def test_publish_connects_when_disconnected(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    mock_connection.is_connected = False
    await publisher.publish("q", {"a": 1})
    mock_connection.connect.assert_awaited_once()


@pytest.mark.asyncio
async def test_publish_reconnects_once_and_retries_with_same_id(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    publish = mock_connection.channel.default_exchange.publish
    publish.side_effect = [ConnectionError("channel closed"), None]

    assert await publisher.publish("q", {"a": 1}) is True

    mock_connection.reset.assert_awaited_once()
    mock_connection.connect.assert_awaited_once()
    ids = [m.message_id for m in _published(mock_connection)]
    assert ids == ["msg-1", "msg-1"]


@pytest.mark.asyncio
async def test_publish_raises_after_failed_retry(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    publish = mock_connection.channel.default_exchange.publish
    publish.side_effect = ConnectionError("broker gone")

    with pytest.raises(MessagingConnectionError, match="broker gone") as exc_info:
        await publisher.publish("q", {"a": 1})

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert publish.await_count == 2
    mock_connection.schedule_queue_metrics_refresh.assert_not_called()


@pytest.mark.asyncio
async def test_publish_raises_when_reconnect_fails(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    mock_connection.channel.default_exchange.publish.side_effect = ConnectionError("x")
    mock_connection.connect.side_effect = MessagingConnectionError("refused")
    with pytest.raises(MessagingConnectionError):
        await publisher.publish("q", {"a": 1})
    assert mock_connection.channel.default_exchange.publish.await_count == 1


@pytest.mark.asyncio
async def test_publish_unserializable_payload_raises(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    with pytest.raises(MessagingSerializationError) as exc_info:
        await publisher.publish("q", {"value": object()})
    assert exc_info.value.__cause__ is not None
    mock_connection.channel.default_exchange.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_after_forced_disconnect_connects_exactly_once() -> None:
    connections = []
    for _ in range(2):
        conn = MagicMock()
        conn.is_closed = False
        channel = MagicMock()
        channel.is_closed = False
        channel.declare_queue = AsyncMock()
        channel.close = AsyncMock()
        channel.default_exchange.publish = AsyncMock()
        conn.channel = AsyncMock(return_value=channel)
        conn.close = AsyncMock()
        connections.append(conn)

    manager = RabbitMQConnectionManager(
        queues=("file_upload_queue",),
        retry_policy=RetryPolicy(base_delay=0.0, max_delay=0.0),
    )
    publisher = RabbitMQPublisher(manager)
    with patch("aio_pika.connect", new=AsyncMock(side_effect=connections)) as connect:
        await manager.connect()
        await manager.reset()
        assert await publisher.publish("file_upload_queue", {"a": 1}) is True
    assert connect.await_count == 2
    second_channel = connections[1].channel.return_value
    second_channel.default_exchange.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_health_check_delegates_to_connection(
    publisher: RabbitMQPublisher, mock_connection: MagicMock
) -> None:
    assert await publisher.health_check() is True
    mock_connection.health_check.return_value = False
    assert await publisher.health_check() is False
