"""RabbitMQ transport: connection lifecycle, publisher and consumer."""

from __future__ import annotations

from .connection import ConnectionState, RabbitMQConnectionManager
from .consumer import DeliveryProperties, RabbitMQConsumer
from .publisher import RabbitMQPublisher

__all__ = [
    "ConnectionState",
    "DeliveryProperties",
    "RabbitMQConnectionManager",
    "RabbitMQConsumer",
    "RabbitMQPublisher",
]
