"""Topology, publish and consume helpers over a single RabbitMQ channel."""

from pika.exchange_type import ExchangeType

from rabbitmq_session.core.config import Settings, get_settings
from rabbitmq_session.core.enums import SessionState
from rabbitmq_session.core.exceptions import (
    AlreadyClosedError,
    BrokerConnectionError,
    ConfigurationError,
    ConsumeError,
    MessagingError,
    PublishError,
    SerializationError,
    TopologyError,
)
from rabbitmq_session.core.messaging import (
    JsonPayload,
    MessagingSession,
    Topology,
    decode_body,
    encode_payload,
    open_session,
)

__version__ = "0.1.0"

__all__ = [
    "ExchangeType",
    "Settings",
    "get_settings",
    "SessionState",
    "MessagingSession",
    "open_session",
    "Topology",
    "JsonPayload",
    "encode_payload",
    "decode_body",
    "MessagingError",
    "BrokerConnectionError",
    "ConfigurationError",
    "TopologyError",
    "SerializationError",
    "PublishError",
    "ConsumeError",
    "AlreadyClosedError",
]
