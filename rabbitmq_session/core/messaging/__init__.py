"""Messaging session over a blocking RabbitMQ connection."""

from .serialization import JsonPayload, decode_body, encode_payload
from .session import MessagingSession, open_session
from .topology import Topology

__all__ = [
    "MessagingSession",
    "open_session",
    "Topology",
    "JsonPayload",
    "encode_payload",
    "decode_body",
]
