"""Shared enums used across the package."""

from enum import Enum


class SessionState(str, Enum):
    """Messaging session lifecycle state."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    BOUND = "bound"
    SENDING = "sending"
    LISTENING = "listening"
    CLOSED = "closed"
