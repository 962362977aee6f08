"""Error taxonomy for messaging sessions."""

from typing import Optional


class MessagingError(Exception):
    """Base class for every error raised by a messaging session."""

    def __init__(
        self,
        message: str,
        reply_code: Optional[int] = None,
        reply_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.reply_code = reply_code
        self.reply_text = reply_text

    @classmethod
    def from_amqp(cls, message: str, error: Exception) -> "MessagingError":
        """Wrap a pika exception, keeping the broker reply when it has one."""
        return cls(
            f"{message}: {error}",
            reply_code=getattr(error, "reply_code", None),
            reply_text=getattr(error, "reply_text", None),
        )


class BrokerConnectionError(MessagingError, ConnectionError):
    """Broker unreachable or credentials rejected."""


class ConfigurationError(MessagingError):
    """A required topology field is missing or has the wrong type."""


class TopologyError(MessagingError):
    """The broker rejected an exchange/queue declaration or binding."""


class SerializationError(MessagingError):
    """The payload cannot be encoded to (or decoded from) JSON."""


class PublishError(MessagingError):
    """The broker rejected a publish."""


class ConsumeError(MessagingError):
    """The broker rejected consumer registration."""


class AlreadyClosedError(MessagingError):
    """The session, its channel or its connection is already closed."""
