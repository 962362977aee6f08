"""
Queue Listener CLI

Consumes the queue named by RABBITMQ_QUEUE (bound to RABBITMQ_EXCHANGE) and
logs every decoded message. SIGINT/SIGTERM stop the loop cleanly.
"""

import logging
import signal
import sys

from rabbitmq_session.core.config import Settings, get_settings
from rabbitmq_session.core.exceptions import MessagingError, SerializationError
from rabbitmq_session.core.logging import (
    log_shutdown_info,
    log_startup_info,
    setup_logging,
)
from rabbitmq_session.core.messaging.serialization import decode_body
from rabbitmq_session.core.messaging.session import MessagingSession

logger = logging.getLogger(__name__)


def log_message(channel, method, properties, body):
    """Log one delivered message."""
    try:
        payload = decode_body(body)
    except SerializationError as e:
        logger.warning(f"Received non-JSON message ({len(body)} bytes): {e}")
        return
    logger.info(f"Received message on {method.routing_key!r}: {payload}")


def build_session(settings: Settings) -> MessagingSession:
    """Open a session configured with the listener topology from settings."""
    session = MessagingSession(settings)
    try:
        (
            session.set_exchange(settings.RABBITMQ_EXCHANGE or "")
            .set_queue(settings.RABBITMQ_QUEUE or "")
            .set_routing_key(settings.RABBITMQ_ROUTING_KEY)
            .set_consumer_tag(settings.RABBITMQ_CONSUMER_TAG)
            .set_type(settings.RABBITMQ_EXCHANGE_TYPE)
        )
    except MessagingError:
        session.close()
        raise
    return session


def main():
    """Main entry point for the queue listener."""
    setup_logging()
    settings = get_settings()

    try:
        log_startup_info("Queue Listener")
        session = build_session(settings)

        def handle_signal(signum, frame):
            logger.info(f"Received signal {signum}, stopping listener...")
            session.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        session.listen(log_message)
        log_shutdown_info("Queue Listener")
    except MessagingError as e:
        logger.error(f"Queue listener failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
