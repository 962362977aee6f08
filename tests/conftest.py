"""Main conftest.py for rabbitmq-session tests."""

import os
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from rabbitmq_session.core.config import Settings


def pytest_collection_modifyitems(config, items):
    """Skip broker-backed tests unless RABBITMQ_INTEGRATION=1."""
    if os.getenv("RABBITMQ_INTEGRATION") == "1":
        return
    skip_integration = pytest.mark.skip(
        reason="set RABBITMQ_INTEGRATION=1 to run against a real RabbitMQ"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def settings():
    """Settings with explicit values, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        RABBITMQ_HOST="localhost",
        RABBITMQ_PORT=5672,
        RABBITMQ_USER="test_user",
        RABBITMQ_PASSWORD="test_password",
        RABBITMQ_POLL_INTERVAL=0.5,
    )


@pytest.fixture
def broker():
    """Patch pika.BlockingConnection with an open connection and channel.

    ``close_order`` records which resources were closed, in order.
    """
    with patch(
        "rabbitmq_session.core.messaging.session.pika.BlockingConnection"
    ) as mock_connection_class:
        mock_connection = Mock()
        mock_channel = Mock()
        close_order = []

        mock_connection.is_open = True
        mock_connection.is_closed = False
        mock_channel.is_open = True
        mock_channel.is_closed = False

        def close_channel():
            mock_channel.is_open = False
            mock_channel.is_closed = True
            close_order.append("channel")

        def close_connection():
            mock_connection.is_open = False
            mock_connection.is_closed = True
            close_order.append("connection")

        mock_channel.close.side_effect = close_channel
        mock_connection.close.side_effect = close_connection
        mock_connection.channel.return_value = mock_channel
        mock_connection_class.return_value = mock_connection

        yield SimpleNamespace(
            connection_class=mock_connection_class,
            connection=mock_connection,
            channel=mock_channel,
            close_order=close_order,
        )


@pytest.fixture
def session(broker, settings):
    """Session on the mocked broker, configured for the orders topology."""
    from rabbitmq_session.core.messaging.session import MessagingSession

    session = MessagingSession(settings)
    session.set_exchange("orders").set_queue("orders.created").set_routing_key(
        "created"
    )
    return session
