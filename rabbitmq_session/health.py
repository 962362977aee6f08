"""Broker health check."""

from typing import Any, Dict, Optional

from rabbitmq_session.core.config import Settings
from rabbitmq_session.core.messaging.session import open_session


def messaging_health(
    settings: Optional[Settings] = None,
    queue: Optional[str] = None,
    max_queue_depth: int = 100,
) -> Dict[str, Any]:
    """Health check for messaging infrastructure.

    Opens a short-lived session and, when ``queue`` is given, reports its
    depth. Consider the queue unhealthy at ``max_queue_depth`` messages or
    more. Never raises.
    """
    try:
        with open_session(settings) as session:
            broker_connected = session.is_connected()
            result: Dict[str, Any] = {"broker_connected": broker_connected}
            messaging_healthy = broker_connected

            if queue:
                session.set_queue(queue)
                queue_count = session.get_count_messages()
                queue_healthy = queue_count < max_queue_depth
                result.update(
                    queue=queue,
                    queue_message_count=queue_count,
                    queue_healthy=queue_healthy,
                )
                messaging_healthy = messaging_healthy and queue_healthy

        result["status"] = "healthy" if messaging_healthy else "unhealthy"
        result["messaging_healthy"] = messaging_healthy
        return result

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "broker_connected": False,
            "messaging_healthy": False,
        }
