"""Exchange/queue/binding configuration value object."""

from typing import Any, List, Optional

from pika.exchange_type import ExchangeType
from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, ValidationError

from rabbitmq_session.core.exceptions import ConfigurationError


class Topology(BaseModel):
    """Topology a session declares on the broker.

    Instances are immutable; the session swaps in a validated copy on every
    setter call.
    """

    model_config = ConfigDict(frozen=True)

    exchange: Optional[StrictStr] = None
    queue: Optional[StrictStr] = None
    routing_key: StrictStr = ""
    # Empty tag lets the broker assign one
    consumer_tag: StrictStr = ""
    exchange_type: ExchangeType = ExchangeType.direct

    durable: StrictBool = True
    passive: StrictBool = False
    auto_delete: StrictBool = False
    exclusive: StrictBool = False

    def with_changes(self, **fields: Any) -> "Topology":
        """Return a validated copy with ``fields`` replaced."""
        try:
            return Topology.model_validate({**self.model_dump(), **fields})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid topology configuration: {e}") from e

    def missing_names(self) -> List[str]:
        """Names of the required fields that are still unset."""
        return [name for name in ("exchange", "queue") if not getattr(self, name)]

    def require_names(self) -> None:
        """Raise ConfigurationError unless exchange and queue are both set."""
        missing = self.missing_names()
        if missing:
            raise ConfigurationError(
                f"Topology not configured, missing: {', '.join(missing)}"
            )

    def require_queue(self) -> None:
        if not self.queue:
            raise ConfigurationError("Topology not configured, missing: queue")

    def require_exchange(self) -> None:
        if not self.exchange:
            raise ConfigurationError("Topology not configured, missing: exchange")
