"""RabbitMQ messaging session: one connection, one channel, one topology."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generator,
    Iterator,
    Optional,
    Type,
    Union,
)

import pika
from pika.exceptions import (
    AMQPChannelError,
    AMQPConnectionError,
    ChannelClosed,
    ChannelClosedByBroker,
    ChannelWrongStateError,
    ConnectionWrongStateError,
)
from pika.exchange_type import ExchangeType

from rabbitmq_session.core.config import Settings
from rabbitmq_session.core.enums import SessionState
from rabbitmq_session.core.exceptions import (
    AlreadyClosedError,
    BrokerConnectionError,
    ConsumeError,
    MessagingError,
    PublishError,
    TopologyError,
)
from rabbitmq_session.core.messaging.serialization import CONTENT_TYPE, encode_payload
from rabbitmq_session.core.messaging.topology import Topology
from rabbitmq_session.core.observability.metrics import (
    log_connection_event,
    log_consume_event,
    log_counter_increment,
    log_gauge_set,
    log_histogram_record,
    log_topology_event,
)

if TYPE_CHECKING:
    from pika.adapters.blocking_connection import BlockingChannel

logger = logging.getLogger(__name__)

# AMQP reply code for a passive declare of a missing queue
NOT_FOUND = 404

MessageCallback = Callable[["BlockingChannel", Any, pika.BasicProperties, bytes], None]


@contextmanager
def _amqp_errors(error_cls: Type[MessagingError], action: str) -> Iterator[None]:
    """Translate pika exceptions raised while talking to the broker."""
    try:
        yield
    except AMQPConnectionError as e:
        logger.error(f"Connection error while {action}: {e}")
        log_connection_event("connection_lost", "rabbitmq", action=action, error=str(e))
        raise BrokerConnectionError.from_amqp(
            f"Connection error while {action}", e
        ) from e
    except AMQPChannelError as e:
        logger.error(f"Failed {action}: {e}")
        raise error_cls.from_amqp(f"Failed {action}", e) from e


class MessagingSession:
    """Declare topology, publish and consume over a single broker channel."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel: Optional["BlockingChannel"] = None
        self.topology = Topology()
        self.declared_topology: Optional[Topology] = None
        self._state = SessionState.UNCONFIGURED
        self._stop_event = threading.Event()
        self._connect()

    def _connect(self) -> None:
        """Open the connection and its channel."""
        host = self.settings.RABBITMQ_HOST
        try:
            self.connection = pika.BlockingConnection(
                pika.ConnectionParameters(
                    host=host,
                    port=self.settings.RABBITMQ_PORT,
                    virtual_host=self.settings.RABBITMQ_VHOST,
                    credentials=pika.PlainCredentials(
                        self.settings.RABBITMQ_USER, self.settings.RABBITMQ_PASSWORD
                    ),
                    heartbeat=self.settings.RABBITMQ_HEARTBEAT,
                    blocked_connection_timeout=self.settings.RABBITMQ_BLOCKED_CONNECTION_TIMEOUT,
                    connection_attempts=1,
                )
            )
        except AMQPConnectionError as e:
            logger.error(f"Failed to connect to RabbitMQ at {host}: {e}")
            log_connection_event("connection_failed", "rabbitmq", host=host, error=str(e))
            raise BrokerConnectionError.from_amqp(
                f"Failed to connect to RabbitMQ at {host}", e
            ) from e

        try:
            self.channel = self.connection.channel()
        except (AMQPChannelError, AMQPConnectionError) as e:
            logger.error(f"Failed to open channel on {host}: {e}")
            log_connection_event("channel_failed", "rabbitmq", host=host, error=str(e))
            self._safe_close_connection()
            raise BrokerConnectionError.from_amqp(
                f"Failed to open channel on {host}", e
            ) from e

        logger.info(f"Connected to RabbitMQ at {host}")
        log_connection_event("connected", "rabbitmq", host=host)

    @property
    def state(self) -> SessionState:
        return self._state

    def is_connected(self) -> bool:
        """Check if both the connection and the channel are open."""
        return (
            self.connection is not None
            and self.connection.is_open
            and self.channel is not None
            and self.channel.is_open
        )

    def _ensure_open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise AlreadyClosedError("Messaging session is closed")

    def _update(self, **fields: Any) -> None:
        self.topology = self.topology.with_changes(**fields)
        if self._state is SessionState.UNCONFIGURED:
            self._state = SessionState.CONFIGURED

    # Configuration

    def set_exchange(self, exchange: str) -> "MessagingSession":
        self._update(exchange=exchange)
        return self

    def set_queue(self, queue: str) -> "MessagingSession":
        self._update(queue=queue)
        return self

    def set_routing_key(self, routing_key: str) -> "MessagingSession":
        self._update(routing_key=routing_key)
        return self

    def set_consumer_tag(self, consumer_tag: str) -> "MessagingSession":
        self._update(consumer_tag=consumer_tag)
        return self

    def set_type(self, exchange_type: Union[ExchangeType, str]) -> "MessagingSession":
        """Set the exchange type (direct, fanout, topic or headers)."""
        self._update(exchange_type=exchange_type)
        return self

    def set_auto_delete(self, auto_delete: bool) -> None:
        self._update(auto_delete=auto_delete)

    def set_durable(self, durable: bool) -> None:
        self._update(durable=durable)

    def set_passive(self, passive: bool) -> None:
        self._update(passive=passive)

    def set_exclusive(self, exclusive: bool) -> None:
        self._update(exclusive=exclusive)

    # Topology

    def declare_exchange(self) -> None:
        """Declare the configured exchange."""
        self._ensure_open()
        topology = self.topology
        topology.require_exchange()

        with _amqp_errors(TopologyError, f"declaring exchange {topology.exchange}"):
            self.channel.exchange_declare(
                exchange=topology.exchange,
                exchange_type=topology.exchange_type,
                passive=topology.passive,
                durable=topology.durable,
                auto_delete=topology.auto_delete,
            )

        logger.debug(
            f"Declared exchange {topology.exchange} ({topology.exchange_type.value})"
        )
        log_topology_event(
            "exchange_declared",
            topology.exchange,
            exchange_type=topology.exchange_type.value,
            durable=topology.durable,
        )

    def declare_queue(self) -> None:
        """Declare the configured queue."""
        self._ensure_open()
        topology = self.topology
        topology.require_queue()

        with _amqp_errors(TopologyError, f"declaring queue {topology.queue}"):
            self.channel.queue_declare(
                queue=topology.queue,
                passive=topology.passive,
                durable=topology.durable,
                exclusive=topology.exclusive,
                auto_delete=topology.auto_delete,
            )

        logger.debug(f"Declared queue {topology.queue}")
        log_topology_event(
            "queue_declared",
            topology.queue,
            durable=topology.durable,
            exclusive=topology.exclusive,
        )

    def declare_binding(self) -> Topology:
        """
        Declare exchange and queue, bind them, and limit prefetch to 1.

        Exchange and queue must exist before the bind references them. Safe to
        repeat while the configuration is unchanged.

        Returns:
            The topology that was declared

        Raises:
            ConfigurationError: If exchange or queue is not set
            TopologyError: If the broker rejects a declaration or the binding
        """
        self._ensure_open()
        topology = self.topology
        topology.require_names()

        self.declare_exchange()
        self.declare_queue()

        with _amqp_errors(
            TopologyError, f"binding {topology.queue} to {topology.exchange}"
        ):
            self.channel.queue_bind(
                queue=topology.queue,
                exchange=topology.exchange,
                routing_key=topology.routing_key,
            )
            # One unacknowledged message per consumer at a time
            self.channel.basic_qos(prefetch_count=1)

        self.declared_topology = topology
        self._state = SessionState.BOUND
        logger.info(
            f"Bound queue {topology.queue} to {topology.exchange} "
            f"with routing key '{topology.routing_key}'"
        )
        log_topology_event(
            "binding_declared",
            topology.queue,
            exchange=topology.exchange,
            routing_key=topology.routing_key,
        )
        return topology

    # Messaging

    def convert_message(self, payload: Any) -> bytes:
        """Encode a payload as a UTF-8 JSON body."""
        return encode_payload(payload)

    def send(self, payload: Any) -> None:
        """
        Publish one persistent JSON message, then close the session.

        Args:
            payload: JSON-serializable value, pydantic model or JsonPayload

        Raises:
            ConfigurationError: If exchange or queue is not set
            SerializationError: If the payload cannot be encoded
            TopologyError: If the broker rejects the topology
            PublishError: If the broker rejects the publish
        """
        self._ensure_open()
        try:
            self.topology.require_names()
            body = self.convert_message(payload)
            topology = self.declare_binding()
            self._state = SessionState.SENDING

            labels = {"exchange": topology.exchange}
            try:
                with _amqp_errors(
                    PublishError, f"publishing to {topology.exchange}"
                ):
                    self.channel.basic_publish(
                        exchange=topology.exchange,
                        routing_key=topology.routing_key,
                        body=body,
                        properties=pika.BasicProperties(
                            content_type=CONTENT_TYPE,
                            delivery_mode=2,  # Make message persistent
                        ),
                    )
            except MessagingError:
                log_counter_increment("publish_errors_total", labels=labels)
                raise

            log_counter_increment("messages_published_total", labels=labels)
            logger.info(
                f"Published {len(body)} bytes to {topology.exchange} "
                f"with routing key '{topology.routing_key}'"
            )
        finally:
            self.close()

    def listen(
        self,
        callback: MessageCallback,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Consume the configured queue until stopped or the channel closes.

        Messages are auto-acknowledged on delivery, so a crash inside the
        callback loses the message. The callback runs on the calling thread
        and receives pika's ``(channel, method, properties, body)``.

        Args:
            callback: Message handler
            stop_event: Event that ends the loop when set; defaults to the
                event set by ``stop()``

        Raises:
            ConfigurationError: If exchange or queue is not set
            TopologyError: If the broker rejects the topology
            ConsumeError: If the broker rejects the consumer
        """
        self._ensure_open()
        stop_event = stop_event or self._stop_event
        poll_interval = self.settings.RABBITMQ_POLL_INTERVAL

        try:
            topology = self.declare_binding()
            queue = topology.queue

            def dispatch(channel, method, properties, body):
                start_time = time.time()
                log_counter_increment("messages_consumed_total", labels={"queue": queue})
                try:
                    callback(channel, method, properties, body)
                finally:
                    log_histogram_record(
                        "message_callback_duration_ms",
                        (time.time() - start_time) * 1000,
                        labels={"queue": queue},
                    )

            with _amqp_errors(ConsumeError, f"consuming from {queue}"):
                consumer_tag = self.channel.basic_consume(
                    queue=queue,
                    on_message_callback=dispatch,
                    auto_ack=True,
                    exclusive=False,
                    consumer_tag=topology.consumer_tag or None,
                )

            self._state = SessionState.LISTENING
            logger.info(f"Started consuming from {queue} with tag: {consumer_tag}")
            log_consume_event("consumer_started", queue, consumer_tag=consumer_tag)

            try:
                while self.channel.is_open and not stop_event.is_set():
                    self.connection.process_data_events(time_limit=poll_interval)
            except (ChannelClosed, AMQPConnectionError) as e:
                # ConnectionClosed and StreamLostError are both connection errors
                logger.warning(f"Consumer on {queue} stopped, broker closed: {e}")
                log_consume_event("consumer_closed_by_broker", queue, error=str(e))
            else:
                logger.info(f"Stopped consuming from {queue}")
                log_consume_event("consumer_stopped", queue)
        finally:
            self.close()

    def stop(self) -> None:
        """Ask a running ``listen`` loop to return after its current wait."""
        self._stop_event.set()

    def get_count_messages(self) -> int:
        """
        Get the number of ready messages in the configured queue.

        Uses a passive declare, so a missing queue is never created. A missing
        queue and any other channel-level broker error both report 0.
        """
        self._ensure_open()
        self.topology.require_queue()
        queue = self.topology.queue

        try:
            result = self.channel.queue_declare(queue=queue, passive=True)
        except ChannelClosedByBroker as e:
            if e.reply_code == NOT_FOUND:
                logger.info(f"Queue {queue} does not exist")
            else:
                logger.warning(f"Could not read message count of {queue}: {e}")
            log_counter_increment(
                "queue_count_errors_total",
                labels={"queue": queue, "reply_code": str(e.reply_code)},
            )
            self._reopen_channel()
            return 0
        except AMQPChannelError as e:
            logger.warning(f"Could not read message count of {queue}: {e}")
            log_counter_increment(
                "queue_count_errors_total",
                labels={"queue": queue, "reply_code": "none"},
            )
            self._reopen_channel()
            return 0
        except AMQPConnectionError as e:
            logger.error(f"Connection error while counting messages in {queue}: {e}")
            raise BrokerConnectionError.from_amqp(
                f"Connection error while counting messages in {queue}", e
            ) from e

        count = int(result.method.message_count)
        log_gauge_set("queue_messages", count, labels={"queue": queue})
        return count

    def _reopen_channel(self) -> None:
        """Replace a channel the broker closed after a failed passive declare."""
        if self.channel is not None and self.channel.is_open:
            return
        if self.connection is None or not self.connection.is_open:
            return
        try:
            self.channel = self.connection.channel()
            logger.debug("Reopened channel after broker channel error")
        except (AMQPChannelError, AMQPConnectionError) as e:
            logger.error(f"Failed to reopen channel: {e}")

    # Teardown

    def _close_channel(self) -> None:
        if self.channel is None or self.channel.is_closed:
            raise AlreadyClosedError("Channel already closed")
        try:
            self.channel.close()
        except ChannelWrongStateError as e:
            raise AlreadyClosedError.from_amqp("Channel already closed", e) from e

    def _close_connection(self) -> None:
        if self.connection is None or self.connection.is_closed:
            raise AlreadyClosedError("Connection already closed")
        try:
            self.connection.close()
        except ConnectionWrongStateError as e:
            raise AlreadyClosedError.from_amqp("Connection already closed", e) from e

    def _safe_close_connection(self) -> None:
        try:
            self._close_connection()
        except (AlreadyClosedError, AMQPConnectionError, AMQPChannelError) as e:
            logger.debug(f"Ignoring error while closing connection: {e}")

    def close(self) -> None:
        """Close the channel, then the connection. Safe to call repeatedly."""
        if self._state is SessionState.CLOSED:
            return

        for name, closer in (
            ("channel", self._close_channel),
            ("connection", self._close_connection),
        ):
            try:
                closer()
            except AlreadyClosedError:
                logger.debug(f"RabbitMQ {name} already closed")
            except (AMQPChannelError, AMQPConnectionError) as e:
                logger.error(f"Error closing RabbitMQ {name}: {e}")

        self._state = SessionState.CLOSED
        logger.info("RabbitMQ session closed")
        log_connection_event("closed", "rabbitmq", host=self.settings.RABBITMQ_HOST)

    def __enter__(self) -> "MessagingSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


@contextmanager
def open_session(
    settings: Optional[Settings] = None,
) -> Generator[MessagingSession, None, None]:
    """
    Open a messaging session that is closed on every exit path.

    Usage:
        with open_session(settings) as session:
            session.set_exchange("orders").set_queue("orders.created")
            session.send({"id": 1})
    """
    session = MessagingSession(settings)
    try:
        yield session
    finally:
        session.close()
