"""
Pipeline queue transport built on kombu (the messaging layer under Celery).

Each worker process owns exactly one QueueClient: one long-lived broker
connection and one channel. Workers receive the client by injection instead
of reaching for module-level state, so the lifecycle (connect/close) and the
reconnect path are explicit and testable.

Wire format: JSON bodies (UTF-8) published to a durable direct exchange, one
durable queue per pipeline stage, routing key == queue name. Campaigns launched
with dedicated workers use per-campaign stage queues ("jobs.match.<campaign>")
instead. Messages are published persistent so they survive a broker restart.

Acknowledgement contract: every delivery handed to a handler must end in
exactly one ack() or nack(). A handler that raises without settling its
delivery gets it rejected (no requeue) so the channel never stalls.
"""

import logging
import socket
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Union

from kombu import Connection, Consumer, Exchange, Producer, Queue
from kombu.exceptions import OperationalError
from pydantic import BaseModel

from app.core.config import settings
from app.core.retry import RetryPolicy, retry_call, retry_on

logger = logging.getLogger(__name__)


class QueueConnectionError(Exception):
    """Raised when the broker cannot be reached within the reconnect budget."""
    pass


def campaign_queue(stage_queue: str, campaign_id: Optional[str] = None) -> str:
    """Name of a stage queue, narrowed to one campaign when campaign_id is given."""
    if not campaign_id:
        return stage_queue
    return f"{stage_queue}.{campaign_id}"


class QueueMessage:
    """
    A delivered message and its acknowledgement handle.

    Settling is idempotent from the caller's point of view: a second ack/nack
    is logged and ignored instead of being forwarded to the broker, which
    would raise or double-acknowledge.
    """

    PENDING = "pending"
    ACKED = "acked"
    REJECTED = "rejected"
    REQUEUED = "requeued"

    def __init__(self, payload: Any, raw: Any = None, queue_name: str = ""):
        self.payload = payload
        self.queue_name = queue_name
        self.state = self.PENDING
        self._raw = raw

    @property
    def delivery_tag(self) -> Optional[Any]:
        return getattr(self._raw, "delivery_tag", None)

    @property
    def settled(self) -> bool:
        return self.state != self.PENDING

    def ack(self) -> None:
        if self.settled:
            logger.warning(f"Ignoring ack for already {self.state} message {self.delivery_tag} on {self.queue_name}")
            return
        if self._raw is not None:
            self._raw.ack()
        self.state = self.ACKED

    def nack(self, requeue: bool = False) -> None:
        if self.settled:
            logger.warning(f"Ignoring nack for already {self.state} message {self.delivery_tag} on {self.queue_name}")
            return
        if self._raw is not None:
            self._raw.reject(requeue=requeue)
        self.state = self.REQUEUED if requeue else self.REJECTED

    def __repr__(self):
        return f"<QueueMessage(queue={self.queue_name}, tag={self.delivery_tag}, state={self.state})>"


MessageHandler = Callable[[QueueMessage], None]


@dataclass
class _ConsumerRegistration:
    queue_name: str
    handler: MessageHandler
    prefetch: int


class QueueClient:
    """
    Owned broker connection with declare/publish/consume and reconnect.

    Example:
        with QueueClient() as queue:
            queue.declare_queue(settings.TAILOR_QUEUE)
            queue.publish(settings.TAILOR_QUEUE, {"jobId": "..."})
    """

    def __init__(
        self,
        url: Optional[str] = None,
        exchange_name: Optional[str] = None,
        connect_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.url = url or settings.QUEUE_URL
        self.exchange = Exchange(exchange_name or settings.QUEUE_EXCHANGE, type="direct", durable=True)
        self.connect_policy = connect_policy or RetryPolicy(
            max_attempts=settings.QUEUE_CONNECT_MAX_ATTEMPTS,
            base_delay=settings.QUEUE_RECONNECT_DELAY_SECONDS,
            max_delay=settings.QUEUE_RECONNECT_MAX_DELAY_SECONDS,
        )
        self._sleep = sleep
        self._connection: Optional[Connection] = None
        self._channel = None
        self._producer: Optional[Producer] = None
        self._queues: Dict[str, Queue] = {}
        self._registrations: List[_ConsumerRegistration] = []
        self._consumers: List[Consumer] = []

    def __enter__(self) -> "QueueClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._channel is not None and self._connection.connected

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open the connection and channel. A no-op when already connected.

        Raises:
            QueueConnectionError: Broker unreachable after the connect policy
        """
        if self.is_connected:
            return

        def attempt(n: int) -> Connection:
            logger.info(f"[Queue] Connecting to broker (attempt {n}/{self.connect_policy.max_attempts})")
            conn = Connection(self.url)
            try:
                conn.ensure_connection(max_retries=0)
            except Exception:
                conn.release()
                raise
            return conn

        retry_kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        try:
            self._connection = retry_call(
                attempt,
                self.connect_policy,
                retry_if=retry_on(OperationalError, OSError, ConnectionError),
                description="Broker connect",
                **retry_kwargs,
            )
        except Exception as e:
            raise QueueConnectionError(f"Could not connect to broker at {self._safe_url()}: {e}") from e

        self._channel = self._connection.channel()
        self._producer = Producer(self._channel, exchange=self.exchange)

        # Restore declarations and consumers after a reconnect
        for queue in self._queues.values():
            queue(self._channel).declare()
        self._consumers = []
        for registration in self._registrations:
            self._start_consumer(registration)

        logger.info(f"[Queue] Connected to {self._safe_url()} (exchange={self.exchange.name})")

    def close(self) -> None:
        """Cancel consumers and release the connection."""
        for consumer in self._consumers:
            try:
                consumer.cancel()
            except Exception as e:
                logger.warning(f"[Queue] Error cancelling consumer: {e}")
        self._consumers = []

        if self._connection is not None:
            try:
                self._connection.release()
            except Exception as e:
                logger.warning(f"[Queue] Error releasing connection: {e}")
        self._connection = None
        self._channel = None
        self._producer = None
        logger.info("[Queue] Connection closed")

    def reconnect(self) -> None:
        """Drop the current connection and connect again with backoff."""
        logger.warning(f"[Queue] Reconnecting to {self._safe_url()}")
        for consumer in self._consumers:
            try:
                consumer.cancel()
            except Exception as e:
                logger.debug(f"[Queue] Consumer cancel on dead channel failed: {e}")
        self._consumers = []
        if self._connection is not None:
            try:
                self._connection.release()
            except Exception as e:
                logger.debug(f"[Queue] Release of dead connection failed: {e}")
        self._connection = None
        self._channel = None
        self._producer = None
        self.connect()

    # ------------------------------------------------------------------
    # Declare / publish / consume
    # ------------------------------------------------------------------

    def declare_queue(self, name: str, durable: bool = True) -> Queue:
        """Declare a queue bound to the pipeline exchange. Safe to repeat."""
        queue = self._queues.get(name)
        if queue is None:
            queue = Queue(name, exchange=self.exchange, routing_key=name, durable=durable)
            self._queues[name] = queue
        if self._channel is not None:
            queue(self._channel).declare()
        return queue

    def publish(self, queue_name: str, payload: Union[Dict[str, Any], BaseModel], persistent: bool = True) -> None:
        """
        Serialize payload as JSON and hand it to the broker.

        Only "accepted by broker" is guaranteed; there is no delivery
        confirmation beyond that.
        """
        self._require_channel()
        queue = self._queues.get(queue_name) or self.declare_queue(queue_name)

        if isinstance(payload, BaseModel):
            body = payload.model_dump(mode="json", by_alias=True)
        else:
            body = payload

        self._producer.publish(
            body,
            exchange=self.exchange,
            routing_key=queue_name,
            serializer="json",
            delivery_mode=2 if persistent else 1,
            declare=[queue],
            retry=True,
            retry_policy={
                "max_retries": 3,
                "interval_start": 0,
                "interval_step": 0.5,
                "interval_max": 2,
            },
        )

    def consume(self, queue_name: str, handler: MessageHandler, prefetch: int = 1) -> None:
        """
        Register handler for deliveries on queue_name.

        At most `prefetch` unacknowledged messages are held by this client.
        Handlers run inside drain()/run_forever().
        """
        self._require_channel()
        if queue_name not in self._queues:
            self.declare_queue(queue_name)
        registration = _ConsumerRegistration(queue_name=queue_name, handler=handler, prefetch=prefetch)
        self._registrations.append(registration)
        self._start_consumer(registration)
        logger.info(f"[Queue] Consuming {queue_name} (prefetch={prefetch})")

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Dispatch pending deliveries. Returns False when timeout elapsed with
        nothing to deliver.
        """
        self._require_channel()
        try:
            self._connection.drain_events(timeout=timeout)
            return True
        except socket.timeout:
            return False

    def run_forever(
        self,
        should_stop: Callable[[], bool],
        poll_timeout: Union[float, Callable[[], float]] = 1.0,
        on_tick: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Drain deliveries until should_stop() returns True.

        Broker connection loss triggers reconnect with backoff; consumers are
        re-registered transparently. on_tick runs after every drain cycle
        (the matcher uses it to flush timed-out batches).
        """
        while not should_stop():
            timeout = poll_timeout() if callable(poll_timeout) else poll_timeout
            try:
                self.drain(timeout=timeout)
            except self._recoverable_errors() as e:
                logger.error(f"[Queue] Lost broker connection: {e}")
                self.reconnect()
            if on_tick is not None:
                on_tick()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_consumer(self, registration: _ConsumerRegistration) -> None:
        consumer = Consumer(
            self._channel,
            queues=[self._queues[registration.queue_name]],
            callbacks=[partial(self._dispatch, registration)],
            accept=["json"],
            no_ack=False,
        )
        consumer.qos(prefetch_count=registration.prefetch)
        consumer.consume()
        self._consumers.append(consumer)

    def _dispatch(self, registration: _ConsumerRegistration, body: Any, message: Any) -> None:
        delivery = QueueMessage(body, raw=message, queue_name=registration.queue_name)
        try:
            registration.handler(delivery)
        except Exception as e:
            logger.error(
                f"[Queue] Handler for {registration.queue_name} raised: {e}",
                exc_info=True,
            )
            if not delivery.settled:
                delivery.nack(requeue=False)

    def _recoverable_errors(self) -> tuple:
        if self._connection is None:
            return (OperationalError,)
        return tuple(self._connection.connection_errors) + tuple(self._connection.channel_errors) + (OperationalError,)

    def _require_channel(self) -> None:
        if self._channel is None:
            raise QueueConnectionError("Queue channel not available. Call connect() first.")

    def _safe_url(self) -> str:
        if "@" in self.url:
            scheme, _, rest = self.url.partition("://")
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.url
