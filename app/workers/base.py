"""
Shared plumbing for queue-driven pipeline workers.

A worker owns a QueueClient (injected), a session factory and, optionally, a
campaign scope. Scoped workers consume the campaign's own stage queue
(campaigns launched with dedicated workers) and shut down once it is
cancelled, returning held messages to the queue. Shared workers
serve every campaign and acknowledge-and-log messages whose campaign has been
cancelled.
"""

import logging
import time
from typing import Callable, Dict, Optional
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from app.core.cancellation import CampaignCancellationToken
from app.core.database import SessionLocal
from app.core.queue import QueueClient, QueueMessage, campaign_queue

logger = logging.getLogger(__name__)


class PipelineWorker:
    """
    Base class for the scraper, matcher and tailor workers.

    Subclasses set `role`, `queue_name` (through scoped_queue) and
    `prefetch`, and implement handle(message).
    """

    role = "worker"
    queue_name: str = ""
    prefetch: int = 1
    poll_timeout: float = 1.0

    def __init__(
        self,
        queue: QueueClient,
        session_factory: Callable[[], Session] = SessionLocal,
        campaign_id: Optional[str] = None,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.queue = queue
        self.session_factory = session_factory
        self.campaign_id = campaign_id
        self.poll_interval = poll_interval
        self.clock = clock
        self._tokens: Dict[str, CampaignCancellationToken] = {}
        self._stop_requested = False

    @property
    def tag(self) -> str:
        return f"[{self.role.capitalize()}]"

    def scoped_queue(self, stage_queue: str) -> str:
        return campaign_queue(stage_queue, self.campaign_id)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def token_for(self, campaign_id: str) -> CampaignCancellationToken:
        token = self._tokens.get(campaign_id)
        if token is None:
            token = CampaignCancellationToken(
                campaign_id,
                session_factory=self.session_factory,
                poll_interval=self.poll_interval,
                clock=self.clock,
            )
            self._tokens[campaign_id] = token
        return token

    def request_stop(self) -> None:
        self._stop_requested = True

    def should_stop(self) -> bool:
        return self._stop_requested

    def release_cancelled(self, message: QueueMessage, campaign_id: str, context: str = "") -> None:
        """
        Settle a message whose campaign is cancelled.

        Scoped workers put it back on the queue and stop; shared workers
        acknowledge it so it is not redelivered to them forever.
        """
        if self.campaign_id:
            logger.info(f"{self.tag} Campaign {campaign_id} cancelled, returning message to queue {context}".rstrip())
            message.nack(requeue=True)
            self.request_stop()
        else:
            logger.info(f"{self.tag} Campaign {campaign_id} cancelled, dropping message {context}".rstrip())
            message.ack()

    def admit(self, message: QueueMessage, campaign_id: str, context: str = "") -> bool:
        """
        Checkpoint before starting a unit of work. Returns True when the
        message should be processed; otherwise it has been settled.
        """
        if self.campaign_id and campaign_id != self.campaign_id:
            logger.error(
                f"{self.tag} Message for campaign {campaign_id} misrouted to {message.queue_name} "
                f"(scope {self.campaign_id}), rejecting"
            )
            message.nack(requeue=False)
            return False
        if self.token_for(campaign_id).is_cancelled():
            self.release_cancelled(message, campaign_id, context)
            return False
        return True

    # ------------------------------------------------------------------
    # Message parsing
    # ------------------------------------------------------------------

    def parse(self, message: QueueMessage, schema):
        """
        Validate a delivery against its wire schema. Invalid bodies are
        rejected without requeue and None is returned.
        """
        try:
            if isinstance(message.payload, BaseModel):
                return schema.model_validate(message.payload.model_dump(by_alias=True))
            return schema.model_validate(message.payload)
        except ValidationError as e:
            logger.error(f"{self.tag} Rejecting malformed message on {message.queue_name}: {e}")
            message.nack(requeue=False)
            return None

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def handle(self, message: QueueMessage) -> None:
        raise NotImplementedError

    def on_tick(self) -> None:
        """Runs after every drain cycle."""
        pass

    def next_poll_timeout(self) -> float:
        return self.poll_timeout

    def on_shutdown(self) -> None:
        """Settle anything still held before the process exits."""
        pass

    def start(self) -> None:
        self.queue.declare_queue(self.queue_name)
        self.queue.consume(self.queue_name, self.handle, prefetch=self.prefetch)

    def run(self) -> None:
        """Consume until stopped (signal or scoped-campaign cancellation)."""
        self.start()
        scope = f" for campaign {self.campaign_id}" if self.campaign_id else ""
        logger.info(f"{self.tag} Worker started on {self.queue_name}{scope}")
        try:
            self.queue.run_forever(
                should_stop=self.should_stop,
                poll_timeout=self.next_poll_timeout,
                on_tick=self.on_tick,
            )
        finally:
            self.on_shutdown()
            logger.info(f"{self.tag} Worker stopped")
