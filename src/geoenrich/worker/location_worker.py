"""
Location Enrichment Worker

Consumes location events from a Redis stream in batches, enriches them
through the orchestrator, publishes one done event per input and
acknowledges the consumed messages.

Delivery is at-least-once: a batch whose enrichment fails is left
unacknowledged and is read again from the consumer's pending list.
"""
import os
import socket
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from config.settings import Settings
from src.geoenrich.enrichment.orchestrator import EnrichmentOrchestrator
from src.geoenrich.exceptions import BrokerError, MessageParseError
from src.geoenrich.models.location import LocationDoneEvent, LocationEvent, LocationInput
from src.geoenrich.streams.broker import StreamBroker, StreamMessage
from src.geoenrich.utils.logger import bind_worker_context, get_logger

logger = get_logger(__name__)


class WorkerState(str, Enum):
    """Lifecycle states of the worker loop."""

    IDLE = "idle"
    POLLING = "polling"
    PROCESSING = "processing"
    PUBLISHING = "publishing"
    ACKING = "acking"
    STOPPING = "stopping"
    STOPPED = "stopped"


class AckPolicy(str, Enum):
    """
    When parsed messages are acknowledged after publishing.

    LENIENT acknowledges every parsed message even if its done event could
    not be published. STRICT acknowledges only messages whose done event was
    published; the rest stay pending and are retried.
    """

    LENIENT = "lenient"
    STRICT = "strict"


def default_consumer_name() -> str:
    """Unique consumer name for this process: <hostname>-<pid>."""
    return f"{socket.gethostname()}-{os.getpid()}"


@dataclass(frozen=True)
class WorkerConfig:
    """
    Worker runtime parameters.

    Attributes:
        inbound_stream: Stream to consume location events from
        outbound_stream: Stream to publish done events to
        consumer_group: Consumer group shared by all worker replicas
        consumer_name: This worker's name within the group
        max_batch_size: Maximum messages per poll
        empty_poll_sleep: Seconds to sleep when a poll returns nothing
        error_backoff: Seconds to sleep after a failed batch
        poll_block_ms: Blocking read timeout, None for non-blocking polls
        ack_policy: Acknowledgment policy after publishing
        claim_idle_ms: Claim other consumers' messages idle this long, 0 disables
    """

    inbound_stream: str = "stream:location:enrich"
    outbound_stream: str = "stream:location:done"
    consumer_group: str = "location-enrichment-workers"
    consumer_name: str = field(default_factory=default_consumer_name)
    max_batch_size: int = 20
    empty_poll_sleep: float = 0.1
    error_backoff: float = 1.0
    poll_block_ms: Optional[int] = None
    ack_policy: AckPolicy = AckPolicy.LENIENT
    claim_idle_ms: int = 0

    def __post_init__(self):
        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        if self.empty_poll_sleep < 0 or self.error_backoff < 0:
            raise ValueError("Sleep intervals must be non-negative")

    @classmethod
    def from_settings(cls, config: Settings) -> "WorkerConfig":
        return cls(
            inbound_stream=config.stream_inbound,
            outbound_stream=config.stream_outbound,
            consumer_group=config.worker_consumer_group,
            consumer_name=config.worker_consumer_name or default_consumer_name(),
            max_batch_size=config.worker_max_batch_size,
            empty_poll_sleep=config.worker_empty_poll_sleep_ms / 1000,
            error_backoff=config.worker_error_backoff_ms / 1000,
            poll_block_ms=config.worker_poll_block_ms or None,
            ack_policy=AckPolicy(config.worker_ack_policy),
            claim_idle_ms=config.worker_claim_idle_ms,
        )


class CancellationToken:
    """Cooperative stop signal with interruptible sleeps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        return self._event.wait(seconds)


@dataclass
class BatchOutcome:
    """Counters for one processed batch."""

    polled: int = 0
    parsed: int = 0
    malformed: int = 0
    published: int = 0
    publish_failures: int = 0
    acked: int = 0


class LocationEnrichmentWorker:
    """
    Batch stream worker.

    One batch is processed at a time; a stop request takes effect between
    batches, never in the middle of one.
    """

    def __init__(
        self,
        broker: StreamBroker,
        orchestrator: EnrichmentOrchestrator,
        config: Optional[WorkerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize worker.

        Args:
            broker: Stream broker
            orchestrator: Enrichment orchestrator
            config: Runtime parameters, defaults to WorkerConfig()
            clock: Monotonic seconds source used to pace stale-message claims
        """
        self.broker = broker
        self.orchestrator = orchestrator
        self.config = config or WorkerConfig()
        self._clock = clock
        self._state = WorkerState.IDLE
        self._read_pending = True
        self._last_claim_at: Optional[float] = None

    @property
    def state(self) -> WorkerState:
        return self._state

    def start(self) -> None:
        """
        Ensure the consumer group exists.

        Raises:
            BrokerError: If the group cannot be created
        """
        self.broker.create_consumer_group(self.config.inbound_stream, self.config.consumer_group)

    def run(self, token: CancellationToken) -> None:
        """
        Process batches until the token is cancelled.

        Args:
            token: Stop signal checked between batches
        """
        bind_worker_context(self.config.consumer_group, self.config.consumer_name)
        self.start()
        logger.info(
            "worker_started",
            inbound_stream=self.config.inbound_stream,
            outbound_stream=self.config.outbound_stream,
            max_batch_size=self.config.max_batch_size,
            ack_policy=self.config.ack_policy.value,
        )

        try:
            while not token.cancelled:
                try:
                    outcome = self.process_batch()
                except Exception as e:
                    logger.error(
                        "batch_processing_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                        backoff_seconds=self.config.error_backoff,
                        exc_info=True,
                    )
                    self._state = WorkerState.IDLE
                    self._read_pending = True
                    token.wait(self.config.error_backoff)
                    continue

                if outcome.polled == 0:
                    token.wait(self.config.empty_poll_sleep)
        finally:
            self._state = WorkerState.STOPPING
            logger.info("worker_stopping")
            self._state = WorkerState.STOPPED
            logger.info("worker_stopped")

    def process_batch(self) -> BatchOutcome:
        """
        Poll, enrich, publish and acknowledge one batch.

        Malformed messages are acknowledged individually and dropped. If the
        orchestrator raises, nothing else from the batch is acknowledged and
        the exception propagates.

        Returns:
            Counters for the batch
        """
        outcome = BatchOutcome()

        self._state = WorkerState.POLLING
        messages = self._poll()
        outcome.polled = len(messages)
        if not messages:
            self._state = WorkerState.IDLE
            return outcome

        self._state = WorkerState.PROCESSING
        parsed: List[Tuple[StreamMessage, LocationEvent]] = []
        for message in messages:
            try:
                parsed.append((message, self.parse_message(message)))
            except MessageParseError as e:
                outcome.malformed += 1
                logger.warning("message_parse_failed", message_id=message.id, error=e.detail)
                self._ack_malformed(message)
        outcome.parsed = len(parsed)

        if not parsed:
            self._state = WorkerState.IDLE
            return outcome

        inputs = [LocationInput.from_event(idx, event) for idx, (_, event) in enumerate(parsed)]
        batch = self.orchestrator.enrich_batch(inputs)
        results = {result.index: result for result in batch.results}

        self._state = WorkerState.PUBLISHING
        published_ids = []
        for idx, (message, event) in enumerate(parsed):
            done = LocationDoneEvent.from_result(event.property_id, results[idx])
            try:
                self.broker.publish(self.config.outbound_stream, done.to_stream_payload())
                published_ids.append(message.id)
            except BrokerError as e:
                outcome.publish_failures += 1
                logger.error(
                    "publish_failed",
                    message_id=message.id,
                    property_id=str(event.property_id),
                    error=str(e),
                )
        outcome.published = len(published_ids)

        self._state = WorkerState.ACKING
        if self.config.ack_policy == AckPolicy.STRICT:
            ack_ids = published_ids
            if outcome.publish_failures:
                self._read_pending = True
        else:
            ack_ids = [message.id for message, _ in parsed]
        outcome.acked = self._ack(ack_ids)

        self._state = WorkerState.IDLE
        logger.info(
            "batch_processed",
            polled=outcome.polled,
            malformed=outcome.malformed,
            published=outcome.published,
            publish_failures=outcome.publish_failures,
            acked=outcome.acked,
            success=batch.meta.success_count,
            errors=batch.meta.error_count,
        )
        return outcome

    def parse_message(self, message: StreamMessage) -> LocationEvent:
        """
        Decode a stream message into a location event.

        Raises:
            MessageParseError: If the data field is missing or invalid
        """
        payload = message.payload
        if payload is None:
            raise MessageParseError(message.id, "missing data field")
        try:
            return LocationEvent.model_validate_json(payload)
        except ValidationError as e:
            raise MessageParseError(message.id, str(e), payload) from e

    def _poll(self) -> List[StreamMessage]:
        """Read own pending messages first, then stale ones when a claim is due, then new ones."""
        cfg = self.config
        if self._read_pending:
            messages = self.broker.poll(
                cfg.inbound_stream, cfg.consumer_group, cfg.consumer_name,
                cfg.max_batch_size, pending=True,
            )
            if messages:
                logger.info("pending_messages_recovered", count=len(messages))
                return messages
            self._read_pending = False

        if self._claim_due():
            claimed = self.broker.claim_stale(
                cfg.inbound_stream, cfg.consumer_group, cfg.consumer_name,
                cfg.claim_idle_ms, cfg.max_batch_size,
            )
            if claimed:
                return claimed

        return self.broker.poll(
            cfg.inbound_stream, cfg.consumer_group, cfg.consumer_name,
            cfg.max_batch_size, block_ms=cfg.poll_block_ms,
        )

    def _claim_due(self) -> bool:
        """At most one claim per claim_idle_ms, none when claiming is disabled."""
        idle_ms = self.config.claim_idle_ms
        if idle_ms <= 0:
            return False
        now = self._clock()
        if self._last_claim_at is not None and (now - self._last_claim_at) * 1000 < idle_ms:
            return False
        self._last_claim_at = now
        return True

    def _ack(self, message_ids: List[str]) -> int:
        if not message_ids:
            return 0
        try:
            return self.broker.ack(self.config.inbound_stream, self.config.consumer_group, message_ids)
        except BrokerError as e:
            logger.error("ack_failed", message_ids=message_ids, error=str(e))
            self._read_pending = True
            return 0

    def _ack_malformed(self, message: StreamMessage) -> None:
        try:
            self.broker.ack(self.config.inbound_stream, self.config.consumer_group, [message.id])
        except BrokerError as e:
            logger.error("malformed_ack_failed", message_id=message.id, error=str(e))
            self._read_pending = True
