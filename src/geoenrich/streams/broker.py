"""
Stream Broker

Consumer-group stream operations used by the enrichment worker, with a
Redis Streams implementation. Messages carry their JSON payload in a single
`data` field.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import redis
from redis.exceptions import RedisError, ResponseError

from src.geoenrich.exceptions import BrokerError
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

DATA_FIELD = "data"
NEW_MESSAGES_ID = ">"
PENDING_MESSAGES_ID = "0"


@dataclass(frozen=True)
class StreamMessage:
    """
    A message delivered to this consumer.

    Attributes:
        id: Broker-assigned message id
        fields: Raw field map; empty when the entry was deleted while pending
    """

    id: str
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def payload(self) -> Optional[str]:
        return self.fields.get(DATA_FIELD)


class StreamBroker(ABC):
    """Consumer-group stream contract."""

    @abstractmethod
    def create_consumer_group(self, stream: str, group: str, start_id: str = "$") -> bool:
        """
        Create the group (and the stream if missing).

        Returns:
            True if created, False if it already existed
        """

    @abstractmethod
    def poll(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        pending: bool = False,
        block_ms: Optional[int] = None,
    ) -> List[StreamMessage]:
        """
        Read up to `count` messages for this consumer.

        With `pending=True` the consumer's own delivered-but-unacknowledged
        messages are returned instead of new ones.
        """

    @abstractmethod
    def ack(self, stream: str, group: str, message_ids: Sequence[str]) -> int:
        """Acknowledge messages, returning how many were acknowledged."""

    @abstractmethod
    def publish(self, stream: str, payload: Union[str, Dict[str, Any]]) -> str:
        """Append a message with `payload` in the data field, returning its id."""

    def claim_stale(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        count: int,
    ) -> List[StreamMessage]:
        """Take over messages left pending by other consumers. Optional."""
        return []

    def close(self) -> None:
        """Release broker resources."""


class RedisStreamBroker(StreamBroker):
    """
    Redis Streams broker.

    Expects a client created with decode_responses=True.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 5.0) -> "RedisStreamBroker":
        """
        Connect to Redis and verify the connection.

        Raises:
            BrokerError: If Redis cannot be reached
        """
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        try:
            client.ping()
        except RedisError as e:
            raise BrokerError("PING", str(e)) from e
        logger.info("redis_broker_connected", url=_redact(url))
        return cls(client)

    def create_consumer_group(self, stream: str, group: str, start_id: str = "$") -> bool:
        try:
            self.client.xgroup_create(stream, group, id=start_id, mkstream=True)
        except ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("consumer_group_exists", stream=stream, group=group)
                return False
            raise BrokerError("XGROUP CREATE", str(e)) from e
        except RedisError as e:
            raise BrokerError("XGROUP CREATE", str(e)) from e

        logger.info("consumer_group_created", stream=stream, group=group)
        return True

    def poll(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        pending: bool = False,
        block_ms: Optional[int] = None,
    ) -> List[StreamMessage]:
        start_id = PENDING_MESSAGES_ID if pending else NEW_MESSAGES_ID
        try:
            response = self.client.xreadgroup(
                group,
                consumer,
                {stream: start_id},
                count=count,
                block=block_ms or None,
            )
        except RedisError as e:
            raise BrokerError("XREADGROUP", str(e)) from e

        return _parse_read_response(response)

    def ack(self, stream: str, group: str, message_ids: Sequence[str]) -> int:
        if not message_ids:
            return 0
        try:
            return int(self.client.xack(stream, group, *message_ids))
        except RedisError as e:
            raise BrokerError("XACK", str(e)) from e

    def publish(self, stream: str, payload: Union[str, Dict[str, Any]]) -> str:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        try:
            return self.client.xadd(stream, {DATA_FIELD: data})
        except RedisError as e:
            raise BrokerError("XADD", str(e)) from e

    def claim_stale(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        count: int,
    ) -> List[StreamMessage]:
        try:
            response = self.client.xautoclaim(
                stream, group, consumer, min_idle_ms, start_id="0-0", count=count
            )
        except RedisError as e:
            raise BrokerError("XAUTOCLAIM", str(e)) from e

        # [next_start_id, [(id, fields), ...], (deleted_ids on Redis 7+)]
        entries = response[1] if response and len(response) > 1 else []
        messages = [StreamMessage(id=msg_id, fields=dict(fields or {})) for msg_id, fields in entries]
        if messages:
            logger.info("stale_messages_claimed", stream=stream, count=len(messages))
        return messages

    def close(self) -> None:
        self.client.close()


def _parse_read_response(response: Any) -> List[StreamMessage]:
    """Flatten an XREADGROUP reply (list of [stream, entries] pairs, or a map) into messages."""
    if not response:
        return []

    streams = response.items() if isinstance(response, dict) else response
    messages = []
    for _stream_name, entries in streams:
        for msg_id, fields in entries:
            messages.append(StreamMessage(id=msg_id, fields=dict(fields or {})))
    return messages


def _redact(url: str) -> str:
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
