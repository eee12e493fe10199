"""Redis Streams message queue.

Uses a single stream plus a consumer group for persistent, at-least-once
delivery:

- ``XADD`` appends new orders.
- ``XAUTOCLAIM`` takes over entries that have sat unacknowledged for longer
  than the visibility timeout (this is how redelivery happens).
- ``XREADGROUP`` hands out entries never delivered before.
- ``XPENDING`` supplies the delivery count of each entry.
- ``XACK`` + ``XDEL`` remove an entry once it is persisted.

Entries that exceed ``max_delivery_count`` are copied to the sibling
``<name>:dead-letter`` stream and removed from the live stream.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
from redis.exceptions import RedisError, ResponseError

from order_pipeline.core.enums import DeadLetterReason
from order_pipeline.core.errors import EnqueueFailure, QueueError
from order_pipeline.core.ids import consumer_name as make_consumer_name

from .schemas import DeadLetter, QueueMessage

logger = logging.getLogger(__name__)

_RECEIPT_SEP = "@"


def _stream_id_time(msg_id: str) -> datetime:
    """Entry IDs are ``<ms-since-epoch>-<seq>``."""
    millis = int(msg_id.split("-", 1)[0])
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def make_receipt(msg_id: str, delivery_count: int) -> str:
    return f"{msg_id}{_RECEIPT_SEP}{delivery_count}"


def parse_receipt(receipt: str) -> tuple[str, int]:
    msg_id, sep, count = receipt.rpartition(_RECEIPT_SEP)
    if not sep or not msg_id or not count.isdigit():
        raise ValueError(f"Malformed receipt: {receipt!r}")
    return msg_id, int(count)


class RedisStreamsQueue:
    """Production queue backed by a Redis Stream and consumer group.

    Args:
        redis_url: Redis connection URL.
        name: Stream key. Dead letters go to ``<name>:dead-letter``.
        group: Consumer group shared by all workers.
        consumer_name: This process's consumer identity within the group.
        visibility_timeout: Default lease length in seconds.
        max_delivery_count: Deliveries allowed before dead-lettering.
        dead_letter_max_length: Approximate cap on the dead-letter stream.
            The live stream is never trimmed: every entry in it is an order
            that has not been persisted yet.
        block_ms: How long ``XREADGROUP`` waits for new entries.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        name: str = "order-processing",
        group: str = "order-processors",
        consumer_name: str | None = None,
        visibility_timeout: float = 30.0,
        max_delivery_count: int = 5,
        dead_letter_max_length: int = 100_000,
        block_ms: int = 1000,
    ) -> None:
        self._redis_url = redis_url
        self._redis: aioredis.Redis | None = None
        self._name = name
        self._dead_letter_name = f"{name}:dead-letter"
        self._group = group
        self._consumer = consumer_name or make_consumer_name(group)
        self._visibility_timeout = visibility_timeout
        self._max_delivery_count = max_delivery_count
        self._dead_letter_max_len = dead_letter_max_length
        self._block_ms = block_ms

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect to Redis and make sure the consumer group exists."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url, decode_responses=True,
            )
        await self._ensure_group()
        logger.info(
            "Redis queue %s ready (group=%s consumer=%s)",
            self._name,
            self._group,
            self._consumer,
        )

    async def stop(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    async def enqueue(self, payload: str) -> str:
        if self._redis is None:
            raise EnqueueFailure("RedisStreamsQueue not started")
        try:
            return await self._redis.xadd(self._name, {"payload": payload})
        except RedisError as exc:
            raise EnqueueFailure(f"Redis enqueue failed: {exc}") from exc

    async def dequeue(
        self, visibility_timeout: float | None = None,
    ) -> QueueMessage | None:
        """Lease one entry: expired leases first, then new entries.

        Entries found past the delivery ceiling are dead-lettered on the
        way and the search continues.
        """
        redis = self._client()
        timeout = (
            self._visibility_timeout
            if visibility_timeout is None
            else visibility_timeout
        )
        try:
            while True:
                entry = await self._claim_expired(redis, timeout)
                if entry is None:
                    entry = await self._read_new(redis)
                if entry is None:
                    return None

                msg_id, fields = entry
                delivery_count = await self._delivery_count(redis, msg_id)
                payload = fields.get("payload", "")

                if delivery_count > self._max_delivery_count:
                    await self._move_to_dead_letter(
                        redis,
                        msg_id,
                        payload,
                        DeadLetterReason.MAX_DELIVERY_COUNT_EXCEEDED.value,
                        delivery_count - 1,
                    )
                    continue

                return QueueMessage(
                    message_id=msg_id,
                    payload=payload,
                    receipt=make_receipt(msg_id, delivery_count),
                    delivery_count=delivery_count,
                    enqueued_at=_stream_id_time(msg_id),
                )
        except RedisError as exc:
            raise QueueError(f"Redis dequeue failed: {exc}") from exc

    async def acknowledge(self, receipt: str) -> bool:
        """Ack only if the entry has not been handed out again since."""
        redis = self._client()
        msg_id, delivery_count = parse_receipt(receipt)
        try:
            current = await self._pending_entry(redis, msg_id)
            if current is None or current["times_delivered"] != delivery_count:
                logger.warning("Acknowledge with stale receipt %s", receipt)
                return False
            await redis.xack(self._name, self._group, msg_id)
            await redis.xdel(self._name, msg_id)
            return True
        except RedisError as exc:
            raise QueueError(f"Redis acknowledge failed: {exc}") from exc

    async def discard(self, message: QueueMessage, reason: str) -> None:
        redis = self._client()
        try:
            await self._move_to_dead_letter(
                redis,
                message.message_id,
                message.payload,
                reason,
                message.delivery_count,
            )
        except RedisError as exc:
            raise QueueError(f"Redis discard failed: {exc}") from exc

    async def peek(self, max_messages: int = 10) -> list[QueueMessage]:
        redis = self._client()
        try:
            entries = await redis.xrange(self._name, min="-", max="+", count=max_messages)
            if not entries:
                return []
            pending = await redis.xpending_range(
                self._name,
                self._group,
                min=entries[0][0],
                max=entries[-1][0],
                count=len(entries),
            )
        except RedisError as exc:
            raise QueueError(f"Redis peek failed: {exc}") from exc

        counts = {p["message_id"]: p["times_delivered"] for p in pending}
        return [
            QueueMessage(
                message_id=msg_id,
                payload=fields.get("payload", ""),
                receipt="",
                delivery_count=counts.get(msg_id, 0),
                enqueued_at=_stream_id_time(msg_id),
            )
            for msg_id, fields in entries
        ]

    async def dead_letters(self, limit: int = 50) -> list[DeadLetter]:
        redis = self._client()
        try:
            entries = await redis.xrevrange(
                self._dead_letter_name, max="+", min="-", count=limit,
            )
        except RedisError as exc:
            raise QueueError(f"Redis dead-letter read failed: {exc}") from exc

        letters = [
            DeadLetter(
                message_id=fields.get("message_id", ""),
                payload=fields.get("payload", ""),
                reason=fields.get("reason", "unknown"),
                delivery_count=int(fields.get("delivery_count", 0)),
                dead_lettered_at=_stream_id_time(dl_id),
            )
            for dl_id, fields in entries
        ]
        letters.reverse()
        return letters

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            raise QueueError("RedisStreamsQueue not started")
        return self._redis

    async def _ensure_group(self) -> None:
        """Create consumer group, ignoring BUSYGROUP if it already exists."""
        redis = self._client()
        try:
            await redis.xgroup_create(self._name, self._group, id="0", mkstream=True)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def _claim_expired(
        self, redis: aioredis.Redis, timeout: float,
    ) -> tuple[str, dict[str, str]] | None:
        result = await redis.xautoclaim(
            self._name,
            self._group,
            self._consumer,
            min_idle_time=int(timeout * 1000),
            start_id="0-0",
            count=1,
        )
        # [next_start_id, [(id, fields), ...], (deleted ids on Redis 7+)]
        for msg_id, fields in result[1]:
            if msg_id is None or fields is None:
                continue
            return msg_id, fields
        return None

    async def _read_new(
        self, redis: aioredis.Redis,
    ) -> tuple[str, dict[str, str]] | None:
        entries = await redis.xreadgroup(
            groupname=self._group,
            consumername=self._consumer,
            streams={self._name: ">"},
            count=1,
            block=self._block_ms,
        )
        for _stream, messages in entries or []:
            for msg_id, fields in messages:
                return msg_id, fields
        return None

    async def _pending_entry(
        self, redis: aioredis.Redis, msg_id: str,
    ) -> dict | None:
        pending = await redis.xpending_range(
            self._name, self._group, min=msg_id, max=msg_id, count=1,
        )
        return pending[0] if pending else None

    async def _delivery_count(self, redis: aioredis.Redis, msg_id: str) -> int:
        entry = await self._pending_entry(redis, msg_id)
        return int(entry["times_delivered"]) if entry else 1

    async def _move_to_dead_letter(
        self,
        redis: aioredis.Redis,
        msg_id: str,
        payload: str,
        reason: str,
        delivery_count: int,
    ) -> None:
        logger.error(
            "Dead-lettering message %s on %s after %d deliveries: %s",
            msg_id,
            self._name,
            delivery_count,
            reason,
        )
        await redis.xadd(
            self._dead_letter_name,
            {
                "message_id": msg_id,
                "payload": payload,
                "reason": reason,
                "delivery_count": str(delivery_count),
            },
            maxlen=self._dead_letter_max_len,
            approximate=True,
        )
        await redis.xack(self._name, self._group, msg_id)
        await redis.xdel(self._name, msg_id)
