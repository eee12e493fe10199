"""Tests for RedisStreamsQueue against a mocked redis client."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from order_pipeline.core.errors import EnqueueFailure, QueueError
from order_pipeline.messaging.redis_streams import (
    RedisStreamsQueue,
    make_receipt,
    parse_receipt,
)
from order_pipeline.messaging.schemas import QueueMessage

STREAM = "order-processing"
MSG_ID = "1700000000000-0"


def _queue(redis: AsyncMock | None = None, **kwargs) -> RedisStreamsQueue:
    queue = RedisStreamsQueue(name=STREAM, consumer_name="c1", **kwargs)
    queue._redis = redis if redis is not None else AsyncMock()
    return queue


def _pending(times_delivered: int, msg_id: str = MSG_ID) -> list[dict]:
    return [
        {
            "message_id": msg_id,
            "consumer": "c1",
            "time_since_delivered": 0,
            "times_delivered": times_delivered,
        }
    ]


class TestReceipts:
    def test_round_trip(self):
        assert parse_receipt(make_receipt(MSG_ID, 3)) == (MSG_ID, 3)

    @pytest.mark.parametrize("receipt", ["", MSG_ID, f"{MSG_ID}@", "@2", f"{MSG_ID}@x"])
    def test_malformed(self, receipt):
        with pytest.raises(ValueError):
            parse_receipt(receipt)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_creates_group(self):
        redis = AsyncMock()
        with patch(
            "order_pipeline.messaging.redis_streams.aioredis.from_url",
            return_value=redis,
        ):
            queue = RedisStreamsQueue(name=STREAM, group="g")
            await queue.start()

        redis.xgroup_create.assert_awaited_once_with(STREAM, "g", id="0", mkstream=True)

    @pytest.mark.asyncio
    async def test_existing_group_is_fine(self):
        redis = AsyncMock()
        redis.xgroup_create.side_effect = ResponseError(
            "BUSYGROUP Consumer Group name already exists"
        )
        with patch(
            "order_pipeline.messaging.redis_streams.aioredis.from_url",
            return_value=redis,
        ):
            await RedisStreamsQueue(name=STREAM).start()

    @pytest.mark.asyncio
    async def test_other_group_errors_propagate(self):
        redis = AsyncMock()
        redis.xgroup_create.side_effect = ResponseError("WRONGTYPE")
        with patch(
            "order_pipeline.messaging.redis_streams.aioredis.from_url",
            return_value=redis,
        ):
            with pytest.raises(ResponseError):
                await RedisStreamsQueue(name=STREAM).start()

    @pytest.mark.asyncio
    async def test_stop_closes_client(self):
        redis = AsyncMock()
        queue = _queue(redis)
        await queue.stop()
        redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_started(self):
        queue = RedisStreamsQueue()
        with pytest.raises(EnqueueFailure):
            await queue.enqueue("x")
        with pytest.raises(QueueError):
            await queue.dequeue()


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_live_stream_is_never_trimmed(self):
        redis = AsyncMock()
        redis.xadd.return_value = MSG_ID
        queue = _queue(redis, dead_letter_max_length=500)

        assert await queue.enqueue('{"id": "o1"}') == MSG_ID
        redis.xadd.assert_awaited_once_with(STREAM, {"payload": '{"id": "o1"}'})

    @pytest.mark.asyncio
    async def test_redis_error_is_enqueue_failure(self):
        redis = AsyncMock()
        redis.xadd.side_effect = RedisConnectionError("refused")
        with pytest.raises(EnqueueFailure, match="refused"):
            await _queue(redis).enqueue("x")


class TestDequeue:
    @pytest.mark.asyncio
    async def test_new_entry(self):
        redis = AsyncMock()
        redis.xautoclaim.return_value = ["0-0", [], []]
        redis.xreadgroup.return_value = [[STREAM, [(MSG_ID, {"payload": "p"})]]]
        redis.xpending_range.return_value = _pending(1)

        message = await _queue(redis).dequeue()

        assert message.message_id == MSG_ID
        assert message.payload == "p"
        assert message.delivery_count == 1
        assert message.receipt == f"{MSG_ID}@1"
        assert message.enqueued_at.year == 2023

    @pytest.mark.asyncio
    async def test_expired_lease_is_claimed_first(self):
        redis = AsyncMock()
        redis.xautoclaim.return_value = ["0-0", [(MSG_ID, {"payload": "p"})], []]
        redis.xpending_range.return_value = _pending(2)

        message = await _queue(redis).dequeue(visibility_timeout=12.5)

        assert message.delivery_count == 2
        assert redis.xautoclaim.await_args.kwargs["min_idle_time"] == 12500
        redis.xreadgroup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty(self):
        redis = AsyncMock()
        redis.xautoclaim.return_value = ["0-0", [], []]
        redis.xreadgroup.return_value = []
        assert await _queue(redis).dequeue() is None

    @pytest.mark.asyncio
    async def test_over_ceiling_is_dead_lettered(self):
        redis = AsyncMock()
        redis.xautoclaim.side_effect = [
            ["0-0", [(MSG_ID, {"payload": "poison"})], []],
            ["0-0", [], []],
        ]
        redis.xreadgroup.return_value = []
        redis.xpending_range.return_value = _pending(4)

        assert await _queue(redis, max_delivery_count=3).dequeue() is None

        redis.xadd.assert_awaited_once_with(
            f"{STREAM}:dead-letter",
            {
                "message_id": MSG_ID,
                "payload": "poison",
                "reason": "max_delivery_count_exceeded",
                "delivery_count": "3",
            },
            maxlen=100_000,
            approximate=True,
        )
        redis.xack.assert_awaited_once_with(STREAM, "order-processors", MSG_ID)
        redis.xdel.assert_awaited_once_with(STREAM, MSG_ID)

    @pytest.mark.asyncio
    async def test_redis_error_is_queue_error(self):
        redis = AsyncMock()
        redis.xautoclaim.side_effect = RedisConnectionError("gone")
        with pytest.raises(QueueError):
            await _queue(redis).dequeue()


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_current_receipt(self):
        redis = AsyncMock()
        redis.xpending_range.return_value = _pending(2)

        assert await _queue(redis).acknowledge(f"{MSG_ID}@2") is True
        redis.xack.assert_awaited_once()
        redis.xdel.assert_awaited_once_with(STREAM, MSG_ID)

    @pytest.mark.asyncio
    async def test_stale_receipt(self):
        redis = AsyncMock()
        redis.xpending_range.return_value = _pending(3)

        assert await _queue(redis).acknowledge(f"{MSG_ID}@2") is False
        redis.xack.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_removed(self):
        redis = AsyncMock()
        redis.xpending_range.return_value = []
        assert await _queue(redis).acknowledge(f"{MSG_ID}@1") is False


class TestInspection:
    @pytest.mark.asyncio
    async def test_discard(self):
        redis = AsyncMock()
        message = QueueMessage(
            message_id=MSG_ID,
            payload="{bad",
            receipt=f"{MSG_ID}@1",
            delivery_count=1,
            enqueued_at=datetime.now(timezone.utc),
        )
        await _queue(redis, dead_letter_max_length=500).discard(
            message, "deserialization_failed",
        )

        fields = redis.xadd.await_args.args[1]
        assert redis.xadd.await_args.kwargs == {"maxlen": 500, "approximate": True}
        assert fields["reason"] == "deserialization_failed"
        assert fields["delivery_count"] == "1"
        redis.xdel.assert_awaited_once_with(STREAM, MSG_ID)

    @pytest.mark.asyncio
    async def test_peek_joins_delivery_counts(self):
        redis = AsyncMock()
        other = "1700000000001-0"
        redis.xrange.return_value = [
            (MSG_ID, {"payload": "a"}),
            (other, {"payload": "b"}),
        ]
        redis.xpending_range.return_value = _pending(2)

        messages = await _queue(redis).peek(2)

        assert [m.delivery_count for m in messages] == [2, 0]
        assert all(m.receipt == "" for m in messages)

    @pytest.mark.asyncio
    async def test_dead_letters_oldest_first(self):
        redis = AsyncMock()
        redis.xrevrange.return_value = [
            ("1700000000002-0", {"message_id": "m2", "payload": "b", "reason": "r", "delivery_count": "5"}),
            ("1700000000001-0", {"message_id": "m1", "payload": "a", "reason": "r", "delivery_count": "1"}),
        ]

        letters = await _queue(redis).dead_letters(limit=2)

        assert [d.message_id for d in letters] == ["m1", "m2"]
        assert letters[1].delivery_count == 5
        redis.xrevrange.assert_awaited_once_with(
            f"{STREAM}:dead-letter", max="+", min="-", count=2,
        )
