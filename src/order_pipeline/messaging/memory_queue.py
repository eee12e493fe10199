"""In-memory message queue for tests and single-process runs.

No external dependencies. Mirrors the semantics of the Redis Streams
queue: leases with a visibility timeout, per-delivery receipts, delivery
counting, and dead-lettering once the delivery ceiling is reached.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime

from order_pipeline.core.clock import IClock, WallClock
from order_pipeline.core.enums import DeadLetterReason
from order_pipeline.core.ids import new_id

from .schemas import DeadLetter, QueueMessage

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    message_id: str
    payload: str
    enqueued_at: datetime
    delivery_count: int = 0
    visible_at: float = 0.0
    receipt: str | None = None


class InMemoryMessageQueue:
    """In-memory queue. Safe within a single asyncio event loop.

    Args:
        max_delivery_count: Deliveries allowed before a message is
            dead-lettered instead of being handed out again.
        visibility_timeout: Default lease length in seconds.
        max_dead_letters: Dead letters kept for inspection; the oldest are
            dropped first.
        clock: Time source; inject a ``ManualClock`` to drive timeouts.
    """

    def __init__(
        self,
        max_delivery_count: int = 5,
        visibility_timeout: float = 30.0,
        max_dead_letters: int = 100_000,
        clock: IClock | None = None,
    ) -> None:
        self._max_delivery_count = max_delivery_count
        self._visibility_timeout = visibility_timeout
        self._clock = clock or WallClock()
        # Insertion order gives best-effort FIFO.
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._dead_letters: deque[DeadLetter] = deque(maxlen=max_dead_letters)
        self._running = False

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    async def enqueue(self, payload: str) -> str:
        message_id = new_id()
        self._entries[message_id] = _Entry(
            message_id=message_id,
            payload=payload,
            enqueued_at=self._clock.now(),
        )
        return message_id

    async def dequeue(
        self, visibility_timeout: float | None = None,
    ) -> QueueMessage | None:
        timeout = (
            self._visibility_timeout
            if visibility_timeout is None
            else visibility_timeout
        )
        now = self._clock.monotonic()

        for entry in list(self._entries.values()):
            if entry.visible_at > now:
                continue
            if entry.delivery_count >= self._max_delivery_count:
                self._dead_letter(
                    entry, DeadLetterReason.MAX_DELIVERY_COUNT_EXCEEDED.value,
                )
                continue

            entry.delivery_count += 1
            entry.visible_at = now + timeout
            entry.receipt = new_id()
            return QueueMessage(
                message_id=entry.message_id,
                payload=entry.payload,
                receipt=entry.receipt,
                delivery_count=entry.delivery_count,
                enqueued_at=entry.enqueued_at,
            )
        return None

    async def acknowledge(self, receipt: str) -> bool:
        entry = self._find_by_receipt(receipt)
        if entry is None:
            logger.warning("Acknowledge with stale or unknown receipt %s", receipt)
            return False
        del self._entries[entry.message_id]
        return True

    async def discard(self, message: QueueMessage, reason: str) -> None:
        entry = self._entries.get(message.message_id)
        if entry is None:
            # Already removed by another consumer; still keep the audit record.
            self._dead_letters.append(
                DeadLetter(
                    message_id=message.message_id,
                    payload=message.payload,
                    reason=reason,
                    delivery_count=message.delivery_count,
                    dead_lettered_at=self._clock.now(),
                )
            )
            return
        self._dead_letter(entry, reason)

    async def peek(self, max_messages: int = 10) -> list[QueueMessage]:
        return [
            QueueMessage(
                message_id=e.message_id,
                payload=e.payload,
                receipt="",
                delivery_count=e.delivery_count,
                enqueued_at=e.enqueued_at,
            )
            for e in list(self._entries.values())[:max_messages]
        ]

    async def dead_letters(self, limit: int = 50) -> list[DeadLetter]:
        return list(self._dead_letters)[-limit:]

    # ------------------------------------------------------------------
    # Testing helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_by_receipt(self, receipt: str) -> _Entry | None:
        for entry in self._entries.values():
            if entry.receipt == receipt:
                return entry
        return None

    def _dead_letter(self, entry: _Entry, reason: str) -> None:
        logger.error(
            "Dead-lettering message %s after %d deliveries: %s",
            entry.message_id,
            entry.delivery_count,
            reason,
        )
        del self._entries[entry.message_id]
        self._dead_letters.append(
            DeadLetter(
                message_id=entry.message_id,
                payload=entry.payload,
                reason=reason,
                delivery_count=entry.delivery_count,
                dead_lettered_at=self._clock.now(),
            )
        )
