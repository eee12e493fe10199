"""Worker harness: leases queue messages and applies processing verdicts.

Runs ``concurrency`` independent consume loops. Each loop handles one
message at a time:

- ACKNOWLEDGE: ``queue.acknowledge(receipt)``
- RETRY: nothing; the lease lapses and the queue redelivers (or
  dead-letters once the delivery ceiling is reached)
- DROP: ``queue.discard(message, reason)``

The worker never retries on its own and never extends a lease.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable

from order_pipeline.core.enums import ProcessingOutcome
from order_pipeline.core.interfaces import IMessageQueue
from order_pipeline.messaging.schemas import QueueMessage
from order_pipeline.observability.logger import delivery_context, get_logger

from .processor import OrderProcessor, ProcessingResult

logger = get_logger(__name__)


class OrderWorker:
    """Consumes order messages from a queue.

    Args:
        queue: Queue to lease messages from.
        processor: Turns one payload into a :class:`ProcessingResult`.
        visibility_timeout: Lease length requested on each dequeue.
        poll_interval: Sleep between polls when the queue is empty.
        concurrency: Number of consume loops.
        on_result: Optional callback ``(message, result)`` fired after each
            verdict is applied. Useful for external metrics.
    """

    def __init__(
        self,
        queue: IMessageQueue,
        processor: OrderProcessor,
        *,
        visibility_timeout: float = 30.0,
        poll_interval: float = 1.0,
        concurrency: int = 1,
        on_result: Callable[[QueueMessage, ProcessingResult], None] | None = None,
    ) -> None:
        self._queue = queue
        self._processor = processor
        self._visibility_timeout = visibility_timeout
        self._poll_interval = poll_interval
        self._concurrency = concurrency
        self._on_result = on_result
        self._tasks: list[asyncio.Task] = []
        self._running = False

        # Observability
        self._outcomes: Counter[str] = Counter()
        self._loop_errors = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for index in range(self._concurrency):
            task = asyncio.create_task(
                self._consume_loop(), name=f"order-worker-{index}",
            )
            self._tasks.append(task)
        logger.info("order_worker_started", concurrency=self._concurrency)

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("order_worker_stopped", outcomes=dict(self._outcomes))

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    async def run_once(self) -> ProcessingResult | None:
        """Lease and handle a single message. ``None`` when the queue is idle."""
        message = await self._queue.dequeue(self._visibility_timeout)
        if message is None:
            return None
        return await self.handle(message)

    async def handle(self, message: QueueMessage) -> ProcessingResult:
        """Process one delivery and apply the verdict to the queue."""
        with delivery_context(message.message_id, message.delivery_count):
            result = await self._processor.process(message.payload)

            if result.outcome == ProcessingOutcome.ACKNOWLEDGE:
                if not await self._queue.acknowledge(message.receipt):
                    # Lease lapsed and someone else holds the message now;
                    # their upsert of the same id is harmless.
                    logger.warning("order_ack_lost_lease", order_id=result.order_id)
            elif result.outcome == ProcessingOutcome.DROP:
                await self._queue.discard(message, result.reason or "dropped")
            else:
                logger.warning(
                    "order_left_for_redelivery",
                    order_id=result.order_id,
                    reason=result.reason,
                )

            self._outcomes[result.outcome.value] += 1
            if self._on_result is not None:
                try:
                    self._on_result(message, result)
                except Exception:
                    logger.warning("on_result callback failed", exc_info=True)
            return result

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                result = await self.run_once()
                if result is None:
                    await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break
            except Exception:
                self._loop_errors += 1
                logger.exception("order_worker_loop_error")
                await asyncio.sleep(self._poll_interval)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, int]:
        """Per-outcome counts plus consume-loop error count."""
        return {
            **{o.value: self._outcomes[o.value] for o in ProcessingOutcome},
            "loop_errors": self._loop_errors,
        }
