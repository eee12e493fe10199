"""Order processor: queue payload in, processing verdict out.

The processor never raises to signal a retry. It returns a
:class:`ProcessingResult` and leaves acting on the queue to the worker:

- payload cannot be decoded       -> DROP (retrying can never succeed)
- store rejected or raised         -> RETRY (transient; redelivery will retry)
- store accepted                   -> ACKNOWLEDGE

Delivery is at-least-once and the same order may be processed by two
workers at once, so persistence relies entirely on the store's
overwrite-by-id upsert.
"""

from __future__ import annotations

from dataclasses import dataclass

from order_pipeline.core.codec import decode_order
from order_pipeline.core.enums import DeadLetterReason, OrderStatus, ProcessingOutcome
from order_pipeline.core.errors import DeserializationError, StoreWriteFailure
from order_pipeline.core.interfaces import IOrderStore
from order_pipeline.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessingResult:
    """Tagged outcome of processing one delivery."""

    outcome: ProcessingOutcome
    order_id: str | None = None
    reason: str | None = None

    @classmethod
    def acknowledge(cls, order_id: str) -> ProcessingResult:
        return cls(ProcessingOutcome.ACKNOWLEDGE, order_id=order_id)

    @classmethod
    def retry(cls, order_id: str, reason: str) -> ProcessingResult:
        return cls(ProcessingOutcome.RETRY, order_id=order_id, reason=reason)

    @classmethod
    def drop(cls, reason: str) -> ProcessingResult:
        return cls(ProcessingOutcome.DROP, reason=reason)


class OrderProcessor:
    """Deserializes queued orders, marks them Processing, and persists them."""

    def __init__(self, store: IOrderStore) -> None:
        self._store = store

    async def process(self, payload: str | bytes) -> ProcessingResult:
        try:
            order = decode_order(payload)
        except DeserializationError as exc:
            logger.error(
                "order_payload_malformed",
                error=str(exc),
                payload=_preview(payload),
            )
            return ProcessingResult.drop(DeadLetterReason.DESERIALIZATION_FAILED.value)

        order = order.with_status(OrderStatus.PROCESSING)

        try:
            if not await self._store.upsert(order):
                raise StoreWriteFailure(f"Store rejected order {order.id}")
        except Exception as exc:
            logger.warning(
                "order_store_write_failed",
                order_id=order.id,
                error=str(exc),
                exc_info=not isinstance(exc, StoreWriteFailure),
            )
            return ProcessingResult.retry(order.id, str(exc))

        logger.info(
            "order_persisted",
            order_id=order.id,
            status=order.status.value,
            total_amount=str(order.total_amount),
        )
        return ProcessingResult.acknowledge(order.id)


def _preview(payload: str | bytes, limit: int = 200) -> str:
    text = payload.decode("utf-8", "replace") if isinstance(payload, bytes) else payload
    return text if len(text) <= limit else text[:limit] + "..."
