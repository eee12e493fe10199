"""Order submission service.

Validates a submission, builds a pending :class:`Order`, and hands its
wire form to the queue. Returns as soon as the enqueue call returns; it
never touches the order store and never retries a failed enqueue.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pydantic

from order_pipeline.core.clock import IClock, WallClock
from order_pipeline.core.codec import encode_order
from order_pipeline.core.errors import EnqueueFailure, ValidationError
from order_pipeline.core.ids import new_id
from order_pipeline.core.interfaces import IMessageQueue
from order_pipeline.core.models import Order, OrderSubmission, SubmissionReceipt
from order_pipeline.observability.logger import get_logger

logger = get_logger(__name__)


def parse_submission(data: Mapping[str, Any] | OrderSubmission) -> OrderSubmission:
    """Validate raw request data.

    Raises:
        ValidationError: One entry per violated constraint.
    """
    if isinstance(data, OrderSubmission):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(
            [{"field": "body", "message": "Order submission must be a JSON object"}]
        )
    try:
        return OrderSubmission.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise ValidationError(
            [
                {
                    "field": ".".join(str(p) for p in err["loc"]) or "body",
                    "message": err["msg"],
                }
                for err in exc.errors(include_url=False)
            ]
        ) from exc


class OrderSubmissionService:
    """Stateless intake; safe to share across concurrent requests."""

    def __init__(self, queue: IMessageQueue, clock: IClock | None = None) -> None:
        self._queue = queue
        self._clock = clock or WallClock()

    async def submit(
        self, data: Mapping[str, Any] | OrderSubmission,
    ) -> SubmissionReceipt:
        """Queue a new order.

        Raises:
            ValidationError: The submission is invalid; nothing was queued.
            EnqueueFailure: The queue did not accept the order; the caller
                must resubmit.
        """
        submission = parse_submission(data)
        order = Order.from_submission(
            submission, order_id=new_id(), created_at=self._clock.now(),
        )

        try:
            message_id = await self._queue.enqueue(encode_order(order))
        except EnqueueFailure:
            logger.error("order_enqueue_failed", order_id=order.id, exc_info=True)
            raise
        except Exception as exc:
            logger.error("order_enqueue_failed", order_id=order.id, exc_info=True)
            raise EnqueueFailure(f"Queue unavailable: {exc}") from exc

        logger.info(
            "order_submitted",
            order_id=order.id,
            message_id=message_id,
            customer_ref=order.customer_ref,
            total_amount=str(order.total_amount),
        )
        return SubmissionReceipt(
            order_id=order.id,
            total_amount=order.total_amount,
            timestamp=self._clock.now(),
        )
