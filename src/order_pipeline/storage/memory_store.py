"""In-memory order store for tests and single-process runs."""

from __future__ import annotations

import logging

from order_pipeline.core.models import Order

logger = logging.getLogger(__name__)


class InMemoryOrderStore:
    """Dict-backed store keyed by order id.

    Stored and returned values are copies, so callers can never mutate the
    persisted state in place.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def upsert(self, order: Order) -> bool:
        existed = order.id in self._orders
        self._orders[order.id] = order.model_copy(deep=True)
        logger.debug(
            "%s order %s -> status=%s",
            "Updated" if existed else "Inserted",
            order.id,
            order.status.value,
        )
        return True

    async def get(self, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order is not None else None

    async def list(self) -> list[Order]:
        return sorted(
            (o.model_copy(deep=True) for o in self._orders.values()),
            key=lambda o: o.created_at,
        )

    def __len__(self) -> int:
        return len(self._orders)
