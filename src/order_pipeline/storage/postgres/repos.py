"""PostgreSQL order store.

Conversion helpers translate between the core :class:`Order` model and
:class:`OrderRecord` rows. Writes use ``INSERT ... ON CONFLICT (id) DO
UPDATE`` so a redelivered order overwrites its own row atomically.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from order_pipeline.core.enums import OrderStatus
from order_pipeline.core.models import Order

from .connection import create_all, create_session_factory, session_scope
from .models import OrderRecord

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "customer_ref",
    "product_ref",
    "customer_name",
    "product_name",
    "quantity",
    "unit_price",
    "total_amount",
    "status",
    "notes",
    "created_at",
)


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _order_to_row(order: Order) -> dict[str, Any]:
    """Convert a core :class:`Order` to ``orders`` column values."""
    return {
        "id": order.id,
        "customer_ref": order.customer_ref,
        "product_ref": order.product_ref,
        "customer_name": order.customer_name,
        "product_name": order.product_name,
        "quantity": order.quantity,
        "unit_price": order.unit_price,
        "total_amount": order.total_amount,
        "status": order.status.value,
        "notes": order.notes,
        "created_at": order.created_at,
    }


def _record_to_order(record: OrderRecord) -> Order:
    """Convert an ORM :class:`OrderRecord` back to a core :class:`Order`."""
    return Order(
        id=record.id,
        customer_ref=record.customer_ref,
        product_ref=record.product_ref,
        customer_name=record.customer_name,
        product_name=record.product_name,
        quantity=record.quantity,
        unit_price=record.unit_price,
        total_amount=record.total_amount,
        status=OrderStatus(record.status),
        notes=record.notes,
        created_at=record.created_at,
    )


def build_upsert(order: Order) -> Insert:
    """Overwrite-by-id statement for *order*."""
    stmt = insert(OrderRecord).values(**_order_to_row(order))
    return stmt.on_conflict_do_update(
        index_elements=[OrderRecord.id],
        set_={
            **{name: stmt.excluded[name] for name in _UPDATABLE},
            "updated_at": func.now(),
        },
    )


# ---------------------------------------------------------------------------
# PostgresOrderStore
# ---------------------------------------------------------------------------

class PostgresOrderStore:
    """Order store backed by the ``orders`` table.

    Args:
        engine: Async engine created at process start.
        create_tables: Run ``CREATE TABLE IF NOT EXISTS`` on start
            (dev/test only; production schemas come from alembic).
    """

    def __init__(self, engine: AsyncEngine, *, create_tables: bool = False) -> None:
        self._engine = engine
        self._create_tables = create_tables
        self._session_factory = create_session_factory(engine)

    async def start(self) -> None:
        if self._create_tables:
            await create_all(self._engine)

    async def stop(self) -> None:
        await self._engine.dispose()
        logger.info("Engine disposed.")

    async def upsert(self, order: Order) -> bool:
        """Insert or overwrite the row for ``order.id``.

        Returns ``False`` on database errors; the caller decides whether
        to retry.
        """
        try:
            async with session_scope(self._session_factory) as session:
                await session.execute(build_upsert(order))
        except (SQLAlchemyError, OSError):
            logger.exception("Upsert failed for order %s", order.id)
            return False
        logger.debug("Upserted order %s -> status=%s", order.id, order.status.value)
        return True

    async def get(self, order_id: str) -> Order | None:
        async with session_scope(self._session_factory) as session:
            record = await session.get(OrderRecord, order_id)
            if record is None:
                return None
            return _record_to_order(record)

    async def list(self) -> list[Order]:
        stmt = select(OrderRecord).order_by(OrderRecord.created_at)
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt)
            return [_record_to_order(r) for r in result.scalars().all()]
