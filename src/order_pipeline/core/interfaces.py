"""Protocol interfaces for the order pipeline.

Module boundaries are defined here as Protocol classes so queue and store
implementations can be swapped (memory/redis, memory/postgres) without
changing callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .models import Order

if TYPE_CHECKING:
    from order_pipeline.messaging.schemas import DeadLetter, QueueMessage


# ---------------------------------------------------------------------------
# Message queue
# ---------------------------------------------------------------------------

@runtime_checkable
class IMessageQueue(Protocol):
    """Durable at-least-once queue of serialized order payloads."""

    async def start(self) -> None: ...
    async def stop(self) -> None: ...

    async def enqueue(self, payload: str) -> str:
        """Append a message; returns its id. Raises ``EnqueueFailure``."""
        ...

    async def dequeue(
        self, visibility_timeout: float | None = None,
    ) -> QueueMessage | None:
        """Lease the next visible message, or ``None`` when idle."""
        ...

    async def acknowledge(self, receipt: str) -> bool:
        """Remove a leased message. ``False`` when the receipt is stale."""
        ...

    async def discard(self, message: QueueMessage, reason: str) -> None:
        """Remove a message and record it as a dead letter."""
        ...

    async def peek(self, max_messages: int = 10) -> list[QueueMessage]: ...

    async def dead_letters(self, limit: int = 50) -> list[DeadLetter]: ...


# ---------------------------------------------------------------------------
# Order store
# ---------------------------------------------------------------------------

@runtime_checkable
class IOrderStore(Protocol):
    """Keyed order persistence with overwrite-by-id semantics."""

    async def start(self) -> None: ...
    async def stop(self) -> None: ...

    async def upsert(self, order: Order) -> bool:
        """Insert or overwrite by ``order.id``. Returns the success flag."""
        ...

    async def get(self, order_id: str) -> Order | None: ...

    async def list(self) -> list[Order]: ...
