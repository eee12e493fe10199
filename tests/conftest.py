"""Shared fixtures for the order-pipeline test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from order_pipeline.core.clock import ManualClock
from order_pipeline.core.enums import OrderStatus
from order_pipeline.core.models import Order
from order_pipeline.intake.service import OrderSubmissionService
from order_pipeline.messaging.memory_queue import InMemoryMessageQueue
from order_pipeline.processing.processor import OrderProcessor
from order_pipeline.processing.worker import OrderWorker
from order_pipeline.storage.memory_store import InMemoryOrderStore

VISIBILITY_TIMEOUT = 30.0
MAX_DELIVERIES = 3


class FlakyOrderStore(InMemoryOrderStore):
    """In-memory store whose next ``failures`` upserts fail.

    ``mode="flag"`` returns ``False``; ``mode="raise"`` raises
    ``ConnectionError`` the way a driver would.
    """

    def __init__(self, failures: int = 0, mode: str = "flag") -> None:
        super().__init__()
        self.failures = failures
        self.mode = mode
        self.attempts = 0

    async def upsert(self, order: Order) -> bool:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            if self.mode == "raise":
                raise ConnectionError("database unreachable")
            return False
        return await super().upsert(order)


class UnavailableQueue(InMemoryMessageQueue):
    """Queue that refuses every enqueue."""

    def __init__(self, exc: Exception | None = None) -> None:
        super().__init__()
        self.exc = exc or ConnectionError("queue unreachable")
        self.enqueue_calls = 0

    async def enqueue(self, payload: str) -> str:
        self.enqueue_calls += 1
        raise self.exc


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def submission_data() -> dict:
    """A valid camelCase submission body."""
    return {
        "customerRef": "cust-001",
        "productRef": "prod-042",
        "customerName": "Thandi Nkosi",
        "productName": "Gaming Laptop",
        "quantity": 2,
        "unitPrice": 15999.99,
        "notes": "Deliver after 5pm",
    }


@pytest.fixture
def sample_order() -> Order:
    return Order(
        id="order-1",
        customer_ref="cust-001",
        product_ref="prod-042",
        customer_name="Thandi Nkosi",
        product_name="Gaming Laptop",
        quantity=2,
        unit_price=Decimal("15999.99"),
        total_amount=Decimal("31999.98"),
        status=OrderStatus.PENDING,
        notes="",
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def queue(clock: ManualClock) -> InMemoryMessageQueue:
    return InMemoryMessageQueue(
        max_delivery_count=MAX_DELIVERIES,
        visibility_timeout=VISIBILITY_TIMEOUT,
        clock=clock,
    )


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def service(queue: InMemoryMessageQueue, clock: ManualClock) -> OrderSubmissionService:
    return OrderSubmissionService(queue, clock=clock)


@pytest.fixture
def processor(store: InMemoryOrderStore) -> OrderProcessor:
    return OrderProcessor(store)


@pytest.fixture
def worker(queue: InMemoryMessageQueue, processor: OrderProcessor) -> OrderWorker:
    return OrderWorker(
        queue,
        processor,
        visibility_timeout=VISIBILITY_TIMEOUT,
        poll_interval=0.01,
    )


@pytest.fixture
def flaky_store_cls() -> type[FlakyOrderStore]:
    return FlakyOrderStore


@pytest.fixture
def unavailable_queue() -> UnavailableQueue:
    return UnavailableQueue()
