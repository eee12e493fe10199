"""Tests for OrderProcessor verdicts."""

import pytest

from order_pipeline.core.codec import encode_order
from order_pipeline.core.enums import OrderStatus, ProcessingOutcome
from order_pipeline.processing.processor import OrderProcessor, ProcessingResult


class TestProcessingResult:
    def test_constructors(self):
        assert ProcessingResult.acknowledge("o1").outcome == ProcessingOutcome.ACKNOWLEDGE
        assert ProcessingResult.retry("o1", "db down").reason == "db down"
        dropped = ProcessingResult.drop("deserialization_failed")
        assert dropped.outcome == ProcessingOutcome.DROP
        assert dropped.order_id is None


class TestOrderProcessor:
    @pytest.mark.asyncio
    async def test_persists_with_processing_status(
        self, processor, store, sample_order,
    ):
        result = await processor.process(encode_order(sample_order))

        assert result == ProcessingResult.acknowledge("order-1")
        stored = await store.get("order-1")
        assert stored.status == OrderStatus.PROCESSING
        assert stored.model_dump(exclude={"status"}) == sample_order.model_dump(
            exclude={"status"}
        )

    @pytest.mark.asyncio
    async def test_accepts_bytes(self, processor, store, sample_order):
        result = await processor.process(encode_order(sample_order).encode())
        assert result.outcome == ProcessingOutcome.ACKNOWLEDGE

    @pytest.mark.asyncio
    async def test_duplicate_delivery_single_record(
        self, processor, store, sample_order,
    ):
        payload = encode_order(sample_order)
        await processor.process(payload)
        await processor.process(payload)
        assert len(store) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["", "not json", '{"id": "x"}', "[1, 2]"])
    async def test_malformed_payload_dropped(self, processor, store, payload):
        result = await processor.process(payload)
        assert result.outcome == ProcessingOutcome.DROP
        assert result.reason == "deserialization_failed"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_returning_false_retries(self, flaky_store_cls, sample_order):
        store = flaky_store_cls(failures=1)
        result = await OrderProcessor(store).process(encode_order(sample_order))

        assert result.outcome == ProcessingOutcome.RETRY
        assert result.order_id == "order-1"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_raising_retries(self, flaky_store_cls, sample_order):
        store = flaky_store_cls(failures=1, mode="raise")
        result = await OrderProcessor(store).process(encode_order(sample_order))

        assert result.outcome == ProcessingOutcome.RETRY
        assert "database unreachable" in result.reason

    @pytest.mark.asyncio
    async def test_recovers_once_store_is_back(self, flaky_store_cls, sample_order):
        store = flaky_store_cls(failures=1)
        processor = OrderProcessor(store)
        payload = encode_order(sample_order)

        assert (await processor.process(payload)).outcome == ProcessingOutcome.RETRY
        assert (await processor.process(payload)).outcome == ProcessingOutcome.ACKNOWLEDGE
        assert store.attempts == 2
