"""Queue consumption: per-message processing and the worker harness."""

from order_pipeline.processing.processor import OrderProcessor, ProcessingResult
from order_pipeline.processing.worker import OrderWorker

__all__ = ["OrderProcessor", "OrderWorker", "ProcessingResult"]
