"""Custom exception hierarchy for the order pipeline."""

from __future__ import annotations

from typing import Any


class OrderPipelineError(Exception):
    """Base exception for all order pipeline errors."""


# --- Configuration ---
class ConfigError(OrderPipelineError):
    """Invalid or missing configuration."""


# --- Submission ---
class ValidationError(OrderPipelineError):
    """Submission payload is malformed or violates a constraint.

    ``errors`` holds one entry per violated constraint, each a dict with
    ``field`` and ``message`` keys.
    """

    def __init__(self, errors: list[dict[str, Any]]):
        self.errors = errors
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"Invalid order submission: {summary}")


class EnqueueFailure(OrderPipelineError):
    """The queue could not accept a message. The caller must resubmit."""


# --- Processing ---
class DeserializationError(OrderPipelineError):
    """A queue payload cannot be decoded into an Order. Never retryable."""


class StoreWriteFailure(OrderPipelineError):
    """Transient persistence fault. Retried through queue redelivery."""


# --- Queue ---
class QueueError(OrderPipelineError):
    """Queue communication error outside of enqueue."""
