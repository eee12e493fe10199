"""Enumerations used across the order pipeline."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"  # Set by fulfillment, outside this service
    FAILED = "Failed"


class ProcessingOutcome(str, Enum):
    """What the worker should do with a delivered message."""

    ACKNOWLEDGE = "acknowledge"  # Persisted; remove from the queue
    RETRY = "retry"  # Leave unacknowledged; redelivered after the visibility timeout
    DROP = "drop"  # Unprocessable; remove and dead-letter


class QueueBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class StoreBackend(str, Enum):
    MEMORY = "memory"
    POSTGRES = "postgres"


class DeadLetterReason(str, Enum):
    DESERIALIZATION_FAILED = "deserialization_failed"
    MAX_DELIVERY_COUNT_EXCEEDED = "max_delivery_count_exceeded"
