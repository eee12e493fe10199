"""Message queues carrying serialized orders from intake to processing."""

from order_pipeline.messaging.factory import create_message_queue
from order_pipeline.messaging.schemas import DeadLetter, QueueMessage

__all__ = ["DeadLetter", "QueueMessage", "create_message_queue"]
