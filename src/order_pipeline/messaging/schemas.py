"""Transport records shared by all queue implementations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class QueueMessage:
    """A leased (or peeked) message plus its delivery metadata.

    ``receipt`` is only valid for the delivery that produced it; once the
    visibility window lapses and the message is handed out again, the old
    receipt can no longer acknowledge it.
    """

    message_id: str
    payload: str
    receipt: str
    delivery_count: int
    enqueued_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "payload": self.payload,
            "deliveryCount": self.delivery_count,
            "enqueuedAt": self.enqueued_at.isoformat(),
        }


@dataclass(frozen=True)
class DeadLetter:
    """Record of a message removed from the live queue for inspection."""

    message_id: str
    payload: str
    reason: str
    delivery_count: int
    dead_lettered_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "payload": self.payload,
            "reason": self.reason,
            "deliveryCount": self.delivery_count,
            "deadLetteredAt": self.dead_lettered_at.isoformat(),
        }
