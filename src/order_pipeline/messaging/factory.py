"""Message queue factory.

Creates the queue implementation selected by ``settings.queue.backend``.
"""

from __future__ import annotations

from order_pipeline.core.clock import IClock
from order_pipeline.core.config import Settings
from order_pipeline.core.enums import QueueBackend

from .memory_queue import InMemoryMessageQueue
from .redis_streams import RedisStreamsQueue


def create_message_queue(
    settings: Settings,
    clock: IClock | None = None,
) -> InMemoryMessageQueue | RedisStreamsQueue:
    """Create a message queue for the configured backend.

    - MEMORY: InMemoryMessageQueue (no external deps, single process)
    - REDIS: RedisStreamsQueue (persistent, shared between processes)

    Args:
        settings: Application settings.
        clock: Time source for the in-memory queue (ignored for Redis).
    """
    cfg = settings.queue
    if cfg.backend == QueueBackend.MEMORY:
        return InMemoryMessageQueue(
            max_delivery_count=cfg.max_delivery_count,
            visibility_timeout=cfg.visibility_timeout_seconds,
            max_dead_letters=cfg.dead_letter_max_length,
            clock=clock,
        )
    return RedisStreamsQueue(
        redis_url=settings.redis_url,
        name=cfg.name,
        group=cfg.consumer_group,
        visibility_timeout=cfg.visibility_timeout_seconds,
        max_delivery_count=cfg.max_delivery_count,
        dead_letter_max_length=cfg.dead_letter_max_length,
        block_ms=int(cfg.poll_interval_seconds * 1000),
    )
