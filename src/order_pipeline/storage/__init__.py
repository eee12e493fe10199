"""Order persistence."""

from order_pipeline.storage.factory import create_order_store
from order_pipeline.storage.memory_store import InMemoryOrderStore

__all__ = ["InMemoryOrderStore", "create_order_store"]
