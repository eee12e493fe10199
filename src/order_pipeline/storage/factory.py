"""Order store factory."""

from __future__ import annotations

from order_pipeline.core.config import Settings
from order_pipeline.core.enums import StoreBackend

from .memory_store import InMemoryOrderStore


def create_order_store(settings: Settings):
    """Create the order store selected by ``settings.store.backend``.

    The PostgreSQL engine is created here, once, and owned by the store.
    """
    cfg = settings.store
    if cfg.backend == StoreBackend.MEMORY:
        return InMemoryOrderStore()

    from .postgres.connection import create_engine
    from .postgres.repos import PostgresOrderStore

    engine = create_engine(
        settings.postgres_url,
        pool_size=cfg.pool_size,
        max_overflow=cfg.max_overflow,
        echo=cfg.echo,
    )
    return PostgresOrderStore(engine, create_tables=cfg.create_tables)
