"""PostgreSQL persistence via SQLAlchemy async + asyncpg."""

from order_pipeline.storage.postgres.repos import PostgresOrderStore

__all__ = ["PostgresOrderStore"]
