"""Application bootstrap.

Builds every component once, explicitly, and passes the queue and store
handles into the components that use them.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Any

from .core.clock import IClock
from .core.config import Settings, load_settings
from .core.enums import QueueBackend
from .core.errors import ConfigError
from .core.interfaces import IMessageQueue, IOrderStore
from .intake.service import OrderSubmissionService
from .messaging.factory import create_message_queue
from .observability.logger import setup_logging
from .processing.processor import OrderProcessor
from .processing.worker import OrderWorker
from .storage.factory import create_order_store

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything a running process needs, wired together."""

    settings: Settings
    queue: IMessageQueue
    store: IOrderStore
    service: OrderSubmissionService
    processor: OrderProcessor
    worker: OrderWorker

    async def start(self, *, with_worker: bool = True) -> None:
        await self.queue.start()
        await self.store.start()
        if with_worker:
            await self.worker.start()

    async def stop(self) -> None:
        if self.worker.is_running:
            await self.worker.stop()
        await self.store.stop()
        await self.queue.stop()


def build_components(settings: Settings, clock: IClock | None = None) -> Components:
    """Construct queue, store, intake, processor and worker from settings."""
    queue = create_message_queue(settings, clock=clock)
    store = create_order_store(settings)
    processor = OrderProcessor(store)
    worker = OrderWorker(
        queue,
        processor,
        visibility_timeout=settings.queue.visibility_timeout_seconds,
        poll_interval=settings.queue.poll_interval_seconds,
        concurrency=settings.worker.concurrency,
    )
    return Components(
        settings=settings,
        queue=queue,
        store=store,
        service=OrderSubmissionService(queue, clock=clock),
        processor=processor,
        worker=worker,
    )


def _prepare(
    config_path: str | None, overrides: dict[str, Any] | None,
) -> Settings:
    settings = load_settings(config_path=config_path, overrides=overrides)
    settings.validate_backends()
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )
    return settings


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)


async def run(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Serve the HTTP API, with in-process workers unless disabled."""
    import uvicorn

    from .api.app import create_app

    settings = _prepare(config_path, overrides)
    components = build_components(settings)
    await components.start(with_worker=settings.worker.enabled)

    app = create_app(
        service=components.service,
        queue=components.queue,
        store=components.store,
        worker=components.worker if settings.worker.enabled else None,
    )
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_config=None,
        )
    )
    logger.info(
        "Starting order pipeline API on %s:%d (queue=%s store=%s workers=%s)",
        settings.api.host,
        settings.api.port,
        settings.queue.backend.value,
        settings.store.backend.value,
        settings.worker.concurrency if settings.worker.enabled else 0,
    )

    try:
        await server.serve()
    finally:
        await components.stop()
        logger.info("Shutdown complete")


async def run_worker(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Run queue workers only, until SIGINT/SIGTERM."""
    settings = _prepare(config_path, overrides)
    components = build_components(settings)
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await components.start(with_worker=True)
    logger.info(
        "Worker running (queue=%s concurrency=%d)",
        settings.queue.name,
        settings.worker.concurrency,
    )
    try:
        await stop_event.wait()
    finally:
        await components.stop()
        logger.info("Shutdown complete")


async def init_db(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Create the ``orders`` table if it does not exist."""
    from .storage.postgres.connection import create_all, create_engine

    settings = _prepare(config_path, overrides)
    engine = create_engine(settings.postgres_url, use_null_pool=True)
    try:
        await create_all(engine)
    finally:
        await engine.dispose()


async def list_dead_letters(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Fetch dead letters from the configured queue.

    Raises:
        ConfigError: The queue backend is in-memory, so a separate process
            has no dead letters to read.
    """
    settings = _prepare(config_path, overrides)
    if settings.queue.backend == QueueBackend.MEMORY:
        raise ConfigError(
            "Dead letters of the in-memory queue live inside the serving "
            "process; use GET /queue/dead-letters or a redis queue backend."
        )
    queue = create_message_queue(settings)
    await queue.start()
    try:
        return [d.to_dict() for d in await queue.dead_letters(limit)]
    finally:
        await queue.stop()
