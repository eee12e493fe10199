"""CLI entry point for the order pipeline."""

from __future__ import annotations

import json

import click


@click.group()
def main() -> None:
    """Order Pipeline."""


@main.command()
@click.option("--config", default="configs/local.toml", help="Config file path")
@click.option("--port", default=None, type=int, help="HTTP port override")
@click.option("--no-worker", is_flag=True, help="Serve the API without in-process workers")
def serve(config: str, port: int | None, no_worker: bool) -> None:
    """Serve the HTTP API (and workers unless --no-worker)."""
    import asyncio

    from .main import run

    overrides: dict = {}
    if port is not None:
        overrides["api"] = {"port": port}
    if no_worker:
        overrides["worker"] = {"enabled": False}

    asyncio.run(run(config_path=config, overrides=overrides))


@main.command()
@click.option("--config", default="configs/local.toml", help="Config file path")
@click.option("--concurrency", default=None, type=int, help="Number of consume loops")
def worker(config: str, concurrency: int | None) -> None:
    """Run queue workers only."""
    import asyncio

    from .main import run_worker

    overrides: dict = {}
    if concurrency is not None:
        overrides["worker"] = {"concurrency": concurrency}

    asyncio.run(run_worker(config_path=config, overrides=overrides))


@main.command("init-db")
@click.option("--config", default="configs/local.toml", help="Config file path")
def init_db(config: str) -> None:
    """Create the orders table (dev/test; use alembic in production)."""
    import asyncio

    from .main import init_db as _init_db

    asyncio.run(_init_db(config_path=config))


@main.command("dead-letters")
@click.option("--config", default="configs/local.toml", help="Config file path")
@click.option("--limit", default=50, type=int, help="Maximum entries to show")
def dead_letters(config: str, limit: int) -> None:
    """Print dead-lettered messages as JSON lines."""
    import asyncio

    from .core.errors import ConfigError
    from .main import list_dead_letters

    try:
        letters = asyncio.run(list_dead_letters(config_path=config, limit=limit))
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    for letter in letters:
        click.echo(json.dumps(letter))
    if not letters:
        click.echo("No dead letters.", err=True)


if __name__ == "__main__":
    main()
