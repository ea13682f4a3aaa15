"""CLI command for a one-off cache sweep.

Usage:
    beacon sweep-cache
    beacon sweep-cache --backend redis
"""

from __future__ import annotations

import asyncio

import typer

from beacon.cache import close_redis, create_cache_store
from beacon.persistence.db import close_db

app = typer.Typer(help="Remove expired cache entries")


async def _sweep(backend: str | None) -> int:
    store = await create_cache_store(backend)
    try:
        return await store.sweep()
    finally:
        await store.close()
        await close_redis()
        await close_db()


@app.callback(invoke_without_command=True)
def sweep_cache(
    backend: str | None = typer.Option(
        None,
        "--backend",
        "-b",
        help="Cache backend (database or redis); defaults to the configured one",
    ),
) -> None:
    """Delete every cache entry whose expiry has passed."""
    try:
        removed = asyncio.run(_sweep(backend))
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"Removed {removed} expired cache entries")
