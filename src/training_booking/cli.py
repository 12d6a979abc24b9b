"""CLI entry point for the booking service."""

from __future__ import annotations

import click

from .core.enums import StoreBackend


@click.group()
def main() -> None:
    """Training Booking Service."""


@main.command()
@click.option("--config", default=None, help="Config file path (TOML)")
@click.option("--host", default=None, help="Bind address override")
@click.option("--port", default=None, type=int, help="Port override")
@click.option("--seed/--no-seed", default=None, help="Seed demo data on startup")
def serve(config: str | None, host: str | None, port: int | None, seed: bool | None) -> None:
    """Run the HTTP API."""
    from .main import run_server

    overrides: dict = {}
    if host or port:
        overrides["api"] = {}
        if host:
            overrides["api"]["host"] = host
        if port:
            overrides["api"]["port"] = port
    if seed is not None:
        overrides["seed_demo_data"] = seed

    run_server(config_path=config, overrides=overrides)


@main.command("init-db")
@click.option("--config", default=None, help="Config file path (TOML)")
def init_db(config: str | None) -> None:
    """Create the database tables (dev/test; use alembic in production)."""
    import asyncio

    from .core.config import load_settings
    from .main import build_store
    from .storage.postgres.connection import create_all

    settings = load_settings(config, {"store_backend": StoreBackend.POSTGRES.value})
    store = build_store(settings)

    async def _run() -> None:
        try:
            await create_all(store.engine)  # type: ignore[attr-defined]
        finally:
            await store.close()

    asyncio.run(_run())
    click.echo("Database tables created.")


@main.command()
@click.option("--config", default=None, help="Config file path (TOML)")
def seed(config: str | None) -> None:
    """Insert the demo users and trainings into the configured store."""
    import asyncio

    from .core.config import load_settings
    from .main import build_store
    from .seed import seed_demo_data

    settings = load_settings(config)
    if settings.store_backend == StoreBackend.MEMORY:
        click.echo("Warning: the in-memory store is discarded when this command exits.", err=True)
    store = build_store(settings)

    async def _run() -> tuple[int, int]:
        try:
            users, trainings = await seed_demo_data(store)
            return len(users), len(trainings)
        finally:
            await store.close()

    n_users, n_trainings = asyncio.run(_run())
    click.echo(f"Created {n_users} users and {n_trainings} trainings")


if __name__ == "__main__":
    main()
