from __future__ import annotations

import asyncio
import json
import sys
from typing import List, Optional

import typer

from directory_sync.config import get_settings
from directory_sync.domain.errors import StorageError
from directory_sync.domain.models import Record
from directory_sync.infrastructure.remote_source import HttpRemoteSource
from directory_sync.session import build_session
from directory_sync.stores import create_store
from directory_sync.synchronizer import Synchronizer
from directory_sync.utils.logging import configure_logging

app = typer.Typer(help="Directory Sync CLI: offline-first user directory.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _render(records: List[Record]) -> None:
    for record in records:
        typer.echo(f"{record.id:>5}  {record.name:<28} {record.email:<32} {record.phone}")
    typer.echo(f"({len(records)} records)")


@app.command()
def info() -> None:
    """
    Show effective configuration values and the local record count.
    """
    settings = get_settings()
    location = (
        str(settings.sqlite_path)
        if settings.db_backend == "sqlite"
        else f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )
    try:
        store = create_store(settings)
        try:
            count: object = store.count()
        finally:
            store.close()
    except StorageError as exc:
        count = f"unavailable ({exc})"
    typer.echo(
        f"store={settings.db_backend}:{location} | records={count} | "
        f"remote={settings.remote_users_url} | debounce={settings.search_debounce_ms}ms"
    )


@app.command()
def sync() -> None:
    """
    Refresh the local store from the remote once and print the result.
    """
    _setup()
    settings = get_settings()

    async def _run() -> dict:
        store = create_store(settings)
        remote = HttpRemoteSource(
            base_url=settings.remote_base_url,
            users_path=settings.remote_users_path,
            timeout=settings.remote_timeout_seconds,
        )
        try:
            synchronizer = Synchronizer(remote, store, retry_attempts=settings.sync_retry_attempts)
            return dict(await synchronizer.refresh())
        finally:
            await remote.aclose()
            store.close()

    typer.echo(json.dumps(asyncio.run(_run()), indent=2))


@app.command("list")
def list_records(
    filter_text: Optional[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Case-insensitive substring matched against name or email.",
    ),
) -> None:
    """
    Print locally stored records without touching the network.
    """
    _setup()
    store = create_store(get_settings())
    try:
        _render(store.query(filter_text or ""))
    finally:
        store.close()


@app.command()
def watch() -> None:
    """
    Start a session, refresh in the background, and re-render on every change.

    Each line read from stdin becomes the new filter; EOF exits.
    """
    _setup()

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        async with build_session() as session:
            observer = session.observe()

            async def _printer() -> None:
                async for records in observer:
                    _render(records)

            printer = loop.create_task(_printer())
            try:
                while True:
                    line = await loop.run_in_executor(None, sys.stdin.readline)
                    if not line:
                        break
                    session.set_filter(line.rstrip("\n"))
            finally:
                observer.close()
                await asyncio.gather(printer, return_exceptions=True)

    asyncio.run(_run())


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
