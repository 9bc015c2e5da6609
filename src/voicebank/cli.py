#!/usr/bin/env python3
"""
Command line entry point for the voicebank backend.
"""

import asyncio
import json
import mimetypes
from pathlib import Path

import aiofiles
import click

from voicebank import __version__
from voicebank.logging import configure_logging, get_logger
from voicebank.storage.base import StorageFile
from voicebank.storage.config import get_storage_info
from voicebank.storage.factory import StorageFactory
from voicebank.storage.keys import build_recording_key, file_extension, is_valid_wallet_address
from voicebank.storage.pacing import UploadPacer, upload_parallel, upload_serial
from voicebank.storage.validator import TOSConfigValidator

logger = get_logger(__name__)


def _echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def read_storage_file(path: Path) -> StorageFile:
    """Load a local file for upload, guessing its content type from the name."""
    async with aiofiles.open(path, "rb") as f:
        content = await f.read()
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return StorageFile(content=content, content_type=content_type, filename=path.name)


@click.group()
@click.version_option(version=__version__, prog_name="voicebank")
@click.option("--debug", is_flag=True, default=False, help="Human-readable debug logging")
def cli(debug: bool) -> None:
    """voicebank CLI - serve the API and manage audio storage."""
    configure_logging(debug=debug)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
@click.option("--port", default=8088, type=int, help="Port to bind to (default: 8088)")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Log level (default: info)",
)
def serve(host: str, port: int, reload: bool, log_level: str) -> None:
    """Start the voicebank API server."""
    import uvicorn

    logger.info("Starting voicebank API server", host=host, port=port, reload=reload)
    uvicorn.run(
        "voicebank.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@cli.group()
def storage() -> None:
    """Inspect and exercise the configured audio storage."""
    pass


@storage.command()
def info() -> None:
    """Show the configured storage backend."""
    _echo_json(get_storage_info())


@storage.command()
def guide() -> None:
    """Print the TOS configuration guide."""
    for line in TOSConfigValidator.get_configuration_guide():
        click.echo(line)


@storage.command()
def validate() -> None:
    """Validate TOS configuration against the live backend."""
    result = asyncio.run(TOSConfigValidator().validate_configuration())
    _echo_json(result.to_dict())
    if not result.is_valid:
        raise click.exceptions.Exit(1)


@storage.command(name="test-upload")
def test_upload() -> None:
    """Upload, inspect and delete a small TOS test object."""
    result = asyncio.run(TOSConfigValidator().test_upload())
    _echo_json(result.to_dict())
    if not result.success:
        raise click.exceptions.Exit(1)


@storage.command()
@click.argument("wallet_address")
@click.argument(
    "files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--mode",
    type=click.Choice(["backend", "serial", "parallel"]),
    default="backend",
    help="Batch policy: the backend's own, serial with pauses, or concurrent",
)
@click.option("--interval", type=float, default=0.2, help="Pause between serial uploads (s)")
@click.option("--max-concurrency", type=int, default=None, help="Bound parallel uploads")
def upload(
    wallet_address: str,
    files: tuple[Path, ...],
    mode: str,
    interval: float,
    max_concurrency: int | None,
) -> None:
    """Upload recordings for WALLET_ADDRESS; each file's stem is its sentence id."""
    if not is_valid_wallet_address(wallet_address):
        raise click.BadParameter("Invalid wallet address format", param_hint="WALLET_ADDRESS")

    async def _run() -> list[dict]:
        provider = StorageFactory().get_storage_provider()
        items = []
        for path in files:
            storage_file = await read_storage_file(path)
            key = build_recording_key(wallet_address, path.stem, file_extension(path.name))
            items.append((storage_file, key))

        if mode == "serial":
            results = await upload_serial(provider, items, UploadPacer(interval))
        elif mode == "parallel":
            results = await upload_parallel(provider, items, max_concurrency)
        else:
            results = await provider.upload_multiple(items)
        return [r.to_dict() for r in results]

    results = asyncio.run(_run())
    _echo_json({"results": results})
    if not all(r["success"] for r in results):
        raise click.exceptions.Exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
