# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/cli.py

"""
Gateway Command Line Interface

Thin wrapper around IPCClient, plus `serve` to run the HTTP API.
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from ipc_gateway import config as config_module
from ipc_gateway.client import IPCClient
from ipc_gateway.config import ConfigError
from ipc_gateway.errors import GatewayError
from ipc_gateway.types import to_payload


def handle_gateway_error(func):
    """Decorator to catch classified and configuration errors."""
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GatewayError as e:
            click.echo(f"Error: {e.code}: {e.message}", err=True)
            if e.details:
                details = e.details if isinstance(e.details, str) else json.dumps(e.details)
                click.echo(f"  {details}", err=True)
            sys.exit(1)
        except ConfigError as e:
            click.echo(f"Error: Invalid config: {e}", err=True)
            sys.exit(1)
        except FileNotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


config_file_option = click.option(
    "--config-file",
    type=click.Path(exists=True, path_type=Path),
    help="Config file path (default: /etc/ipc-gateway/gateway.toml)",
)


def _run(config_file: Path, operation: str, *args):
    cfg = config_module.load_config(config_file).require_valid()
    client = IPCClient(cfg)
    result = asyncio.run(getattr(client, operation)(*args))
    click.echo(json.dumps(to_payload(result), indent=2))


@click.group()
def cli():
    """Storage gateway CLI."""
    pass


# =============================================================================
# Buckets
# =============================================================================

@cli.group()
def bucket():
    """Bucket operations."""
    pass


@bucket.command("create")
@click.argument("name")
@config_file_option
@handle_gateway_error
def bucket_create(name: str, config_file: Path) -> None:
    """Create a bucket."""
    _run(config_file, "create_bucket", name)


@bucket.command("delete")
@click.argument("name")
@config_file_option
@handle_gateway_error
def bucket_delete(name: str, config_file: Path) -> None:
    """Delete an empty bucket."""
    _run(config_file, "delete_bucket", name)


@bucket.command("view")
@click.argument("name")
@config_file_option
@handle_gateway_error
def bucket_view(name: str, config_file: Path) -> None:
    """Show one bucket."""
    _run(config_file, "view_bucket", name)


@bucket.command("list")
@config_file_option
@handle_gateway_error
def bucket_list(config_file: Path) -> None:
    """List buckets."""
    _run(config_file, "list_buckets")


# =============================================================================
# Files
# =============================================================================

@cli.group()
def file():
    """File operations."""
    pass


@file.command("list")
@click.argument("bucket_name")
@config_file_option
@handle_gateway_error
def file_list(bucket_name: str, config_file: Path) -> None:
    """List files in a bucket."""
    _run(config_file, "list_files", bucket_name)


@file.command("info")
@click.argument("bucket_name")
@click.argument("file_name")
@config_file_option
@handle_gateway_error
def file_info(bucket_name: str, file_name: str, config_file: Path) -> None:
    """Show one file."""
    _run(config_file, "file_info", bucket_name, file_name)


@file.command("upload")
@click.argument("bucket_name")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@config_file_option
@handle_gateway_error
def file_upload(bucket_name: str, path: Path, config_file: Path) -> None:
    """
    Upload a file to a bucket.

    Examples:

        ipc-gateway file upload mybucket ./report.pdf
    """
    _run(config_file, "upload_file", bucket_name, path)


@file.command("download")
@click.argument("bucket_name")
@click.argument("file_name")
@click.argument(
    "destination",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    required=False,
)
@config_file_option
@handle_gateway_error
def file_download(bucket_name: str, file_name: str, destination: Path, config_file: Path) -> None:
    """Download a file into DESTINATION (default: current directory)."""
    destination.mkdir(parents=True, exist_ok=True)
    _run(config_file, "download_file", bucket_name, file_name, destination)


# =============================================================================
# Service
# =============================================================================

@cli.command("check-config")
@config_file_option
def check_config(config_file: Path) -> None:
    """
    Validate gateway configuration.

    Shows current settings (private key redacted) and checks for errors/warnings.
    """
    config_path = config_file or config_module.DEFAULT_CONFIG

    try:
        cfg = config_module.load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    errors, warnings = cfg.validate()

    click.echo(f"Config file: {config_path}")
    click.echo()
    click.echo("Settings:")
    click.echo(f"  node_address: {cfg.node_address or '(not set)'}")
    click.echo(f"  private_key: {'configured' if cfg.private_key else '(not set)'}")
    click.echo(f"  binary: {cfg.binary}")
    click.echo(f"  rpc_url: {cfg.rpc_url or '(not set)'}")
    click.echo(f"  timeout: {cfg.command_timeout if cfg.command_timeout is not None else '(none)'}")
    click.echo()

    if errors:
        click.echo("Errors:", err=True)
        for e in errors:
            click.echo(f"  ✗ {e}", err=True)
    if warnings:
        click.echo("Warnings:")
        for w in warnings:
            click.echo(f"  ⚠ {w}")
    if not errors and not warnings:
        click.echo("✓ Config is valid")
    sys.exit(1 if errors else 0)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from settings, 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port (default: from settings, 3000)")
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    from ipc_gateway.api import Settings, create_app

    settings = Settings()
    app = create_app(settings)
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    cli()
