"""CLI for modelops-blobs."""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .api import pull_file, push_file
from .blobs import BlobClient
from .config import ClientConfig, load_client_config
from .errors import (
    AuthError,
    BlobError,
    ConfigError,
    DigestMismatchError,
    TransportError,
)
from .utils import humanize_size


app = typer.Typer(help="""\
Move content-addressed blobs to and from an OCI registry. Push a file,
pull it back by digest, or probe whether the registry has it.""")

console = Console()

_state = {"config": None}


def _get_config() -> ClientConfig:
    config = _state["config"]
    if config is None:
        config = load_client_config()
        _state["config"] = config
    return config


def _get_client(config: ClientConfig) -> BlobClient:
    """Create a BlobClient for the configured registry."""
    return BlobClient.connect(
        config.require_registry(),
        insecure=config.insecure,
        timeout=config.timeout,
    )


def _client() -> BlobClient:
    try:
        return _get_client(_get_config())
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def _fail(e: Exception, registry: Optional[str]) -> None:
    """Print a registry error and exit."""
    if isinstance(e, AuthError):
        console.print(f"[red]✗ Authentication failed for {registry}[/red]")
        console.print("[dim]Check your credentials or use 'docker login'[/dim]")
    elif isinstance(e, TransportError) and e.status_code is None:
        console.print(f"[red]✗ Cannot connect to registry at {registry}[/red]")
        console.print(f"[dim]{e}[/dim]")
    elif isinstance(e, DigestMismatchError):
        console.print(f"[red]✗ {e}[/red]")
    else:
        console.print(f"[red]✗[/red] {e}")
    if os.environ.get("DEBUG"):
        console.print_exception()
    raise typer.Exit(1)


@app.callback()
def main(
    registry: Optional[str] = typer.Option(
        None, "--registry", "-r", help="Registry host[:port] (default: MODELOPS_BLOBS_REGISTRY)"
    ),
    insecure: Optional[bool] = typer.Option(
        None, "--insecure/--secure", help="Use plain HTTP (default: auto-detect for localhost)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log every registry request"),
):
    """Configure the registry connection for all commands."""
    if debug or os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = load_client_config()
    if registry:
        config.registry = registry
    if insecure is not None:
        config.insecure = insecure
    _state["config"] = config


@app.command()
def push(
    repository: str = typer.Argument(..., help="Repository (e.g., team/models)"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    chunked: Optional[bool] = typer.Option(
        None, "--chunked/--monolithic", help="Upload with PATCH + PUT instead of a single PUT"
    ),
    force: bool = typer.Option(False, "--force", help="Upload even if the registry has the blob"),
):
    """Upload a file as a blob and print its digest."""
    config = _get_config()
    client = _client()
    use_chunked = config.chunked if chunked is None else chunked
    try:
        with client:
            desc = push_file(
                repository,
                path,
                chunked=use_chunked,
                skip_existing=not force,
                client=client,
            )
    except (BlobError, OSError) as e:
        _fail(e, config.registry)

    console.print(f"[green]✓[/green] Pushed {path.name} ({humanize_size(desc.size)})")
    console.print(desc.digest)


@app.command()
def pull(
    repository: str = typer.Argument(..., help="Repository (e.g., team/models)"),
    digest: str = typer.Argument(..., help="Blob digest (sha256:...)"),
    dest: Path = typer.Argument(..., help="Where to write the blob"),
):
    """Download a blob by digest and verify it."""
    config = _get_config()
    client = _client()
    try:
        with client:
            desc = pull_file(repository, digest, dest, client=client)
    except (BlobError, ValueError) as e:
        _fail(e, config.registry)

    console.print(f"[green]✓[/green] Pulled {desc.digest[:19]}... → {dest} ({humanize_size(desc.size)})")


@app.command()
def exists(
    repository: str = typer.Argument(..., help="Repository (e.g., team/models)"),
    digest: str = typer.Argument(..., help="Blob digest (sha256:...)"),
):
    """Exit 0 if the registry has the blob, 1 if it doesn't."""
    config = _get_config()
    client = _client()
    try:
        with client:
            present = client.has_blob(repository, digest)
    except (BlobError, ValueError) as e:
        _fail(e, config.registry)

    if present:
        console.print(f"[green]✓[/green] {digest} exists in {repository}")
        return
    console.print(f"[yellow]{digest} not found in {repository}[/yellow]")
    raise typer.Exit(1)


@app.command()
def stat(
    repository: str = typer.Argument(..., help="Repository (e.g., team/models)"),
    digest: str = typer.Argument(..., help="Blob digest (sha256:...)"),
):
    """Show a blob's digest and size."""
    config = _get_config()
    client = _client()
    try:
        with client:
            desc = client.blob_metadata(repository, digest)
    except TransportError as e:
        if e.is_not_found:
            console.print(f"[red]✗[/red] {digest} not found in {repository}")
            raise typer.Exit(1)
        _fail(e, config.registry)
    except (BlobError, ValueError) as e:
        _fail(e, config.registry)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Repository", repository)
    table.add_row("Digest", desc.digest)
    if desc.size >= 0:
        table.add_row("Size", f"{humanize_size(desc.size)} ({desc.size} bytes)")
    else:
        table.add_row("Size", "unknown")
    console.print(table)


if __name__ == "__main__":
    app()
