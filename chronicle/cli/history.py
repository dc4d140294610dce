"""
CLI commands for the versioned document history.

Provides commands to record documents, read back their latest version and
publish recorded versions to the remote repository.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from chronicle.config import config
from chronicle.history.errors import HistoryError
from chronicle.history.recorder import Recorder

COLLECTION_WIDE = "-"


def _collection(value: str) -> Optional[str]:
    return None if value == COLLECTION_WIDE else value


def _recorder(root: str) -> Recorder:
    return Recorder.from_config(Path(root), config.history)


def _run(coroutine):
    try:
        return asyncio.run(coroutine)
    except (HistoryError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


root_option = click.option(
    "--root",
    default=lambda: config.history.versions_path,
    show_default="CHRONICLE_VERSIONS_PATH or data/versions",
    help="Repository holding the recorded documents",
)


@click.group()
def history():
    """Versioned document history commands."""
    pass


@history.command()
@click.argument("collection")
@click.argument("kind")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--changelog", "-m", default=None, help="Changelog stored in the commit body")
@click.option("--extension", default=None, help="File extension of the recorded document")
@click.option("--mime-type", default=None, help="MIME type used to derive the extension")
@root_option
def record(collection, kind, source, changelog, extension, mime_type, root):
    """Record SOURCE as the latest content of COLLECTION/KIND ('-' for no collection)."""

    async def _record():
        recorder = _recorder(root)
        try:
            return await recorder.record(
                _collection(collection),
                kind,
                source.read_bytes(),
                changelog=changelog,
                extension=extension,
                mime_type=mime_type,
            )
        finally:
            await recorder.close()

    result = _run(_record())

    click.echo(f"Path: {result.path}")
    if result.version_id is None:
        click.echo("No changes, nothing recorded")
        return
    click.echo(f"Version: {result.version_id}")
    click.echo(f"First version: {'yes' if result.is_first_version else 'no'}")


@history.command()
@click.argument("collection")
@click.argument("kind")
@root_option
def latest(collection, kind, root):
    """Print the latest recorded version of COLLECTION/KIND."""
    result = _run(_recorder(root).get_latest_record(_collection(collection), kind))

    if result is None:
        click.echo("Never recorded", err=True)
        sys.exit(1)

    click.echo(f"Version: {result.version_id}")
    click.echo(f"MIME type: {result.mime_type or 'unknown'}")
    click.echo("")
    if isinstance(result.content, str):
        click.echo(result.content)
    else:
        click.echo(f"<{len(result.content):,} bytes of binary content>")


@history.command()
@click.argument("collection")
@click.argument("kind")
@root_option
def tracked(collection, kind, root):
    """Tell whether COLLECTION/KIND was ever recorded (exit status 1 if not)."""
    is_tracked = _run(_recorder(root).is_tracked(_collection(collection), kind))
    click.echo("tracked" if is_tracked else "not tracked")
    if not is_tracked:
        sys.exit(1)


@history.command()
@click.argument("collection")
@click.argument("kind")
@click.option("--max-count", "-n", default=10, type=int, help="Number of versions to list")
@root_option
def log(collection, kind, max_count, root):
    """List version ids of COLLECTION/KIND, most recent first."""
    version_ids = _run(_recorder(root).history(_collection(collection), kind, max_count))
    for version_id in version_ids:
        click.echo(version_id)


@history.command()
@root_option
def publish(root):
    """Push recorded versions to the configured remote."""
    _run(_recorder(root).publish())
    click.echo(f"Published {root} to {config.history.remote}/{config.history.branch}")


if __name__ == "__main__":
    history()
