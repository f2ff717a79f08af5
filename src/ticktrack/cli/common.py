"""Shared plumbing for tick commands."""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator

import typer

from ticktrack.cli.render import print_error
from ticktrack.core.exceptions import TickError
from ticktrack.storage.coordinator import Store, open_store


@dataclass
class CLIState:
    """Global options shared by every command."""

    verbose: bool = False
    quiet: bool = False


state = CLIState()


def split_ids(value: str | None) -> list[str]:
    """Split a comma-separated ID option, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@contextmanager
def store_session() -> Generator[Store, None, None]:
    """Open the enclosing project's store, reporting tick errors as CLI errors."""
    with handle_errors():
        store = open_store()
        try:
            yield store
        finally:
            store.close()


@contextmanager
def handle_errors() -> Generator[None, None, None]:
    """Print tick errors as ``Error: <message>`` and exit 1."""
    try:
        yield
    except TickError as e:
        print_error(e.message)
        raise typer.Exit(1)
