from __future__ import annotations

import json
import logging
import signal
import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer

from ..core.environment import Environment
from ..core.errors import BackendError
from ..core.filters import strip_wildcard
from ..core.types import WatchRequest

app = typer.Typer(help="confwatch CLI")


def _env(config: Optional[Path]) -> Environment:
    return Environment(config)


@app.callback()
def main(log_level: str = typer.Option("WARNING", "--log-level")):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("backends-list")
def backends_list(config: Optional[Path] = typer.Option(None, "--config")):
    e = _env(config)
    typer.echo(json.dumps(e.loader.backend_names(), indent=2))


@app.command()
def get(
    keys: List[str],
    backend: str = typer.Option(..., "--backend", help="Backend name or URI"),
    config: Optional[Path] = typer.Option(None, "--config"),
):
    e = _env(config)
    try:
        values = e.backend(backend).get_values(keys)
    except BackendError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(dict(values), indent=2, sort_keys=True))


@app.command()
def watch(
    prefix: str,
    keys: List[str] = typer.Option([], "--key", help="Filter prefix, repeatable"),
    backend: str = typer.Option(..., "--backend", help="Backend name or URI"),
    config: Optional[Path] = typer.Option(None, "--config"),
    interval: float = typer.Option(1.0, "--interval", help="Pause between wakeups, in seconds"),
    once: bool = typer.Option(False, "--once", help="Exit after the first wakeup"),
):
    e = _env(config)
    b = e.backend(backend)
    stop = threading.Event()
    request = WatchRequest(prefix, tuple(keys or [strip_wildcard(prefix)]), "", stop)
    previous = signal.signal(signal.SIGINT, lambda *_: stop.set())

    try:
        while not stop.is_set():
            try:
                typer.echo(json.dumps(dict(b.get_values([request.prefix])), sort_keys=True))
                cursor = b.watch_prefix(request.prefix, request.keys, request.cursor, request.stop)
            except BackendError as err:
                typer.echo(f"Error: {err}", err=True)
                raise typer.Exit(code=1)
            request = replace(request, cursor=cursor)
            if once:
                break
            # backends without change notification return at once
            stop.wait(interval)
    finally:
        signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    app()
