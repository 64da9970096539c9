"""
Root Typer application for the jobhost CLI.

``jobhost run`` is the container/Lambda entry point; ``jobhost detect`` shows
which mode the current environment selects.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from typer import Typer

from jobhost import __version__
from jobhost.core.settings import JobhostSettings
from jobhost.execution.environment import EnvironmentMode, detect_mode, runtime_api_address

console = Console()
err_console = Console(stderr=True)

app = Typer(
    name="jobhost",
    help="jobhost: run one job the same way on Lambda, Kubernetes or locally.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jobhost {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """jobhost CLI: deployment-agnostic job runner."""


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("run")
def run(
    job: str | None = typer.Option(None, "--job", "-j", help="Job target as module:function"),  # noqa: UP007
    limit: int | None = typer.Option(None, "--limit", "-n", min=0, help="Max items the job processes"),  # noqa: UP007
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),  # noqa: UP007
) -> None:
    """Run the job: poll the Runtime API under Lambda, otherwise run once and exit.

    Example::

        jobhost run --limit 1000
        jobhost run --job myjobs.scan:main
    """
    from jobhost.entrypoint import main as entrypoint_main

    overrides: dict[str, Any] = {}
    if job is not None:
        overrides["job"] = job
    if limit is not None:
        overrides["limit"] = limit
    if log_level is not None:
        overrides["log_level"] = log_level

    try:
        settings = JobhostSettings(**overrides)
    except ValidationError as exc:
        err_console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(code=1)

    entrypoint_main(settings)


@app.command("detect")
def detect() -> None:
    """Show the deployment mode selected by the current environment."""
    mode = detect_mode()
    console.print(f"[bold]mode[/bold]: {mode.value}")
    if mode is EnvironmentMode.CUSTOM_RUNTIME:
        console.print(f"[bold]runtime api[/bold]: {runtime_api_address()}")
