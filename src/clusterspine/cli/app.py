"""
Root Typer application for the cluster-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from clusterspine import __version__
from clusterspine.core.logging import configure_logging
from clusterspine.core.settings import get_settings

app = Typer(
    name="cluster-spine",
    help="cluster-spine — desired-state rollout of cluster configurations, images and boot templates.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cluster-spine {__version__}")
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
    log_level: str | None = typer.Option(None, "--log-level", help="Overrides CLUSTER_SPINE_LOG_LEVEL"),
    json_logs: bool | None = typer.Option(None, "--json-logs/--console-logs"),
) -> None:
    """cluster-spine CLI — apply cluster descriptors and manage node power."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs if json_logs is not None else settings.json_logs,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from clusterspine.cli.apply import app as apply_app  # noqa: E402

app.add_typer(apply_app, name="apply", help="Apply descriptors and node power changes.")
