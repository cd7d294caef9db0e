"""
CLI utility helpers — collaborator wiring, output formatting, error exit.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from clusterspine.apply.poller import ProgressCallback
from clusterspine.apply.results import ApplyResult
from clusterspine.clients.audit import LogAuditSink
from clusterspine.clients.catalog import ProductCatalog
from clusterspine.clients.identity import JwtIdentityProvider, load_token
from clusterspine.clients.shasta import ShastaClient
from clusterspine.core.clock import Clock, SystemClock
from clusterspine.core.errors import ClusterSpineError, exit_code_for
from clusterspine.core.logging import get_logger
from clusterspine.core.models import JobState
from clusterspine.core.protocols import (
    AuditSink,
    CatalogProvider,
    IdentityProvider,
    ManagementPlane,
    NodeDirectory,
)
from clusterspine.core.settings import ClusterSpineSettings

console = Console()
err_console = Console(stderr=True)

logger = get_logger(__name__)


# ── Collaborators ────────────────────────────────────────────────────────


@dataclass
class Runtime:
    """Everything a command needs to talk to the cluster."""

    management: ManagementPlane
    nodes: NodeDirectory
    identity: IdentityProvider
    audit: AuditSink
    catalog: CatalogProvider | None = None
    clock: Clock | None = None


@asynccontextmanager
async def open_runtime(settings: ClusterSpineSettings) -> AsyncIterator[Runtime]:
    """Production collaborators built from settings; the HTTP client is closed on exit."""
    token = load_token(settings)
    identity = JwtIdentityProvider(token)
    catalog = ProductCatalog.from_file(settings.catalog_file) if settings.catalog_file else None

    async with ShastaClient.from_settings(settings, token) as client:
        yield Runtime(
            management=client,
            nodes=client,
            identity=identity,
            audit=LogAuditSink(),
            catalog=catalog,
            clock=SystemClock(),
        )


# ── Errors ───────────────────────────────────────────────────────────────


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print the error to stderr and exit with the code :func:`exit_code_for` assigns."""
    try:
        yield
    except ClusterSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        context = e.context.to_dict()
        if context:
            for key, value in context.items():
                err_console.print(f"  [dim]{key}:[/dim] {value}")
        raise typer.Exit(code=exit_code_for(e)) from e
    except Exception as e:
        logger.exception("cli.unexpected_error", error_type=type(e).__name__)
        err_console.print(f"[bold red]Error[/bold red] (UNEXPECTED): {type(e).__name__}: {e}")
        raise typer.Exit(code=exit_code_for(e)) from e


# ── Progress ─────────────────────────────────────────────────────────────


@contextmanager
def poll_progress(interval: float) -> Iterator[ProgressCallback]:
    """Status line on stderr, rewritten on every poll attempt."""
    with err_console.status("Waiting for remote jobs") as status:

        def _update(job_id: str, attempt: int, max_attempts: int, state: JobState) -> None:
            status.update(
                f"Job '{job_id}' {state.value}. Checking again in {interval:g} secs. "
                f"Attempt {attempt} of {max_attempts}"
            )

        yield _update


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _table(title: str, columns: list[str], rows: list[list[Any]]) -> Table:
    table = Table(title=title, show_lines=False)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row))
    return table


def output_apply_result(result: ApplyResult, *, as_json: bool = False) -> None:
    """Render the identifiers resolved by a pipeline run."""
    if as_json:
        print_json(result.to_dict())
        return

    data = result.to_dict()
    console.print(f"[bold]Tag:[/bold] {result.tag}")
    if data["configurations"]:
        console.print(_table("Configurations", ["Name"], [[name] for name in data["configurations"]]))
    if data["images"]:
        console.print(
            _table(
                "Images",
                ["Spec", "Image ID", "Mode", "Ref", "Build job"],
                [[i["spec"], i["id"], i["mode"], i["ref_name"], i["job_id"]] for i in data["images"]],
            )
        )
    if data["session_templates"]:
        console.print(
            _table(
                "Session templates",
                ["Name", "Configuration", "Image ID", "Node group"],
                [[t["name"], t["configuration"], t["image"], t["node_group"]] for t in data["session_templates"]],
            )
        )
    if data["rollouts"]:
        console.print(
            _table(
                "Rollouts",
                ["Template", "Node group", "Nodes", "Boot session"],
                [
                    [r["template"], r["node_group"], len(r["xnames"]), "skipped" if r["skipped"] else r["boot_session"]]
                    for r in data["rollouts"]
                ],
            )
        )
