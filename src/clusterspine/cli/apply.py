"""
CLI: ``cluster-spine apply`` — apply a descriptor, or power nodes off.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from clusterspine.apply.context import RunContext
from clusterspine.apply.nodes import NodePowerService
from clusterspine.apply.pipeline import ClusterApplyPipeline
from clusterspine.apply.poller import CompletionPoller, ProgressCallback
from clusterspine.apply.results import ApplyOptions, ApplyResult
from clusterspine.apply.rollout import RolloutExecutor
from clusterspine.cli.utils import (
    console,
    exit_on_error,
    open_runtime,
    output_apply_result,
    poll_progress,
)
from clusterspine.core.clock import new_tag
from clusterspine.core.settings import ClusterSpineSettings, get_settings
from clusterspine.descriptor.loader import load_descriptor

app = typer.Typer(no_args_is_help=True)


async def _apply(
    settings: ClusterSpineSettings,
    file: Path,
    tag: str | None,
    options: ApplyOptions,
    on_progress: ProgressCallback | None = None,
) -> ApplyResult:
    async with open_runtime(settings) as runtime:
        tag = tag or new_tag(runtime.clock)
        descriptor = load_descriptor(file, tag)
        context = RunContext.create(tag=tag, authorized_scopes=runtime.identity.authorized_scopes())
        pipeline = ClusterApplyPipeline.from_collaborators(
            management=runtime.management,
            nodes=runtime.nodes,
            identity=runtime.identity,
            audit=runtime.audit,
            catalog=runtime.catalog,
            clock=runtime.clock,
            poll_interval=settings.poll_interval,
            poll_max_attempts=settings.poll_max_attempts,
            on_progress=on_progress,
        )
        return await pipeline.run(descriptor, context, options)


@app.command("cluster")
def apply_cluster(
    file: Path = typer.Option(..., "--file", "-f", help="Descriptor (SAT file)"),
    tag: str | None = typer.Option(None, "--tag", "-t", help="Replaces __DATE__; defaults to UTC timestamp"),
    node_group: str | None = typer.Option(None, "--node-group", "-g", help="Override target node group"),
    do_not_reboot: bool = typer.Option(False, "--do-not-reboot", help="Skip shutdown and boot"),
    ansible_verbosity: int | None = typer.Option(None, "--ansible-verbosity", min=0, max=4),
    ansible_passthrough: str | None = typer.Option(None, "--ansible-passthrough"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Apply configurations, images and session templates, then reboot nodes."""
    settings = get_settings()
    options = ApplyOptions(
        override_scope=node_group or settings.node_group,
        rollout=not do_not_reboot,
        ansible_verbosity=ansible_verbosity,
        ansible_passthrough=ansible_passthrough,
    )
    with exit_on_error(), poll_progress(settings.poll_interval) as on_progress:
        result = asyncio.run(_apply(settings, file, tag, options, on_progress))
    output_apply_result(result, as_json=json_out)


@app.command("image")
def apply_image(
    file: Path = typer.Option(..., "--file", "-f", help="Descriptor (SAT file)"),
    tag: str | None = typer.Option(None, "--tag", "-t", help="Replaces __DATE__; defaults to UTC timestamp"),
    ansible_verbosity: int | None = typer.Option(None, "--ansible-verbosity", min=0, max=4),
    ansible_passthrough: str | None = typer.Option(None, "--ansible-passthrough"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Apply configurations and images only."""
    settings = get_settings()
    options = ApplyOptions(
        include_templates=False,
        rollout=False,
        ansible_verbosity=ansible_verbosity,
        ansible_passthrough=ansible_passthrough,
    )
    with exit_on_error(), poll_progress(settings.poll_interval) as on_progress:
        result = asyncio.run(_apply(settings, file, tag, options, on_progress))
    output_apply_result(result, as_json=json_out)


async def _node_off(
    settings: ClusterSpineSettings,
    xnames: list[str],
    node_group: str | None,
    reason: str | None,
    force: bool,
    wait: bool,
    on_progress: ProgressCallback | None = None,
) -> list[str]:
    async with open_runtime(settings) as runtime:
        rollout = RolloutExecutor(
            runtime.management,
            runtime.nodes,
            CompletionPoller(
                runtime.clock,
                interval=settings.poll_interval,
                max_attempts=settings.poll_max_attempts,
                on_progress=on_progress,
            ),
        )
        service = NodePowerService(runtime.management, runtime.nodes, runtime.audit, rollout)
        return await service.power_off(
            xnames,
            principal=runtime.identity.principal(),
            authorized_scopes=runtime.identity.authorized_scopes(),
            node_group=node_group,
            reason=reason,
            force=force,
            wait=wait,
        )


@app.command("node-off")
def apply_node_off(
    xnames: str = typer.Argument(..., help="Comma separated xnames, e.g. x1003c1s7b0n0,x1003c1s7b0n1"),
    node_group: str | None = typer.Option(None, "--node-group", "-g", help="Node group the xnames belong to"),
    reason: str | None = typer.Option(None, "--reason", "-r"),
    force: bool = typer.Option(True, "--force/--no-force"),
    wait: bool = typer.Option(False, "--wait", help="Block until every node reports Off"),
) -> None:
    """Power off nodes the caller is authorized for."""
    settings = get_settings()
    names = [x.strip() for x in xnames.split(",") if x.strip()]
    with exit_on_error(), poll_progress(settings.poll_interval) as on_progress:
        powered = asyncio.run(
            _node_off(settings, names, node_group or settings.node_group, reason, force, wait, on_progress)
        )
    console.print(f"Powering off nodes: {', '.join(powered)}")
