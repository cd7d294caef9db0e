"""
Rollout Executor.

Restarts the nodes of a session template's node group so they boot the new
image and configuration. A combined reboot can leave nodes down, so the
rollout is split in two calls, always in this order:

1. forced power-off of every node in the group, then wait until all of
   them report ``Off``
2. ``boot`` session for the template, limited to the same nodes
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from clusterspine.apply.poller import CompletionPoller
from clusterspine.apply.results import RolloutResult
from clusterspine.core.errors import ClusterSpineError, NotFoundError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import JobState, SessionTemplate
from clusterspine.core.protocols import ManagementPlane, NodeDirectory

logger = get_logger(__name__)

POWER_OFF_REASON = "Shut down cluster to apply changes"
OFF = "off"


@dataclass(frozen=True)
class PowerOffStatus:
    """Power-off progress of a node set, shaped for the completion poller."""

    states: dict[str, str]

    @property
    def pending(self) -> list[str]:
        return sorted(x for x, s in self.states.items() if s.lower() != OFF)

    @property
    def state(self) -> JobState:
        return JobState.RUNNING if self.pending else JobState.SUCCEEDED


class RolloutExecutor:
    """Power-cycles the nodes bound to a session template."""

    def __init__(
        self,
        management: ManagementPlane,
        nodes: NodeDirectory,
        poller: CompletionPoller[PowerOffStatus],
    ):
        self.management = management
        self.nodes = nodes
        self.poller = poller

    async def power_off(self, xnames: Sequence[str], *, reason: str = POWER_OFF_REASON, force: bool = True) -> None:
        """Power ``xnames`` off and wait until every one reports ``Off``."""
        xnames = list(xnames)
        await self.management.power_off(xnames, reason=reason, force=force)
        logger.info("rollout.power_off_requested", xnames=len(xnames), force=force)

        async def fetch(_: str) -> PowerOffStatus:
            states = await self.management.power_states(xnames)
            return PowerOffStatus({x: states.get(x, "unknown") for x in xnames})

        await self.poller.wait("power-off:" + ",".join(xnames), fetch)
        logger.info("rollout.nodes_off", xnames=len(xnames))

    async def execute(self, template: SessionTemplate, enabled: bool = True) -> RolloutResult:
        """Shut down then boot the template's node group.

        Raises:
            NotFoundError: The node group has no members.
            TimeoutError: Nodes did not all reach ``Off`` within the poll budget.
            RemoteError: Power-off or boot session was rejected.
        """
        if not enabled:
            logger.info("rollout.skipped", template=template.name, node_group=template.node_group)
            return RolloutResult(template=template.name, node_group=template.node_group, skipped=True)

        try:
            xnames = await self.nodes.group_members(template.node_group)
            if not xnames:
                raise NotFoundError(
                    "node group members",
                    template.node_group,
                    f"node group '{template.node_group}' has no members",
                )

            await self.power_off(xnames)
            session = await self.management.create_boot_session(template.name, xnames)
        except ClusterSpineError as e:
            raise e.with_context(template=template.name, node_group=template.node_group)

        logger.info("rollout.boot_started", template=template.name, session=session, xnames=len(xnames))
        return RolloutResult(
            template=template.name,
            node_group=template.node_group,
            xnames=tuple(xnames),
            boot_session=session,
        )
