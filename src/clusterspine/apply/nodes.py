"""
Node power-off outside a full rollout (``apply node-off``).

Each xname must belong to a node group the caller may act on. The candidate
groups are the explicit ``node_group`` when one is given (it must itself be
authorized), otherwise every authorized non-universal group.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from clusterspine.apply.authorization import check_scope, is_universal
from clusterspine.apply.rollout import RolloutExecutor
from clusterspine.core.errors import AuthorizationError, ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import AuditRecord, Principal
from clusterspine.core.protocols import AuditSink, ManagementPlane, NodeDirectory

logger = get_logger(__name__)

XNAME_PATTERN = re.compile(r"^x\d+c\d+s\d+b\d+n\d+$")


async def allowed_xnames(
    nodes: NodeDirectory,
    authorized_scopes: Iterable[str],
    node_group: str | None = None,
) -> set[str]:
    """Members of every group the caller may power off."""
    authorized = frozenset(authorized_scopes)
    if node_group is not None:
        check_scope(node_group, authorized, referenced_by="--node-group")
        groups = [node_group]
    else:
        groups = sorted(scope for scope in authorized if not is_universal(scope))

    members: set[str] = set()
    for group in groups:
        members.update(await nodes.group_members(group))
    return members


async def validate_xnames(
    xnames: Sequence[str],
    nodes: NodeDirectory,
    authorized_scopes: Iterable[str],
    node_group: str | None = None,
) -> None:
    """
    Raises:
        ValidationError: Empty list or malformed xname.
        AuthorizationError: An xname is outside every allowed group.
    """
    if not xnames:
        raise ValidationError("no xnames given", field="xnames")
    for xname in xnames:
        if not XNAME_PATTERN.match(xname):
            raise ValidationError(f"'{xname}' is not a node xname", field="xnames")

    authorized = frozenset(authorized_scopes)
    allowed = await allowed_xnames(nodes, authorized, node_group)
    for xname in xnames:
        if xname not in allowed:
            where = f"node group '{node_group}'" if node_group else f"authorized node groups {sorted(authorized)}"
            raise AuthorizationError(
                node_group or xname,
                authorized,
                referenced_by=f"xname {xname}",
                message=f"node {xname} does not belong to {where}",
            )


class NodePowerService:
    """Validated power-off of individual nodes, followed by an audit record."""

    def __init__(
        self,
        management: ManagementPlane,
        nodes: NodeDirectory,
        audit: AuditSink,
        rollout: RolloutExecutor | None = None,
    ):
        self.management = management
        self.nodes = nodes
        self.audit = audit
        self.rollout = rollout

    async def power_off(
        self,
        xnames: Sequence[str],
        *,
        principal: Principal,
        authorized_scopes: Iterable[str],
        node_group: str | None = None,
        reason: str | None = None,
        force: bool = True,
        wait: bool = False,
    ) -> list[str]:
        """Power off ``xnames``; with ``wait`` block until they report ``Off``."""
        xnames = list(dict.fromkeys(xnames))
        await validate_xnames(xnames, self.nodes, authorized_scopes, node_group)

        reason = reason or "Powering off nodes"
        if wait and self.rollout is not None:
            await self.rollout.power_off(xnames, reason=reason, force=force)
        else:
            await self.management.power_off(xnames, reason=reason, force=force)
        logger.info("nodes.power_off", xnames=xnames, force=force, wait=wait)

        self.audit.record(
            AuditRecord(principal=principal, operation="Apply nodes off", details={"xnames": xnames})
        )
        return xnames
