"""
Collaborator protocols for the rollout pipeline.

The pipeline only depends on these shapes. Production implementations live
in :mod:`clusterspine.clients`; tests pass in-memory fakes.

Architecture:
    ::

        protocols.py
        ├── IdentityProvider  — caller's authorized scopes and principal
        ├── CatalogProvider   — product metadata (layer repos, base images)
        ├── NodeDirectory     — NodeGroup → node ids
        ├── ManagementPlane   — configurations, images, build jobs,
        │                       session templates, power and boot
        └── AuditSink         — append-only record of completed operations

Tags:
    protocols, structural-typing, collaborators
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from clusterspine.core.models import (
    AuditRecord,
    BuildJob,
    BuildRequest,
    Configuration,
    Image,
    Layer,
    Principal,
    SessionTemplate,
)


@runtime_checkable
class IdentityProvider(Protocol):
    """Identity of the caller, derived from its credential."""

    def authorized_scopes(self) -> frozenset[str]: ...

    def principal(self) -> Principal: ...


@runtime_checkable
class CatalogProvider(Protocol):
    """Product/version metadata used to resolve layers and base artifacts."""

    def layer_source(self, product: str, version: str) -> tuple[str, str | None]:
        """Return ``(clone_url, commit)`` for a product's configuration repo."""
        ...

    def image_id(
        self,
        product: str,
        version: str,
        artifact_type: str = "image",
        name_prefix: str | None = None,
    ) -> str:
        """Return the id of a product's base artifact."""
        ...


@runtime_checkable
class NodeDirectory(Protocol):
    """Resolves a NodeGroup to its current members."""

    async def group_members(self, group: str) -> list[str]: ...


@runtime_checkable
class ManagementPlane(Protocol):
    """CRUD and power operations against the cluster management APIs."""

    async def put_configuration(self, name: str, layers: Sequence[Layer]) -> Configuration: ...

    async def get_configuration(self, name: str) -> Configuration | None: ...

    async def list_images(self) -> list[Image]: ...

    async def get_image(self, image_id: str) -> Image | None: ...

    async def submit_build(self, request: BuildRequest) -> BuildJob: ...

    async def get_build(self, job_id: str) -> BuildJob: ...

    async def put_session_template(self, template: SessionTemplate) -> SessionTemplate: ...

    async def power_off(self, xnames: Sequence[str], *, reason: str, force: bool = True) -> None: ...

    async def power_states(self, xnames: Sequence[str]) -> dict[str, str]: ...

    async def create_boot_session(self, template_name: str, xnames: Sequence[str]) -> str: ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only record of completed operations."""

    def record(self, entry: AuditRecord) -> None: ...
