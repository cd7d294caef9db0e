"""
Resolved entities exchanged with the management plane.

These are the *outputs* of descriptor resolution: a ``Configuration`` after
its layers were pinned, an ``Image`` that exists remotely, a ``BuildJob``
snapshot, a ``SessionTemplate`` ready to be upserted. Descriptor input
models live in :mod:`clusterspine.descriptor.models`; wire parsing lives in
the clients.

Tags:
    models, dataclasses, configuration, image, build-job, session-template
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Layer:
    """One configuration-management layer: a repo revision and a playbook."""

    name: str
    clone_url: str
    playbook: str = "site.yml"
    commit: str | None = None
    branch: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "cloneUrl": self.clone_url,
            "playbook": self.playbook,
        }
        if self.commit:
            payload["commit"] = self.commit
        if self.branch:
            payload["branch"] = self.branch
        return payload


@dataclass(frozen=True)
class Configuration:
    """A named, ordered set of layers."""

    name: str
    layers: tuple[Layer, ...] = ()
    last_updated: str | None = None


@dataclass(frozen=True)
class Image:
    """A bootable artifact registered in the image service."""

    id: str
    name: str
    etag: str | None = None
    path: str | None = None
    type: str | None = None
    created: datetime | None = None


class JobState(str, Enum):
    """Lifecycle of a remote build job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


@dataclass(frozen=True)
class BuildRequest:
    """What the image builder asks the management plane to run."""

    name: str
    configuration: str
    base_image_id: str
    groups: tuple[str, ...] = ("Compute",)
    ansible_verbosity: int | None = None
    ansible_passthrough: str | None = None


@dataclass(frozen=True)
class BuildJob:
    """Snapshot of a build job's status."""

    id: str
    state: JobState
    result_image_id: str | None = None


@dataclass(frozen=True)
class SessionTemplate:
    """Binding of configuration + image + node group used to boot nodes."""

    name: str
    configuration: str
    image: Image
    node_group: str
    boot_set: str = "compute"
    boot_set_options: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        boot_set: dict[str, Any] = {
            "name": self.boot_set,
            "path": self.image.path,
            "etag": self.image.etag,
            "type": self.image.type,
            "node_groups": [self.node_group],
        }
        boot_set.update(self.boot_set_options)
        return {
            "name": self.name,
            "enable_cfs": True,
            "cfs": {"configuration": self.configuration},
            "boot_sets": {self.boot_set: boot_set},
        }


@dataclass(frozen=True)
class Principal:
    """Who is running the command, as reported by the identity provider."""

    name: str
    username: str


@dataclass(frozen=True)
class AuditRecord:
    """One completed operation."""

    principal: Principal
    operation: str
    details: dict[str, Any] = field(default_factory=dict)
