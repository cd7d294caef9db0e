"""Options and outcomes of a pipeline run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from clusterspine.core.models import Configuration, Image, SessionTemplate


@dataclass(frozen=True)
class ApplyOptions:
    """Per-run switches, usually filled from CLI flags.

    Attributes:
        override_scope: Node group that replaces every template's declared group
        rollout: Power-cycle nodes after binding each template
        include_templates: False stops after the images stage
        ansible_verbosity: Forwarded to every image build job
        ansible_passthrough: Extra ansible arguments for every image build job
    """

    override_scope: str | None = None
    rollout: bool = True
    include_templates: bool = True
    ansible_verbosity: int | None = None
    ansible_passthrough: str | None = None


@dataclass(frozen=True)
class ResolvedImage:
    """An ImageSpec after resolution."""

    spec_name: str
    image: Image
    mode: str
    ref_name: str | None = None
    job_id: str | None = None


@dataclass(frozen=True)
class RolloutResult:
    """Outcome of rolling one session template's nodes."""

    template: str
    node_group: str
    xnames: tuple[str, ...] = ()
    boot_session: str | None = None
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template,
            "node_group": self.node_group,
            "xnames": list(self.xnames),
            "boot_session": self.boot_session,
            "skipped": self.skipped,
        }


@dataclass
class ApplyResult:
    """Every identifier resolved during one run."""

    tag: str
    configurations: list[Configuration] = field(default_factory=list)
    images: list[ResolvedImage] = field(default_factory=list)
    session_templates: list[SessionTemplate] = field(default_factory=list)
    rollouts: list[RolloutResult] = field(default_factory=list)
    image_refs: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Plain structure for JSON output."""
        return {
            "tag": self.tag,
            "configurations": [c.name for c in self.configurations],
            "images": [
                {
                    "spec": r.spec_name,
                    "id": r.image.id,
                    "name": r.image.name,
                    "mode": r.mode,
                    "ref_name": r.ref_name,
                    "job_id": r.job_id,
                }
                for r in self.images
            ],
            "session_templates": [
                {"name": t.name, "configuration": t.configuration, "image": t.image.id, "node_group": t.node_group}
                for t in self.session_templates
            ],
            "rollouts": [r.to_dict() for r in self.rollouts],
            "image_refs": dict(self.image_refs),
        }
