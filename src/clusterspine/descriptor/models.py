"""Pydantic models for the cluster descriptor (SAT-style YAML).

Example YAML::

    hardware:
      - pattern: x1000c0s0b0n[0-3]
    configurations:
      - name: zinal-cos-config-__DATE__
        layers:
          - name: cos
            playbook: site.yml
            product: {name: cos, version: 2.3.101}
          - name: site-custom
            playbook: custom.yml
            git: {url: https://vcs.local/vcs/cray/site.git, branch: main}
    images:
      - name: zinal-cos-__DATE__
        ref_name: zinal_cos
        base:
          product: {name: cos, version: 2.3.101, type: image}
        configuration: zinal-cos-config-__DATE__
        configuration_group_names: [Compute, zinal]
    session_templates:
      - name: zinal-cos-template-__DATE__
        image:
          image_ref: zinal_cos
        configuration: zinal-cos-config-__DATE__
        bos_parameters:
          boot_sets:
            compute:
              node_groups: [zinal]
              rootfs_provider: cpss3

Only shape is checked here. Cross-section rules (unique names,
producer-before-consumer references) live in
:mod:`clusterspine.descriptor.validation`; scope checks in
:mod:`clusterspine.apply.authorization`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _exactly_one(model: BaseModel, *names: str) -> None:
    present = [n for n in names if getattr(model, n) is not None]
    if len(present) != 1:
        raise ValueError(f"exactly one of {', '.join(names)} is required, got {present or 'none'}")


# ---------------------------------------------------------------------------
# configurations
# ---------------------------------------------------------------------------


class GitSource(BaseModel):
    """Layer sourced straight from a git repository."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1)
    commit: str | None = None
    branch: str | None = None

    @model_validator(mode="after")
    def _one_revision(self) -> GitSource:
        _exactly_one(self, "commit", "branch")
        return self


class ProductSource(BaseModel):
    """Layer sourced from an installed product's configuration repository."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    branch: str | None = None
    commit: str | None = None


class LayerSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    playbook: str = "site.yml"
    git: GitSource | None = None
    product: ProductSource | None = None

    @model_validator(mode="after")
    def _one_source(self) -> LayerSpec:
        _exactly_one(self, "git", "product")
        return self


class ConfigurationSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: str | None = None
    layers: list[LayerSpec] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# images
# ---------------------------------------------------------------------------


class ImageMode(str, Enum):
    """How an ImageSpec is resolved."""

    BUILD = "build"  # run a build job against a base artifact
    LOOKUP = "lookup"  # find an existing image by name/id/product
    REFERENCE = "reference"  # reuse an image produced earlier in this run


class ImsSource(BaseModel):
    """Existing image in the image service, by name (fuzzy) or id."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    id: str | None = None
    type: Literal["image"] = "image"

    @model_validator(mode="after")
    def _name_or_id(self) -> ImsSource:
        _exactly_one(self, "name", "id")
        return self


class ProductImageSource(BaseModel):
    """Base image shipped by an installed product."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    type: Literal["image"] = "image"
    filter: dict[str, str] = Field(default_factory=dict)

    @property
    def name_prefix(self) -> str | None:
        return self.filter.get("prefix")


class ImageBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ims: ImsSource | None = None
    product: ProductImageSource | None = None
    image_ref: str | None = None

    @model_validator(mode="after")
    def _one_base(self) -> ImageBase:
        _exactly_one(self, "ims", "product", "image_ref")
        return self


class ImageSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    ref_name: str | None = None
    description: str | None = None
    base: ImageBase
    configuration: str | None = None
    configuration_group_names: list[str] = Field(default_factory=list)

    @property
    def mode(self) -> ImageMode:
        if self.configuration:
            return ImageMode.BUILD
        if self.base.image_ref is not None:
            return ImageMode.REFERENCE
        return ImageMode.LOOKUP


# ---------------------------------------------------------------------------
# session_templates
# ---------------------------------------------------------------------------


class TemplateImsImage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)


class TemplateImage(BaseModel):
    """Image bound into a session template: by name or by run reference."""

    model_config = ConfigDict(extra="forbid")

    ims: TemplateImsImage | None = None
    image_ref: str | None = None

    @model_validator(mode="after")
    def _one_image(self) -> TemplateImage:
        _exactly_one(self, "ims", "image_ref")
        return self


class BootSetSpec(BaseModel):
    """One boot set. Unknown boot options are carried into the template as-is."""

    model_config = ConfigDict(extra="allow")

    node_groups: list[str] = Field(default_factory=list)
    rootfs_provider: str | None = None
    rootfs_provider_passthrough: str | None = None
    kernel_parameters: str | None = None
    arch: str | None = None

    def options(self) -> dict[str, Any]:
        """Boot options to merge into the template's boot set (node_groups excluded)."""
        return self.model_dump(exclude={"node_groups"}, exclude_none=True)


class BosParameters(BaseModel):
    model_config = ConfigDict(extra="allow")

    boot_sets: dict[str, BootSetSpec] = Field(..., min_length=1)


class SessionTemplateSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: str | None = None
    image: TemplateImage
    configuration: str = Field(..., min_length=1)
    bos_parameters: BosParameters

    @model_validator(mode="after")
    def _declares_node_group(self) -> SessionTemplateSpec:
        if not self.node_groups:
            raise ValueError(
                "no node group found in bos_parameters.boot_sets.<boot set>.node_groups"
            )
        return self

    @property
    def node_groups(self) -> list[str]:
        """Declared node groups across all boot sets, in order, without duplicates."""
        groups: list[str] = []
        for boot_set in self.bos_parameters.boot_sets.values():
            for group in boot_set.node_groups:
                if group not in groups:
                    groups.append(group)
        return groups

    def primary_boot_set(self) -> tuple[str, BootSetSpec]:
        """First boot set that declares node groups."""
        for name, boot_set in self.bos_parameters.boot_sets.items():
            if boot_set.node_groups:
                return name, boot_set
        raise ValueError(f"session template {self.name} declares no node groups")


# ---------------------------------------------------------------------------
# root
# ---------------------------------------------------------------------------


class Descriptor(BaseModel):
    """Root document. ``hardware`` is opaque and passed through untouched."""

    model_config = ConfigDict(extra="ignore")

    hardware: Any = None
    configurations: list[ConfigurationSpec] = Field(default_factory=list)
    images: list[ImageSpec] = Field(default_factory=list)
    session_templates: list[SessionTemplateSpec] = Field(default_factory=list)
