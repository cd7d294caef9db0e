"""
Shared pytest fixtures for cluster-spine tests.

This module provides in-memory collaborators so the pipeline runs without a
cluster:

- FakeManagementPlane: records every call, scripts build job states
- FakeNodeDirectory: static node groups
- FakeClock: records sleeps instead of sleeping
- RecordingAuditSink, StaticIdentity, StaticCatalog

Usage:
    def test_something(management, clock):
        ...
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

from clusterspine.core.models import (
    AuditRecord,
    BuildJob,
    BuildRequest,
    Configuration,
    Image,
    JobState,
    Layer,
    Principal,
    SessionTemplate,
)
from clusterspine.core.settings import clear_settings_cache

TAG = "20240101120000"

MUTATING_CALLS = frozenset(
    {"put_configuration", "submit_build", "put_session_template", "power_off", "create_boot_session"}
)


# =============================================================================
# Markers
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything not marked integration as unit."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Clock whose sleeps return immediately and are recorded."""

    def __init__(self, now: datetime | None = None):
        self._now = now or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


class FakeManagementPlane:
    """
    In-memory management plane.

    Build jobs follow ``build_script`` (list of states returned by
    successive ``get_build`` calls); once exhausted they report
    ``succeeded``. A succeeded job produces image ``img-<job name>``.
    """

    def __init__(self, images: Sequence[Image] = ()):
        self.calls: list[tuple[str, Any]] = []
        self.configurations: dict[str, Configuration] = {}
        self.images: dict[str, Image] = {image.id: image for image in images}
        self.templates: dict[str, SessionTemplate] = {}
        self.builds: dict[str, BuildRequest] = {}
        self.build_script: list[JobState] = []
        self.build_results: dict[str, str | None] = {}
        self.power: dict[str, str] = {}
        self.off_after_checks = 0
        self._power_checks = 0
        self.boot_sessions: list[tuple[str, list[str]]] = []

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @property
    def mutations(self) -> list[str]:
        return [name for name in self.call_names if name in MUTATING_CALLS]

    async def put_configuration(self, name: str, layers: Sequence[Layer]) -> Configuration:
        self.calls.append(("put_configuration", name))
        configuration = Configuration(name=name, layers=tuple(layers))
        self.configurations[name] = configuration
        return configuration

    async def get_configuration(self, name: str) -> Configuration | None:
        self.calls.append(("get_configuration", name))
        return self.configurations.get(name)

    async def list_images(self) -> list[Image]:
        self.calls.append(("list_images", None))
        return list(self.images.values())

    async def get_image(self, image_id: str) -> Image | None:
        self.calls.append(("get_image", image_id))
        return self.images.get(image_id)

    async def submit_build(self, request: BuildRequest) -> BuildJob:
        self.calls.append(("submit_build", request.name))
        self.builds[request.name] = request
        return BuildJob(id=request.name, state=JobState.PENDING)

    async def get_build(self, job_id: str) -> BuildJob:
        self.calls.append(("get_build", job_id))
        state = self.build_script.pop(0) if self.build_script else JobState.SUCCEEDED
        if state is not JobState.SUCCEEDED:
            return BuildJob(id=job_id, state=state)

        result_id = self.build_results.get(job_id, f"img-{job_id}")
        if result_id is not None and result_id not in self.images:
            self.images[result_id] = Image(
                id=result_id, name=job_id, etag="etag", path=f"s3://boot-images/{result_id}/manifest.json", type="s3"
            )
        return BuildJob(id=job_id, state=state, result_image_id=result_id)

    async def put_session_template(self, template: SessionTemplate) -> SessionTemplate:
        self.calls.append(("put_session_template", template.name))
        self.templates[template.name] = template
        return template

    async def power_off(self, xnames: Sequence[str], *, reason: str, force: bool = True) -> None:
        self.calls.append(("power_off", list(xnames)))
        self._power_checks = 0

    async def power_states(self, xnames: Sequence[str]) -> dict[str, str]:
        self.calls.append(("power_states", list(xnames)))
        self._power_checks += 1
        state = "Off" if self._power_checks > self.off_after_checks else "On"
        return {xname: self.power.get(xname, state) for xname in xnames}

    async def create_boot_session(self, template_name: str, xnames: Sequence[str]) -> str:
        self.calls.append(("create_boot_session", (template_name, list(xnames))))
        self.boot_sessions.append((template_name, list(xnames)))
        return f"boot-{template_name}"


class FakeNodeDirectory:
    def __init__(self, groups: dict[str, list[str]] | None = None):
        self.groups = groups or {}
        self.lookups: list[str] = []

    async def group_members(self, group: str) -> list[str]:
        self.lookups.append(group)
        return list(self.groups.get(group, []))


class RecordingAuditSink:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    def record(self, entry: AuditRecord) -> None:
        self.records.append(entry)


class StaticIdentity:
    def __init__(self, scopes: set[str] | frozenset[str], principal: Principal | None = None):
        self._scopes = frozenset(scopes)
        self._principal = principal or Principal(name="Jane Operator", username="jop")

    def authorized_scopes(self) -> frozenset[str]:
        return self._scopes

    def principal(self) -> Principal:
        return self._principal


class StaticCatalog:
    def __init__(self, layers: dict[tuple[str, str], tuple[str, str | None]], images: dict[tuple[str, str], str]):
        self.layers = layers
        self.images = images

    def layer_source(self, product: str, version: str) -> tuple[str, str | None]:
        return self.layers[(product, version)]

    def image_id(
        self, product: str, version: str, artifact_type: str = "image", name_prefix: str | None = None
    ) -> str:
        return self.images[(product, version)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Fresh, non-caching structlog defaults and empty context vars per test."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """No test reads the developer's environment or token cache."""
    import os

    for key in list(os.environ):
        if key.startswith("CLUSTER_SPINE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("CLUSTER_SPINE_TOKEN_FILE", str(tmp_path / "no-token"))
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def tag() -> str:
    return TAG


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def base_image() -> Image:
    return Image(
        id="base-0001",
        name="zinal-cos-base",
        etag="e1",
        path="s3://boot-images/base-0001/manifest.json",
        type="s3",
        created=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def management(base_image: Image) -> FakeManagementPlane:
    return FakeManagementPlane(images=[base_image])


@pytest.fixture
def nodes() -> FakeNodeDirectory:
    return FakeNodeDirectory(
        {
            "zinal": ["x1000c0s0b0n0", "x1000c0s0b0n1"],
            "blue": ["x1001c0s0b0n0"],
            "red": ["x1002c0s0b0n0"],
        }
    )


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity({"zinal"})


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog(
        layers={("cos", "2.3.101"): ("https://vcs.local/vcs/cray/cos-config-management.git", "abc123")},
        images={("cos", "2.3.101"): "base-0001"},
    )


@pytest.fixture
def cluster_document() -> dict[str, Any]:
    """Descriptor with one of everything, wired together by reference."""
    return {
        "schema_version": "1.0.2",
        "hardware": [{"pattern": "x1000c0s0b0n[0-1]"}],
        "configurations": [
            {
                "name": "zinal-cos-config-__DATE__",
                "layers": [
                    {"name": "cos", "playbook": "site.yml", "product": {"name": "cos", "version": "2.3.101"}},
                    {
                        "name": "site",
                        "playbook": "custom.yml",
                        "git": {"url": "https://vcs.local/vcs/cray/site.git", "branch": "main"},
                    },
                ],
            }
        ],
        "images": [
            {
                "name": "zinal-cos-__DATE__",
                "ref_name": "zinal_cos",
                "base": {"ims": {"id": "base-0001", "type": "image"}},
                "configuration": "zinal-cos-config-__DATE__",
                "configuration_group_names": ["Compute", "zinal"],
            }
        ],
        "session_templates": [
            {
                "name": "zinal-cos-template-__DATE__",
                "image": {"image_ref": "zinal_cos"},
                "configuration": "zinal-cos-config-__DATE__",
                "bos_parameters": {
                    "boot_sets": {"compute": {"node_groups": ["zinal"], "rootfs_provider": "cpss3"}}
                },
            }
        ],
    }


@pytest.fixture
def management_factory(base_image: Image):
    """Fresh management plane per call, for tests that run the pipeline twice."""
    return lambda: FakeManagementPlane(images=[base_image])


@pytest.fixture
def identity_factory():
    return StaticIdentity
