"""Tests for the image builder."""

from datetime import UTC, datetime

import pytest

from clusterspine.apply.context import RunContext
from clusterspine.apply.images import ImageBuilder, select_image
from clusterspine.apply.poller import CompletionPoller
from clusterspine.core.errors import (
    BuildFailedError,
    NotFoundError,
    TimeoutError,
    UnresolvedReferenceError,
)
from clusterspine.core.models import Configuration, Image, JobState
from clusterspine.descriptor.models import ImageSpec


def _spec(**data) -> ImageSpec:
    return ImageSpec.model_validate(data)


@pytest.fixture
def context(tag):
    context = RunContext.create(tag=tag, authorized_scopes={"zinal"})
    context.add_configuration(Configuration(name="cfg"))
    return context


@pytest.fixture
def builder(management, clock, catalog):
    return ImageBuilder(management, CompletionPoller(clock, interval=2.0, max_attempts=5), catalog)


class TestSelectImage:
    def _image(self, id, name, day):
        return Image(id=id, name=name, created=datetime(2024, 1, day, tzinfo=UTC))

    def test_exact_match_wins_over_newer(self):
        images = [
            self._image("1", "zinal-cos", 1),
            self._image("2", "zinal-cos-v2", 5),
        ]
        assert select_image(images, "zinal-cos", {"zinal"}).id == "1"

    def test_newest_partial_match(self):
        images = [
            self._image("1", "zinal-cos-a", 1),
            self._image("2", "zinal-cos-b", 5),
        ]
        assert select_image(images, "cos", {"zinal"}).id == "2"

    def test_images_outside_authorized_scopes_hidden(self):
        images = [self._image("1", "red-cos", 1)]
        with pytest.raises(NotFoundError):
            select_image(images, "cos", {"zinal"})

    def test_case_insensitive(self):
        images = [self._image("1", "ZINAL-COS", 1)]
        assert select_image(images, "zinal-cos", {"zinal"}).id == "1"


class TestBuildMode:
    @pytest.mark.asyncio
    async def test_build_registers_ref_name(self, builder, management, context, clock):
        management.build_script = [JobState.RUNNING, JobState.RUNNING]
        spec = _spec(
            name="img-t",
            ref_name="ref1",
            base={"ims": {"id": "base-0001"}},
            configuration="cfg",
            configuration_group_names=["Compute", "zinal"],
        )

        resolved = await builder.resolve(spec, 0, context, ansible_verbosity=2)

        assert resolved.image.id == "img-img-t"
        assert resolved.job_id == "img-t"
        assert context.image_refs.resolve("ref1") == "img-img-t"
        request = management.builds["img-t"]
        assert request.base_image_id == "base-0001"
        assert request.groups == ("Compute", "zinal")
        assert request.ansible_verbosity == 2
        assert clock.sleeps == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_default_build_group(self, builder, management, context):
        await builder.resolve(_spec(name="img-t", base={"ims": {"id": "base-0001"}}, configuration="cfg"), 0, context)
        assert management.builds["img-t"].groups == ("Compute",)

    @pytest.mark.asyncio
    async def test_build_from_product_base(self, builder, management, context):
        spec = _spec(name="img-t", base={"product": {"name": "cos", "version": "2.3.101"}}, configuration="cfg")
        await builder.resolve(spec, 0, context)
        assert management.builds["img-t"].base_image_id == "base-0001"

    @pytest.mark.asyncio
    async def test_failed_build(self, builder, management, context):
        management.build_script = [JobState.RUNNING, JobState.FAILED]
        spec = _spec(name="img-t", ref_name="ref1", base={"ims": {"id": "base-0001"}}, configuration="cfg")

        with pytest.raises(BuildFailedError) as exc_info:
            await builder.resolve(spec, 4, context)

        assert exc_info.value.context.job_id == "img-t"
        assert exc_info.value.context.spec_index == 4
        assert "ref1" not in context.image_refs

    @pytest.mark.asyncio
    async def test_success_without_artifact_is_failure(self, builder, management, context):
        management.build_results["img-t"] = None
        spec = _spec(name="img-t", base={"ims": {"id": "base-0001"}}, configuration="cfg")
        with pytest.raises(BuildFailedError, match="without a result image"):
            await builder.resolve(spec, 0, context)

    @pytest.mark.asyncio
    async def test_build_timeout(self, builder, management, context):
        management.build_script = [JobState.RUNNING] * 10
        spec = _spec(name="img-t", base={"ims": {"id": "base-0001"}}, configuration="cfg")
        with pytest.raises(TimeoutError):
            await builder.resolve(spec, 0, context)
        assert management.call_names.count("get_build") == 5

    @pytest.mark.asyncio
    async def test_missing_configuration(self, builder, management, context):
        spec = _spec(name="img-t", base={"ims": {"id": "base-0001"}}, configuration="nope")
        with pytest.raises(NotFoundError, match="configuration not found: nope"):
            await builder.resolve(spec, 0, context)
        assert "submit_build" not in management.call_names

    @pytest.mark.asyncio
    async def test_preexisting_configuration_accepted(self, builder, management, context):
        management.configurations["older"] = Configuration(name="older")
        spec = _spec(name="img-t", base={"ims": {"id": "base-0001"}}, configuration="older")
        await builder.resolve(spec, 0, context)
        assert "submit_build" in management.call_names


class TestLookupAndReference:
    @pytest.mark.asyncio
    async def test_lookup_by_name(self, builder, context):
        resolved = await builder.resolve(_spec(name="x", ref_name="base", base={"ims": {"name": "zinal-cos"}}), 0, context)
        assert resolved.image.id == "base-0001"
        assert resolved.mode == "lookup"
        assert context.image_refs.resolve("base") == "base-0001"

    @pytest.mark.asyncio
    async def test_lookup_missing_id(self, builder, context):
        with pytest.raises(NotFoundError):
            await builder.resolve(_spec(name="x", base={"ims": {"id": "missing"}}), 0, context)

    @pytest.mark.asyncio
    async def test_reference(self, builder, context, management):
        context.image_refs.register("ref1", "base-0001")
        resolved = await builder.resolve(_spec(name="x", base={"image_ref": "ref1"}), 1, context)
        assert resolved.image.id == "base-0001"
        assert resolved.mode == "reference"
        assert management.mutations == []

    @pytest.mark.asyncio
    async def test_unresolved_reference(self, builder, context):
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            await builder.resolve(_spec(name="c", base={"image_ref": "ref2"}), 2, context)
        assert exc_info.value.context.spec_index == 2
