"""
Image Builder.

Resolves each ``ImageSpec`` to an image that exists in the image service, in
one of three modes:

- **build**: customise a base artifact with a configuration. A build job is
  submitted and watched by the :class:`CompletionPoller`; the job's result
  image becomes the entry's image.
- **lookup**: find an existing image by id, by product catalog entry, or
  by (fuzzy) name.
- **reference**: reuse an image produced earlier in this run via
  ``base.image_ref``.

Whatever the mode, an entry that declares ``ref_name`` registers its image id
in the run's ImageRefMap so later entries can read it.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from clusterspine.apply.context import RunContext
from clusterspine.apply.poller import CompletionPoller
from clusterspine.apply.results import ResolvedImage
from clusterspine.core.errors import BuildFailedError, ClusterSpineError, ConfigError, NotFoundError, ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import BuildJob, BuildRequest, Image, JobState
from clusterspine.core.protocols import CatalogProvider, ManagementPlane
from clusterspine.descriptor.models import ImageBase, ImageMode, ImageSpec

logger = get_logger(__name__)

DEFAULT_BUILD_GROUPS = ("Compute",)

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _created(image: Image) -> datetime:
    if image.created is None:
        return _EPOCH
    if image.created.tzinfo is None:
        return image.created.replace(tzinfo=UTC)
    return image.created


def select_image(images: Iterable[Image], name: str, authorized_scopes: Iterable[str]) -> Image:
    """Pick the best image for ``name`` among those the caller may see.

    Candidates are images whose name contains ``name`` and mentions one of
    the authorized scopes (both case-insensitive). An exact name match wins;
    otherwise the newest image does.

    Raises:
        NotFoundError: No candidate.
    """
    scopes = [scope.casefold() for scope in authorized_scopes]
    wanted = name.casefold()

    candidates = [
        image
        for image in images
        if wanted in image.name.casefold() and any(scope in image.name.casefold() for scope in scopes)
    ]
    if not candidates:
        raise NotFoundError("image", name)

    exact = [image for image in candidates if image.name == name]
    pool = exact or candidates
    chosen = max(pool, key=_created)
    if len(candidates) > 1:
        logger.debug("images.lookup_ambiguous", name=name, candidates=len(candidates), chosen=chosen.id)
    return chosen


async def find_image_by_name(
    management: ManagementPlane, name: str, authorized_scopes: Iterable[str]
) -> Image:
    """Look an image up by name in the image service."""
    return select_image(await management.list_images(), name, authorized_scopes)


class ImageBuilder:
    """Resolves image specs in descriptor order."""

    def __init__(
        self,
        management: ManagementPlane,
        poller: CompletionPoller[BuildJob],
        catalog: CatalogProvider | None = None,
    ):
        self.management = management
        self.poller = poller
        self.catalog = catalog

    async def resolve(
        self,
        spec: ImageSpec,
        index: int,
        context: RunContext,
        *,
        ansible_verbosity: int | None = None,
        ansible_passthrough: str | None = None,
    ) -> ResolvedImage:
        """Resolve one spec and register its ``ref_name``.

        Raises:
            UnresolvedReferenceError: ``base.image_ref`` was never produced.
            NotFoundError: Base image or configuration does not exist.
            BuildFailedError: The build job failed or produced no image.
            TimeoutError: The build job did not finish within the poll budget.
        """
        mode = spec.mode
        job_id: str | None = None
        try:
            if mode is ImageMode.BUILD:
                image, job_id = await self._build(
                    spec,
                    context,
                    ansible_verbosity=ansible_verbosity,
                    ansible_passthrough=ansible_passthrough,
                )
            elif mode is ImageMode.REFERENCE:
                image = await self._get(context.image_refs.resolve(spec.base.image_ref or ""))
            else:
                image = await self._lookup(spec.base, context)
        except ClusterSpineError as e:
            raise e.with_context(section="images", spec_name=spec.name, spec_index=index)

        if spec.ref_name:
            context.image_refs.register(spec.ref_name, image.id)

        logger.info(
            "images.resolved",
            spec=spec.name,
            mode=mode.value,
            image_id=image.id,
            ref_name=spec.ref_name,
        )
        return ResolvedImage(
            spec_name=spec.name,
            image=image,
            mode=mode.value,
            ref_name=spec.ref_name,
            job_id=job_id,
        )

    async def _get(self, image_id: str) -> Image:
        image = await self.management.get_image(image_id)
        if image is None:
            raise NotFoundError("image", image_id)
        return image

    async def _lookup(self, base: ImageBase, context: RunContext) -> Image:
        if base.ims is not None:
            if base.ims.id is not None:
                return await self._get(base.ims.id)
            return await find_image_by_name(self.management, base.ims.name or "", context.authorized_scopes)

        product = base.product
        if product is None:
            raise ValidationError("image base has neither ims, product nor image_ref", field="base")
        if self.catalog is None:
            raise ConfigError(f"image base uses product '{product.name}' but no product catalog is configured")
        image_id = self.catalog.image_id(
            product.name,
            product.version,
            product.type,
            name_prefix=product.name_prefix,
        )
        return await self._get(image_id)

    async def _base_image_id(self, base: ImageBase, context: RunContext) -> str:
        if base.image_ref is not None:
            return context.image_refs.resolve(base.image_ref)
        return (await self._lookup(base, context)).id

    async def _require_configuration(self, name: str, context: RunContext) -> None:
        if context.has_configuration(name):
            return
        if await self.management.get_configuration(name) is None:
            raise NotFoundError("configuration", name)
        logger.debug("images.configuration_preexisting", configuration=name)

    async def _build(
        self,
        spec: ImageSpec,
        context: RunContext,
        *,
        ansible_verbosity: int | None,
        ansible_passthrough: str | None,
    ) -> tuple[Image, str]:
        configuration = spec.configuration or ""
        await self._require_configuration(configuration, context)
        base_id = await self._base_image_id(spec.base, context)

        request = BuildRequest(
            name=spec.name,
            configuration=configuration,
            base_image_id=base_id,
            groups=tuple(spec.configuration_group_names) or DEFAULT_BUILD_GROUPS,
            ansible_verbosity=ansible_verbosity,
            ansible_passthrough=ansible_passthrough,
        )
        job = await self.management.submit_build(request)
        logger.info(
            "images.build_submitted",
            spec=spec.name,
            job_id=job.id,
            base_id=base_id,
            configuration=configuration,
        )

        finished = await self.poller.wait(job.id, self.management.get_build)
        if JobState(finished.state) != JobState.SUCCEEDED:
            raise BuildFailedError(job.id)
        if not finished.result_image_id:
            raise BuildFailedError(job.id, f"image build job '{job.id}' succeeded without a result image")

        return await self._get(finished.result_image_id), job.id
