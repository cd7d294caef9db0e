"""Template Binder: configuration + image + node group → boot session template."""

from __future__ import annotations

from clusterspine.apply.context import RunContext
from clusterspine.apply.images import find_image_by_name
from clusterspine.core.errors import ClusterSpineError, NotFoundError, ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import Image, SessionTemplate
from clusterspine.core.protocols import ManagementPlane
from clusterspine.descriptor.models import SessionTemplateSpec

logger = get_logger(__name__)


def effective_scope(spec: SessionTemplateSpec, override_scope: str | None = None) -> str:
    """Node group the template will target.

    An override that is *not* one of the declared groups replaces them; an
    override that is declared, or no override, yields the first declared
    group.
    """
    declared = spec.node_groups
    if override_scope is not None and override_scope not in declared:
        logger.warning(
            "templates.override_scope",
            template=spec.name,
            override=override_scope,
            declared=declared,
            note="override does not match any declared node group, using override",
        )
        return override_scope
    return declared[0]


class TemplateBinder:
    """Upserts one session template per spec."""

    def __init__(self, management: ManagementPlane):
        self.management = management

    async def _image(self, spec: SessionTemplateSpec, context: RunContext) -> Image:
        if spec.image.image_ref is not None:
            image_id = context.image_refs.resolve(spec.image.image_ref)
            image = await self.management.get_image(image_id)
            if image is None:
                raise NotFoundError("image", image_id)
            return image
        if spec.image.ims is None:
            raise ValidationError(f"session template '{spec.name}' names no image", field="image")
        return await find_image_by_name(self.management, spec.image.ims.name, context.authorized_scopes)

    async def bind(
        self,
        spec: SessionTemplateSpec,
        index: int,
        context: RunContext,
        override_scope: str | None = None,
    ) -> SessionTemplate:
        """Resolve image and configuration, then upsert the template.

        Raises:
            NotFoundError: The configuration was not created in this run, or
                the image does not exist.
            UnresolvedReferenceError: ``image.image_ref`` was never produced.
            RemoteError: The template was rejected.
        """
        try:
            image = await self._image(spec, context)
            if not context.has_configuration(spec.configuration):
                raise NotFoundError(
                    "configuration",
                    spec.configuration,
                    f"configuration '{spec.configuration}' was not created in this run",
                )

            boot_set, boot_set_spec = spec.primary_boot_set()
            template = SessionTemplate(
                name=spec.name,
                configuration=spec.configuration,
                image=image,
                node_group=effective_scope(spec, override_scope),
                boot_set=boot_set,
                boot_set_options=boot_set_spec.options(),
            )
            stored = await self.management.put_session_template(template)
        except ClusterSpineError as e:
            raise e.with_context(section="session_templates", spec_name=spec.name, spec_index=index)

        logger.info(
            "templates.applied",
            name=stored.name,
            configuration=stored.configuration,
            image_id=stored.image.id,
            node_group=stored.node_group,
        )
        return stored
