"""Cross-section descriptor checks that must pass before any remote call.

Image specs depend on each other only by position: a spec may read an
``image_ref`` that an *earlier* spec declared as its ``ref_name``. That
ordering is the contract; it is checked here, up front, so a bad reference
fails the run before the first configuration is written instead of in the
middle of the images stage.
"""

from __future__ import annotations

from clusterspine.core.errors import UnresolvedReferenceError, ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.descriptor.models import Descriptor

logger = get_logger(__name__)


def validate_descriptor(descriptor: Descriptor, *, include_templates: bool = True) -> None:
    """Validate names and references across sections.

    Session templates are skipped when ``include_templates`` is false.

    Raises:
        ValidationError: Two configurations share a name after tag substitution.
        UnresolvedReferenceError: An ``image_ref`` has no earlier producer.
    """
    _check_unique_configuration_names(descriptor)
    _check_image_references(descriptor, include_templates)


def _check_unique_configuration_names(descriptor: Descriptor) -> None:
    seen: set[str] = set()
    for index, spec in enumerate(descriptor.configurations):
        if spec.name in seen:
            raise ValidationError(
                f"configuration name '{spec.name}' is used more than once",
                field="name",
            ).with_context(section="configurations", spec_name=spec.name, spec_index=index)
        seen.add(spec.name)


def _check_image_references(descriptor: Descriptor, include_templates: bool) -> None:
    produced: set[str] = set()

    for index, spec in enumerate(descriptor.images):
        ref = spec.base.image_ref
        if ref is not None and ref not in produced:
            raise UnresolvedReferenceError(ref).with_context(
                section="images", spec_name=spec.name, spec_index=index
            )
        if spec.ref_name:
            if spec.ref_name in produced:
                logger.warning(
                    "descriptor.duplicate_ref_name",
                    ref_name=spec.ref_name,
                    image=spec.name,
                    note="first producer wins",
                )
            produced.add(spec.ref_name)

    if not include_templates:
        return

    for index, template in enumerate(descriptor.session_templates):
        ref = template.image.image_ref
        if ref is not None and ref not in produced:
            raise UnresolvedReferenceError(
                ref, f"image reference '{ref}' is not produced by any image in the descriptor"
            ).with_context(section="session_templates", spec_name=template.name, spec_index=index)
