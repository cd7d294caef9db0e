"""Descriptor models, loading (with tag substitution) and cross-section validation."""

from clusterspine.descriptor.loader import (
    TAG_PLACEHOLDER,
    load_descriptor,
    parse_descriptor,
    substitute_tag,
)
from clusterspine.descriptor.models import (
    ConfigurationSpec,
    Descriptor,
    ImageMode,
    ImageSpec,
    LayerSpec,
    SessionTemplateSpec,
)
from clusterspine.descriptor.validation import validate_descriptor

__all__ = [
    "TAG_PLACEHOLDER",
    "ConfigurationSpec",
    "Descriptor",
    "ImageMode",
    "ImageSpec",
    "LayerSpec",
    "SessionTemplateSpec",
    "load_descriptor",
    "parse_descriptor",
    "substitute_tag",
    "validate_descriptor",
]
