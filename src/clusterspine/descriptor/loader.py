"""
Descriptor loader.

Reads a SAT-style YAML file, substitutes the run Tag for the ``__DATE__``
placeholder and validates the result into a :class:`Descriptor`.

Substitution happens once, on the raw document, before validation: every
string under ``configurations``, ``images`` and ``session_templates`` is
rewritten; ``hardware`` is passed through unmodified. A name that omits the
placeholder is the same for every Tag, so two runs with different tags
upsert the same entity.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml

from clusterspine.core.errors import ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.descriptor.models import Descriptor

logger = get_logger(__name__)

TAG_PLACEHOLDER = "__DATE__"

# Sections whose strings receive the run Tag
TAGGED_SECTIONS = ("configurations", "images", "session_templates")


def substitute_tag(value: Any, tag: str) -> Any:
    """Return ``value`` with every placeholder in every string replaced by ``tag``."""
    if isinstance(value, str):
        return value.replace(TAG_PLACEHOLDER, tag)
    if isinstance(value, list):
        return [substitute_tag(item, tag) for item in value]
    if isinstance(value, dict):
        return {key: substitute_tag(item, tag) for key, item in value.items()}
    return value


def parse_descriptor(data: Any, tag: str) -> Descriptor:
    """Validate an already-parsed document into a :class:`Descriptor`.

    Raises:
        ValidationError: The document is not a mapping or does not match the schema.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"Expected a mapping at the top level, got {type(data).__name__}", field="root")

    document = dict(data)
    for section in TAGGED_SECTIONS:
        if section in document:
            document[section] = substitute_tag(document[section], tag)

    try:
        return Descriptor.model_validate(document)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid descriptor at {location}: {first['msg']}",
            field=location,
            cause=exc,
        ) from exc


def load_descriptor(path: Path | str, tag: str) -> Descriptor:
    """Load and validate a descriptor file.

    Raises:
        ValidationError: File missing, not YAML, or not a valid descriptor.
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"Descriptor file not found: {path}", field="file")

    logger.debug("descriptor.load", path=str(path), tag=tag)

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}", field="file", cause=e) from e

    descriptor = parse_descriptor(data, tag)
    logger.info(
        "descriptor.loaded",
        path=str(path),
        configurations=len(descriptor.configurations),
        images=len(descriptor.images),
        session_templates=len(descriptor.session_templates),
    )
    return descriptor
