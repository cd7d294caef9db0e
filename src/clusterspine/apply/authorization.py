"""
Authorization Validator.

Every node group a descriptor touches must be one the caller is allowed to
act on. Groups are referenced in two places:

- ``images[].configuration_group_names`` (targets of the build job)
- ``session_templates[].bos_parameters.boot_sets.*.node_groups``

A small set of universal groups is shared by every tenant and never needs a
grant. The check runs once per run, before the first mutating call, so a
forbidden descriptor changes nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from clusterspine.core.errors import AuthorizationError
from clusterspine.core.logging import get_logger
from clusterspine.descriptor.models import Descriptor

logger = get_logger(__name__)

UNIVERSAL_SCOPES: frozenset[str] = frozenset({"Compute", "Application", "Application_UAN"})

_UNIVERSAL_FOLDED = frozenset(scope.casefold() for scope in UNIVERSAL_SCOPES)


def is_universal(scope: str) -> bool:
    """True for groups every caller may use (case-insensitive)."""
    return scope.casefold() in _UNIVERSAL_FOLDED


def referenced_scopes(descriptor: Descriptor, *, include_templates: bool = True) -> Iterator[tuple[str, str]]:
    """Yield ``(scope, referenced_by)`` in descriptor order."""
    for index, image in enumerate(descriptor.images):
        for group in image.configuration_group_names:
            yield group, f"images[{index}] ({image.name})"
    if not include_templates:
        return
    for index, template in enumerate(descriptor.session_templates):
        for group in template.node_groups:
            yield group, f"session_templates[{index}] ({template.name})"


def check_scope(scope: str, authorized: Iterable[str], *, referenced_by: str | None = None) -> None:
    """Raise :class:`AuthorizationError` unless ``scope`` may be used."""
    authorized = frozenset(authorized)
    if is_universal(scope) or scope in authorized:
        return
    raise AuthorizationError(scope, authorized, referenced_by=referenced_by)


def validate_descriptor_scopes(
    descriptor: Descriptor,
    authorized_scopes: Iterable[str],
    *,
    include_templates: bool = True,
) -> None:
    """Check every scope the descriptor references.

    With ``include_templates=False`` only the images section is checked.

    Raises:
        AuthorizationError: On the first non-universal scope not in
            ``authorized_scopes``.
    """
    authorized = frozenset(authorized_scopes)
    checked = 0
    for scope, referenced_by in referenced_scopes(descriptor, include_templates=include_templates):
        check_scope(scope, authorized, referenced_by=referenced_by)
        checked += 1
    logger.info("authorization.passed", scopes_checked=checked, authorized=sorted(authorized))
