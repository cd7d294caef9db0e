"""
Run context — the explicit state threaded through every pipeline stage.

One ``RunContext`` exists per run. It holds the Tag, the caller's authorized
scopes, the ImageRefMap and the configurations created in this run. Nothing
in the pipeline keeps module-level state, so two runs in one process never
see each other's references.

Example:
    context = RunContext.create(tag="20240101120000", authorized_scopes={"zinal"})
    context.image_refs.register("zinal_cos", "1f4c...")
    context.image_refs.resolve("zinal_cos")
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from clusterspine.core.errors import UnresolvedReferenceError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import Configuration

logger = get_logger(__name__)


class ImageRefMap:
    """Run-scoped ``ref_name → image id`` map. Write-once per key."""

    def __init__(self) -> None:
        self._refs: dict[str, str] = {}

    def register(self, ref_name: str, image_id: str) -> bool:
        """Record ``ref_name`` unless it already exists. Returns True if written."""
        existing = self._refs.get(ref_name)
        if existing is not None:
            logger.warning(
                "image_refs.already_registered",
                ref_name=ref_name,
                kept=existing,
                ignored=image_id,
            )
            return False
        self._refs[ref_name] = image_id
        logger.debug("image_refs.registered", ref_name=ref_name, image_id=image_id)
        return True

    def resolve(self, ref_name: str) -> str:
        """Return the image id for ``ref_name``.

        Raises:
            UnresolvedReferenceError: No earlier spec produced ``ref_name``.
        """
        try:
            return self._refs[ref_name]
        except KeyError:
            raise UnresolvedReferenceError(ref_name) from None

    def __contains__(self, ref_name: object) -> bool:
        return ref_name in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def __iter__(self) -> Iterator[str]:
        return iter(self._refs)

    def as_dict(self) -> dict[str, str]:
        return dict(self._refs)


@dataclass
class RunContext:
    """Tag, authorized scopes and run-scoped registries for one pipeline run."""

    tag: str
    authorized_scopes: frozenset[str] = frozenset()
    image_refs: ImageRefMap = field(default_factory=ImageRefMap)
    configurations: dict[str, Configuration] = field(default_factory=dict)

    @classmethod
    def create(cls, tag: str, authorized_scopes: Iterable[str] = ()) -> RunContext:
        return cls(tag=tag, authorized_scopes=frozenset(authorized_scopes))

    def add_configuration(self, configuration: Configuration) -> None:
        self.configurations[configuration.name] = configuration

    def has_configuration(self, name: str) -> bool:
        return name in self.configurations
