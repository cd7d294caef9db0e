"""
Product catalog backed by a dump of the ``cray-product-catalog`` ConfigMap.

The ConfigMap stores one YAML document per product, keyed by product name;
each document maps versions to what that version installed::

    cos: |
      2.3.101:
        configuration:
          clone_url: https://vcs.local/vcs/cray/cos-config-management.git
          commit: 9fd8c3e...
          import_branch: cray/cos/2.3.101
        images:
          cray-shasta-compute-sles15sp3.x86_64-2.3.101:
            id: 4bf91021-...

The file given to :meth:`ProductCatalog.from_file` may be the full
ConfigMap (``kubectl get cm -o yaml``) or just its ``data`` mapping.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from clusterspine.core.errors import ConfigError, NotFoundError
from clusterspine.core.logging import get_logger

logger = get_logger(__name__)

# Catalog section holding each artifact type
_ARTIFACT_SECTIONS = {"image": "images", "recipe": "recipes"}


class ProductCatalog:
    """Read-only view over ``product → version → entry``."""

    def __init__(self, products: dict[str, dict[str, Any]]):
        self._products = products

    @classmethod
    def from_configmap_data(cls, data: dict[str, Any]) -> ProductCatalog:
        products: dict[str, dict[str, Any]] = {}
        for product, document in data.items():
            versions = yaml.safe_load(document) if isinstance(document, str) else document
            products[product] = {str(version): entry or {} for version, entry in (versions or {}).items()}
        return cls(products)

    @classmethod
    def from_file(cls, path: Path | str) -> ProductCatalog:
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                document = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read product catalog {path}: {e}", cause=e) from e

        if isinstance(document, dict) and document.get("kind") == "ConfigMap":
            document = document.get("data") or {}
        if not isinstance(document, dict):
            raise ConfigError(f"Product catalog {path} is not a mapping")

        catalog = cls.from_configmap_data(document)
        logger.debug("catalog.loaded", path=str(path), products=len(catalog._products))
        return catalog

    def entry(self, product: str, version: str) -> dict[str, Any]:
        try:
            return self._products[product][version]
        except KeyError:
            raise NotFoundError("product", f"{product} {version}") from None

    def layer_source(self, product: str, version: str) -> tuple[str, str | None]:
        configuration = self.entry(product, version).get("configuration") or {}
        clone_url = configuration.get("clone_url")
        if not clone_url:
            raise NotFoundError("product configuration", f"{product} {version}")
        return clone_url, configuration.get("commit")

    def image_id(
        self,
        product: str,
        version: str,
        artifact_type: str = "image",
        name_prefix: str | None = None,
    ) -> str:
        section = _ARTIFACT_SECTIONS.get(artifact_type, f"{artifact_type}s")
        artifacts: dict[str, Any] = self.entry(product, version).get(section) or {}

        names = sorted(n for n in artifacts if name_prefix is None or n.startswith(name_prefix))
        if not names:
            wanted = f"{product} {version} {artifact_type}"
            if name_prefix:
                wanted += f" with prefix '{name_prefix}'"
            raise NotFoundError("product artifact", wanted)
        if len(names) > 1:
            logger.warning("catalog.ambiguous_artifact", product=product, version=version, chosen=names[0], candidates=names)
        return artifacts[names[0]]["id"]
