"""
Configuration Builder.

Turns each ``ConfigurationSpec`` into an ordered layer list and upserts it
by name. Product layers are pinned through the catalog: the clone URL always
comes from the catalog, the commit too unless the layer names a branch or a
commit of its own.
"""

from __future__ import annotations

from clusterspine.apply.context import RunContext
from clusterspine.core.errors import ClusterSpineError, ConfigError, ValidationError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import Configuration, Layer
from clusterspine.core.protocols import CatalogProvider, ManagementPlane
from clusterspine.descriptor.models import ConfigurationSpec, LayerSpec

logger = get_logger(__name__)


class ConfigurationBuilder:
    """Creates or replaces configurations, one spec at a time."""

    def __init__(self, management: ManagementPlane, catalog: CatalogProvider | None = None):
        self.management = management
        self.catalog = catalog

    def layers_for(self, spec: ConfigurationSpec) -> list[Layer]:
        return [self._layer(spec, position, layer) for position, layer in enumerate(spec.layers)]

    def _layer(self, spec: ConfigurationSpec, position: int, layer: LayerSpec) -> Layer:
        if layer.git is not None:
            return Layer(
                name=layer.name or f"{spec.name}-layer-{position}",
                clone_url=layer.git.url,
                playbook=layer.playbook,
                commit=layer.git.commit,
                branch=layer.git.branch,
            )

        product = layer.product
        if product is None:
            raise ValidationError(
                f"layer '{layer.name or position}' of configuration '{spec.name}' "
                "has neither a git nor a product source",
                field="layers",
            )
        if self.catalog is None:
            raise ConfigError(
                f"layer '{layer.name or position}' of configuration '{spec.name}' "
                "uses a product source but no product catalog is configured"
            )
        clone_url, catalog_commit = self.catalog.layer_source(product.name, product.version)
        commit = product.commit
        if commit is None and product.branch is None:
            commit = catalog_commit
        return Layer(
            name=layer.name or f"{product.name}-{product.version}",
            clone_url=clone_url,
            playbook=layer.playbook,
            commit=commit,
            branch=product.branch,
        )

    async def build(self, spec: ConfigurationSpec, index: int, context: RunContext) -> Configuration:
        """Upsert one configuration and register it in the run.

        Raises:
            RemoteError: The management plane rejected the configuration.
            NotFoundError: A product layer is not in the catalog.
        """
        try:
            layers = self.layers_for(spec)
            configuration = await self.management.put_configuration(spec.name, layers)
        except ClusterSpineError as e:
            raise e.with_context(section="configurations", spec_name=spec.name, spec_index=index)

        context.add_configuration(configuration)
        logger.info("configurations.applied", name=configuration.name, layers=len(layers))
        return configuration
