"""
Pipeline Orchestrator — applies a descriptor end to end.

Stage order is fixed and strictly sequential::

    hardware (logged only)
      → validate_descriptor        names and image_ref ordering
      → validate_descriptor_scopes authorization
      → configurations             one upsert per spec, in order
      → images                     build / lookup / reference, in order
      → session templates          bind → rollout → audit, per spec

Nothing remote happens before both validation steps pass. The first error
stops the run; whatever was already applied stays applied. Identifiers for
everything resolved so far live in the :class:`ApplyResult`.

Example:
    pipeline = ClusterApplyPipeline.from_collaborators(
        management=client, nodes=client, identity=identity, audit=LogAuditSink(),
    )
    context = RunContext.create(tag=new_tag(), authorized_scopes=identity.authorized_scopes())
    result = await pipeline.run(descriptor, context, ApplyOptions(rollout=False))
"""

from __future__ import annotations

from clusterspine.apply.authorization import validate_descriptor_scopes
from clusterspine.apply.configurations import ConfigurationBuilder
from clusterspine.apply.context import RunContext
from clusterspine.apply.images import ImageBuilder
from clusterspine.apply.poller import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS, CompletionPoller, ProgressCallback
from clusterspine.apply.results import ApplyOptions, ApplyResult
from clusterspine.apply.rollout import RolloutExecutor
from clusterspine.apply.templates import TemplateBinder
from clusterspine.core.clock import Clock, SystemClock
from clusterspine.core.logging import LogContext, get_logger
from clusterspine.core.models import AuditRecord
from clusterspine.core.protocols import (
    AuditSink,
    CatalogProvider,
    IdentityProvider,
    ManagementPlane,
    NodeDirectory,
)
from clusterspine.descriptor.models import Descriptor
from clusterspine.descriptor.validation import validate_descriptor

logger = get_logger(__name__)


class ClusterApplyPipeline:
    """Runs the stages in order over one RunContext."""

    def __init__(
        self,
        configurations: ConfigurationBuilder,
        images: ImageBuilder,
        templates: TemplateBinder,
        rollout: RolloutExecutor,
        identity: IdentityProvider,
        audit: AuditSink,
    ):
        self.configurations = configurations
        self.images = images
        self.templates = templates
        self.rollout = rollout
        self.identity = identity
        self.audit = audit

    @classmethod
    def from_collaborators(
        cls,
        *,
        management: ManagementPlane,
        nodes: NodeDirectory,
        identity: IdentityProvider,
        audit: AuditSink,
        catalog: CatalogProvider | None = None,
        clock: Clock | None = None,
        poll_interval: float = DEFAULT_INTERVAL,
        poll_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_progress: ProgressCallback | None = None,
    ) -> ClusterApplyPipeline:
        """Wire the stage objects around one set of collaborators.

        ``on_progress`` is handed to both pollers (image builds and power-off).
        """
        clock = clock or SystemClock()
        return cls(
            configurations=ConfigurationBuilder(management, catalog),
            images=ImageBuilder(
                management,
                CompletionPoller(
                    clock,
                    interval=poll_interval,
                    max_attempts=poll_max_attempts,
                    on_progress=on_progress,
                ),
                catalog,
            ),
            templates=TemplateBinder(management),
            rollout=RolloutExecutor(
                management,
                nodes,
                CompletionPoller(
                    clock,
                    interval=poll_interval,
                    max_attempts=poll_max_attempts,
                    on_progress=on_progress,
                ),
            ),
            identity=identity,
            audit=audit,
        )

    async def run(
        self,
        descriptor: Descriptor,
        context: RunContext,
        options: ApplyOptions | None = None,
    ) -> ApplyResult:
        """Apply ``descriptor``.

        Raises:
            ClusterSpineError: The first failure, with section/spec context.
        """
        options = options or ApplyOptions()
        result = ApplyResult(tag=context.tag)

        with LogContext(run_tag=context.tag):
            logger.info("pipeline.started", hardware=descriptor.hardware)

            validate_descriptor(descriptor, include_templates=options.include_templates)
            validate_descriptor_scopes(
                descriptor, context.authorized_scopes, include_templates=options.include_templates
            )

            with LogContext(section="configurations"):
                for index, spec in enumerate(descriptor.configurations):
                    result.configurations.append(await self.configurations.build(spec, index, context))

            with LogContext(section="images"):
                for index, spec in enumerate(descriptor.images):
                    result.images.append(
                        await self.images.resolve(
                            spec,
                            index,
                            context,
                            ansible_verbosity=options.ansible_verbosity,
                            ansible_passthrough=options.ansible_passthrough,
                        )
                    )
            result.image_refs = context.image_refs.as_dict()

            if not options.include_templates:
                self._audit("Apply image", images=[r.image.id for r in result.images])
                logger.info("pipeline.completed", images=len(result.images))
                return result

            with LogContext(section="session_templates"):
                for index, spec in enumerate(descriptor.session_templates):
                    template = await self.templates.bind(spec, index, context, options.override_scope)
                    result.session_templates.append(template)

                    rollout = await self.rollout.execute(template, enabled=options.rollout)
                    result.rollouts.append(rollout)

                    self._audit(
                        "Apply cluster",
                        session_template=template.name,
                        node_group=template.node_group,
                        rebooted=not rollout.skipped,
                    )

            logger.info(
                "pipeline.completed",
                configurations=len(result.configurations),
                images=len(result.images),
                session_templates=len(result.session_templates),
            )
            return result

    def _audit(self, operation: str, **details: object) -> None:
        self.audit.record(AuditRecord(principal=self.identity.principal(), operation=operation, details=details))
