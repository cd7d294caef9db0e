"""The rollout pipeline: authorization, configurations, images, templates, rollout."""

from clusterspine.apply.authorization import UNIVERSAL_SCOPES, validate_descriptor_scopes
from clusterspine.apply.configurations import ConfigurationBuilder
from clusterspine.apply.context import ImageRefMap, RunContext
from clusterspine.apply.images import ImageBuilder
from clusterspine.apply.nodes import NodePowerService
from clusterspine.apply.pipeline import ClusterApplyPipeline
from clusterspine.apply.poller import CompletionPoller
from clusterspine.apply.results import ApplyOptions, ApplyResult, ResolvedImage, RolloutResult
from clusterspine.apply.rollout import RolloutExecutor
from clusterspine.apply.templates import TemplateBinder

__all__ = [
    "UNIVERSAL_SCOPES",
    "ApplyOptions",
    "ApplyResult",
    "ClusterApplyPipeline",
    "CompletionPoller",
    "ConfigurationBuilder",
    "ImageBuilder",
    "ImageRefMap",
    "NodePowerService",
    "ResolvedImage",
    "RolloutExecutor",
    "RolloutResult",
    "RunContext",
    "TemplateBinder",
    "validate_descriptor_scopes",
]
