"""Core primitives: errors, logging, settings, clock, entity models, protocols."""

from clusterspine.core.clock import Clock, SystemClock, new_tag
from clusterspine.core.errors import (
    AuthorizationError,
    BuildFailedError,
    ClusterSpineError,
    ErrorCategory,
    ErrorContext,
    NotFoundError,
    RemoteError,
    TimeoutError,
    UnresolvedReferenceError,
    ValidationError,
)
from clusterspine.core.models import (
    AuditRecord,
    BuildJob,
    BuildRequest,
    Configuration,
    Image,
    JobState,
    Layer,
    Principal,
    SessionTemplate,
)

__all__ = [
    "AuditRecord",
    "AuthorizationError",
    "BuildFailedError",
    "BuildJob",
    "BuildRequest",
    "Clock",
    "ClusterSpineError",
    "Configuration",
    "ErrorCategory",
    "ErrorContext",
    "Image",
    "JobState",
    "Layer",
    "NotFoundError",
    "Principal",
    "RemoteError",
    "SessionTemplate",
    "SystemClock",
    "TimeoutError",
    "UnresolvedReferenceError",
    "ValidationError",
    "new_tag",
]
