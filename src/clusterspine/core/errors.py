"""
Structured error types for cluster-spine.

Every failure the rollout pipeline can hit is a ``ClusterSpineError``
subclass. Errors are fatal at the point of detection: nothing in the
pipeline retries or compensates. They bubble up to the single CLI handler,
which prints the message with its context and turns the category into a
process exit code.

Hierarchy::

    ClusterSpineError
      ├── ValidationError            ── descriptor is malformed or inconsistent
      │     └── UnresolvedReferenceError  ── image_ref consumed before produced
      ├── ConfigError                ── local settings are wrong
      │     └── MissingConfigError
      ├── AuthError
      │     ├── AuthenticationError  ── credential unusable
      │     └── AuthorizationError   ── scope not granted to the caller
      ├── NotFoundError              ── remote entity does not exist
      ├── BuildFailedError           ── image build job finished as failed
      ├── TimeoutError               ── poll budget exhausted
      └── RemoteError                ── management plane returned non-2xx

Each error carries an ``ErrorContext`` (descriptor section, spec name and
index, job id, URL, HTTP status) so the first failure names enough to target
a re-run.

Examples:
    >>> err = NotFoundError("configuration", "cfg-20240101")
    >>> err.with_context(section="session_templates", spec_index=0)
    NotFoundError('configuration not found: cfg-20240101', category=NOT_FOUND)
    >>> err.to_dict()["context"]["section"]
    'session_templates'

Tags:
    error-handling, exception-hierarchy, error-context, exit-codes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for reporting and exit-code translation."""

    VALIDATION = "VALIDATION"  # Descriptor shape, names, references
    CONFIG = "CONFIG"  # Local settings, token file
    AUTH = "AUTH"  # Authentication, authorization scopes
    NOT_FOUND = "NOT_FOUND"  # Remote entity missing
    BUILD = "BUILD"  # Image build job failed
    TIMEOUT = "TIMEOUT"  # Poll budget exhausted
    REMOTE = "REMOTE"  # Non-success response from a back-end
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


# Process exit code per category. 0 is reserved for full success.
EXIT_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 2,
    ErrorCategory.AUTH: 3,
    ErrorCategory.NOT_FOUND: 4,
    ErrorCategory.BUILD: 5,
    ErrorCategory.TIMEOUT: 6,
    ErrorCategory.REMOTE: 7,
    ErrorCategory.CONFIG: 8,
    ErrorCategory.INTERNAL: 1,
}


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        section: Descriptor section being processed (``images``, ...)
        spec_name: Name of the offending spec, post tag substitution
        spec_index: Position of the spec inside its section
        job_id: Remote build job identifier
        url: URL of the failing remote call
        http_status: HTTP status of the failing remote call
        metadata: Any additional key/value pairs
    """

    section: str | None = None
    spec_name: str | None = None
    spec_index: int | None = None
    job_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["section", "spec_name", "spec_index", "job_id", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ClusterSpineError(Exception):
    """
    Base exception for all cluster-spine errors.

    Subclasses set ``default_category``; callers may add context fluently
    with :meth:`with_context` while the error propagates through stages.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ClusterSpineError:
        """
        Add context to this error (fluent API).

        Fields already set are kept, so the innermost stage wins:

            raise NotFoundError("image", name).with_context(section="images")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                if getattr(self.context, key) is None:
                    setattr(self.context, key, value)
            else:
                self.context.metadata.setdefault(key, value)
        return self

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.category, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ClusterSpineError):
    """Descriptor validation error. The file must be fixed before re-running."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class UnresolvedReferenceError(ValidationError):
    """An ``image_ref`` is read before (or without) an image producing it."""

    def __init__(self, ref_name: str, message: str | None = None, **kwargs: Any):
        self.ref_name = ref_name
        super().__init__(
            message or f"image reference '{ref_name}' is not produced by any earlier image",
            field="image_ref",
            **kwargs,
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(ClusterSpineError):
    """Local configuration error."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


# =============================================================================
# AUTHENTICATION/AUTHORIZATION ERRORS
# =============================================================================


class AuthError(ClusterSpineError):
    """Authentication or authorization error."""

    default_category = ErrorCategory.AUTH


class AuthenticationError(AuthError):
    """The credential could not be used to identify the caller."""

    pass


class AuthorizationError(AuthError):
    """A referenced scope is not among the caller's authorized scopes."""

    def __init__(
        self,
        scope: str,
        authorized: frozenset[str] | set[str],
        *,
        referenced_by: str | None = None,
        message: str | None = None,
    ):
        self.scope = scope
        self.authorized = frozenset(authorized)
        self.referenced_by = referenced_by
        where = f" in {referenced_by}" if referenced_by else ""
        super().__init__(
            message
            or f"node group '{scope}'{where} not allowed, "
            f"authorized node groups: {sorted(self.authorized)}"
        )


# =============================================================================
# REMOTE / EXECUTION ERRORS
# =============================================================================


class NotFoundError(ClusterSpineError):
    """A remote entity the descriptor depends on does not exist."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, kind: str, name: str, message: str | None = None, **kwargs: Any):
        self.kind = kind
        self.name = name
        super().__init__(message or f"{kind} not found: {name}", **kwargs)


class BuildFailedError(ClusterSpineError):
    """An image build job reached the ``failed`` state."""

    default_category = ErrorCategory.BUILD

    def __init__(self, job_id: str, message: str | None = None, **kwargs: Any):
        self.job_id = job_id
        super().__init__(message or f"image build job '{job_id}' failed", **kwargs)
        self.context.job_id = job_id


class TimeoutError(ClusterSpineError):  # noqa: A001
    """A remote job did not reach a terminal state within the poll budget."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, job_id: str, attempts: int, interval: float, **kwargs: Any):
        self.job_id = job_id
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"job '{job_id}' still running after {attempts} checks "
            f"({attempts * interval:.0f}s)",
            **kwargs,
        )
        self.context.job_id = job_id


class RemoteError(ClusterSpineError):
    """Non-success response (or transport failure) from a remote back-end."""

    default_category = ErrorCategory.REMOTE

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        url: str | None = None,
        detail: str | None = None,
        **kwargs: Any,
    ):
        self.http_status = http_status
        self.detail = detail
        full = f"{message}: {detail}" if detail else message
        super().__init__(full, **kwargs)
        self.context.http_status = http_status
        self.context.url = url


def exit_code_for(error: BaseException) -> int:
    """Exit code the CLI returns for ``error``."""
    if isinstance(error, ClusterSpineError):
        return error.exit_code
    return 1


__all__ = [
    "EXIT_CODES",
    "AuthError",
    "AuthenticationError",
    "AuthorizationError",
    "BuildFailedError",
    "ClusterSpineError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "MissingConfigError",
    "NotFoundError",
    "RemoteError",
    "TimeoutError",
    "UnresolvedReferenceError",
    "ValidationError",
    "exit_code_for",
]
