"""Audit sink that writes to the dedicated audit logger."""

from __future__ import annotations

from clusterspine.core.logging import AUDIT_LOGGER_NAME, get_logger
from clusterspine.core.models import AuditRecord


class LogAuditSink:
    """One ``audit`` event per completed operation."""

    def __init__(self) -> None:
        self._logger = get_logger(AUDIT_LOGGER_NAME)

    def record(self, entry: AuditRecord) -> None:
        self._logger.info(
            "audit",
            user=entry.principal.name,
            username=entry.principal.username,
            operation=entry.operation,
            **entry.details,
        )
