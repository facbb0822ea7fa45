"""
Error taxonomy for the freestyle multibranch core.

Every error carries a stable code for programmatic handling. Errors that
only affect durability (RebindSaveFailure, TemplateReplaceFailure) are
logged by the component that detects them and are not raised to callers.
"""

from __future__ import annotations

from typing import Any, Dict


class FreestyleMultibranchError(Exception):
    """
    Base class for all errors raised by this package.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "FREESTYLE_MULTIBRANCH_ERROR"

    def __init__(self, message: str, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }


class NodeDisconnected(FreestyleMultibranchError):
    """The execution node has no workspace for the parent project.

    Fatal for the build attempt. The scheduler is expected to reschedule.
    """

    code = "NODE_DISCONNECTED"

    def __init__(self, node_name: str, message: str | None = None):
        self.node_name = node_name
        super().__init__(
            message or f"Node '{node_name}' is no longer connected"
        )


class ConfigurationError(FreestyleMultibranchError):
    """A submitted configuration could not be bound."""

    code = "INVALID_CONFIGURATION"


class TemplateReplaceFailure(FreestyleMultibranchError):
    """A bulk template replace failed partway through."""

    code = "TEMPLATE_REPLACE_FAILED"


class RebindSaveFailure(FreestyleMultibranchError):
    """Persisting a branch job after a rebind failed."""

    code = "REBIND_SAVE_FAILED"

    def __init__(self, job_name: str, message: str | None = None):
        self.job_name = job_name
        super().__init__(message or f"Could not save job '{job_name}' after rebind")


class PersistenceError(FreestyleMultibranchError):
    """A job or project record could not be written or read."""

    code = "PERSISTENCE_FAILED"
