"""Exceptions raised by flowbench.

Everything the CLI reports as a clean one-line error derives from FlowbenchError;
anything else is treated as a bug and logged with a traceback.
"""

from __future__ import annotations

from typing import Any


class FlowbenchError(Exception):
    """Base exception for flowbench.

    Attributes:
        message: Human-readable error description (printed by the CLI)
        context: Extra key/value details for logs, e.g. the offending path
        original_error: Underlying exception, if this one wraps another
    """

    def __init__(
        self,
        message: str,
        *args: object,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, *args)
        self.message = message
        self.context = dict(context or {})
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("[" + ", ".join(f"{k}={v!r}" for k, v in self.context.items()) + "]")
        if self.original_error is not None:
            parts.append(f"(caused by {type(self.original_error).__name__}: {self.original_error})")
        return " ".join(parts)

    def log_fields(self) -> dict[str, Any]:
        """Fields for `extra=` on a log call; rendered as keys by the JSON log format."""
        fields: dict[str, Any] = {"error_type": type(self).__name__, "error_context": self.context}
        if self.original_error is not None:
            fields["caused_by"] = f"{type(self.original_error).__name__}: {self.original_error}"
        return fields


class FlowbenchConfigError(FlowbenchError):
    """Raised when run configuration is missing or invalid.

    Common causes:
    - API_URL or API_KEY not set
    - Unparsable duration string (e.g. TEST_DURATION=abc)
    - Config file not found or invalid YAML
    """


class FlowbenchRunnerError(FlowbenchError):
    """Raised when a saved snapshot cannot be loaded (report-only mode)."""


class FlowbenchReportError(FlowbenchError):
    """Raised when report artifacts cannot be written (e.g. output directory not writable)."""
