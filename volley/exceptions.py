"""Exception taxonomy for volley.

Every volley-specific exception inherits from VolleyError so callers can
catch one type. Transport, script and parse failures are normally turned
into data (status 0 outcomes, log lines) before they reach a caller; only
validation and configuration errors are raised across the public API.
"""

from __future__ import annotations

from typing import Any


class VolleyError(Exception):
    """Base exception for all volley errors.

    Attributes:
        message: Human-readable error description
        context: Optional dictionary with additional debugging context
        original_error: Original exception that caused this error (if any)
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
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            base = f"{base} [{ctx_str}]"
        if self.original_error:
            base = f"{base} (caused by: {type(self.original_error).__name__}: {self.original_error})"
        return base

    def with_context(self, **kwargs: Any) -> "VolleyError":
        """Add context to this error and return self for chaining."""
        self.context.update(kwargs)
        return self


class ValidationError(VolleyError):
    """Raised when a request cannot be built or a request file is malformed.

    Common causes:
    - JSON body that does not parse
    - Unknown HTTP method or body type
    - Request file that is not an object
    """


class ConfigurationError(VolleyError):
    """Raised when load-test configuration is invalid.

    Common causes:
    - concurrency or loops_per_user < 1
    - Config file not found or invalid YAML
    - timeout_seconds <= 0
    """


class TransportFailure(VolleyError):
    """Raised by the transport layer when no HTTP response was obtained.

    DNS failure, refused connection, timeout, abrupt close. The executor and
    the load-test harness convert it into a status 0 result.
    """


class ScriptFailure(VolleyError):
    """Raised inside the script sandbox when a user script fails.

    Never escapes the sandbox; it is recorded as a log line.
    """


class TextGenerationError(VolleyError):
    """Raised by a text generator when no usable text came back.

    Callers in volley.assist turn it into a fixed fallback string.
    """
