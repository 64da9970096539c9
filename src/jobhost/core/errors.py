"""
Structured error types for jobhost.

The runner distinguishes failures of the job body from failures of the
environment contract. The distinction decides what happens next: a job
failure becomes a report to the control plane (or exit status 1) and the
process keeps going, while a broken control-plane contract terminates the
process so the host can restart it.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        JobhostError                           │
        │        (category, fatal, context, cause, to_dict())          │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  JobError          ProtocolError      TransportError          │
        │  (JOB)             (PROTOCOL)         (NETWORK)               │
        │  never fatal       always fatal       fatal on poll,          │
        │  reported as       missing header,    logged on report        │
        │  "JobError"        bad status                                 │
        │                                                               │
        │  ConfigError                                                  │
        │  (CONFIG)                                                     │
        │  always fatal                                                 │
        └──────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a job failure:

    >>> err = JobError.from_exception(ValueError("bad input"))
    >>> err.message, err.kind
    ('bad input', 'ValueError')
    >>> err.fatal
    False

    Poll vs report transport failures:

    >>> TransportError("refused", phase="poll").fatal
    True
    >>> TransportError("refused", phase="report").fatal
    False

Guardrails:
    ❌ DON'T: Let a JobError escape the loop or adapter
    ✅ DO: Convert it to an error report or exit status 1

    ❌ DON'T: Retry a failed report
    ✅ DO: Log it and poll for the next invocation

Tags:
    error-handling, exception-hierarchy, runtime-api, jobhost
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class ErrorCategory(str, Enum):
    """Error categories used for log routing and fatal/non-fatal decisions."""

    JOB = "JOB"
    PROTOCOL = "PROTOCOL"
    NETWORK = "NETWORK"
    CONFIG = "CONFIG"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        request_id: Invocation the error belongs to, if any
        url: Control-plane URL that was being accessed
        http_status: HTTP status code returned by the control plane
        metadata: Additional key-value pairs
    """

    request_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("request_id", "url", "http_status"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class JobhostError(Exception):
    """
    Base exception for all jobhost errors.

    Subclasses set ``default_category`` and may override ``default_fatal``. A fatal error
    means the environment contract is broken and the process must terminate;
    a non-fatal one is handled by whoever caught it.
    """

    default_category: ErrorCategory
    default_fatal: bool = True

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        fatal: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.fatal = fatal if fatal is not None else self.default_fatal
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> JobhostError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ProtocolError("missing header").with_context(url=url)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "fatal": self.fatal,
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
# JOB ERRORS (recoverable at the loop/adapter boundary)
# =============================================================================


class JobError(JobhostError):
    """
    The opaque job body failed.

    ``kind`` keeps the class name of the original exception for logs; on
    the wire the error type is always :attr:`ERROR_TYPE`.
    """

    ERROR_TYPE = "JobError"

    default_category = ErrorCategory.JOB
    default_fatal = False

    def __init__(self, message: str, *, kind: str = "Exception", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.kind = kind

    @classmethod
    def from_exception(cls, exc: BaseException) -> JobError:
        if isinstance(exc, JobError):
            return exc
        kind = type(exc).__name__
        return cls(str(exc) or kind, kind=kind, cause=exc)

    def to_report(self) -> dict[str, str]:
        """Body for the control plane's invocation error endpoint."""
        return {"errorMessage": self.message, "errorType": self.ERROR_TYPE}

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind
        return result


# =============================================================================
# CONTROL-PLANE ERRORS
# =============================================================================


class ProtocolError(JobhostError):
    """Malformed or missing data from the control plane. Always fatal."""

    default_category = ErrorCategory.PROTOCOL
    default_fatal = True


class TransportError(JobhostError):
    """
    A control-plane HTTP call failed at the transport level.

    Fatal while polling (there is no invocation to recover), non-fatal while
    reporting (the next poll proceeds).
    """

    default_category = ErrorCategory.NETWORK

    def __init__(self, message: str, *, phase: Literal["poll", "report"], **kwargs: Any):
        kwargs.setdefault("fatal", phase == "poll")
        super().__init__(message, **kwargs)
        self.phase = phase

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["phase"] = self.phase
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(JobhostError):
    """
    Configuration error.

    Never recoverable at runtime - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_fatal = True


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "JobhostError",
    "JobError",
    "ProtocolError",
    "TransportError",
    "ConfigError",
]
