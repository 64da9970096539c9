"""
jobhost core primitives: errors, results, logging and settings.
"""

from jobhost.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    JobError,
    JobhostError,
    ProtocolError,
    TransportError,
)
from jobhost.core.logging import LogContext, configure_logging, get_logger
from jobhost.core.result import Err, Ok, Result

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "JobError",
    "JobhostError",
    "ProtocolError",
    "TransportError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "Err",
    "Ok",
    "Result",
]
