"""Invocation model and runtime loop state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

REQUEST_ID_HEADER = "Lambda-Runtime-Aws-Request-Id"
DEADLINE_HEADER = "Lambda-Runtime-Deadline-Ms"
FUNCTION_ARN_HEADER = "Lambda-Runtime-Invoked-Function-Arn"
TRACE_ID_HEADER = "Lambda-Runtime-Trace-Id"


class InvocationOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LoopState(str, Enum):
    """States of the runtime loop.

    ``AWAITING_NEXT → EXECUTING → REPORTING → AWAITING_NEXT`` repeats until
    ``stop()`` moves the loop to ``STOPPED`` or an unrecoverable control-plane
    error moves it to ``FATAL``.
    """

    AWAITING_NEXT = "awaiting_next"
    EXECUTING = "executing"
    REPORTING = "reporting"
    STOPPED = "stopped"
    FATAL = "fatal"


@dataclass(frozen=True)
class Invocation:
    """One unit of work handed out by the control plane."""

    request_id: str
    payload: bytes = b""
    deadline_ms: int | None = None
    function_arn: str | None = None
    trace_id: str | None = None

    @classmethod
    def from_headers(cls, request_id: str, headers: Mapping[str, str], payload: bytes = b"") -> Invocation:
        deadline = headers.get(DEADLINE_HEADER)
        return cls(
            request_id=request_id,
            payload=payload,
            deadline_ms=int(deadline) if deadline and deadline.isdigit() else None,
            function_arn=headers.get(FUNCTION_ARN_HEADER),
            trace_id=headers.get(TRACE_ID_HEADER),
        )

    def log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"request_id": self.request_id}
        if self.deadline_ms is not None:
            fields["deadline_ms"] = self.deadline_ms
        if self.trace_id:
            fields["trace_id"] = self.trace_id
        return fields


@dataclass
class LoopStats:
    """Counters for a runtime loop."""

    invocations: int = 0
    succeeded: int = 0
    failed: int = 0
    report_failures: int = 0

    def record(self, outcome: InvocationOutcome) -> None:
        self.invocations += 1
        if outcome is InvocationOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome is InvocationOutcome.FAILED:
            self.failed += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "invocations": self.invocations,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "report_failures": self.report_failures,
        }
