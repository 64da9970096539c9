"""Execution: job executor, mode detection and the two runners.

::

    detect_mode()
      ├── CUSTOM_RUNTIME         → RuntimeLoopClient(address, JobExecutor(job)).run()
      └── ORCHESTRATED_OR_LOCAL  → ProcessExitAdapter(JobExecutor(job)).run_once()
"""

from jobhost.execution.environment import (
    RUNTIME_API_ENV,
    EnvironmentMode,
    detect_mode,
    runtime_api_address,
)
from jobhost.execution.invocation import Invocation, InvocationOutcome, LoopState, LoopStats
from jobhost.execution.job import JobExecutor, JobFunction, JobResult, load_job
from jobhost.execution.process_exit import EXIT_FAILURE, EXIT_SUCCESS, ProcessExitAdapter
from jobhost.execution.runtime_loop import RuntimeLoopClient

__all__ = [
    "RUNTIME_API_ENV",
    "EnvironmentMode",
    "detect_mode",
    "runtime_api_address",
    "Invocation",
    "InvocationOutcome",
    "LoopState",
    "LoopStats",
    "JobExecutor",
    "JobFunction",
    "JobResult",
    "load_job",
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "ProcessExitAdapter",
    "RuntimeLoopClient",
]
