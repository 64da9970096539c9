"""Job executor: the adapter around the opaque job function.

The job is any callable taking a single ``limit`` argument (an integer cap
on items processed, or ``None`` for unbounded). It may be a plain function
or a coroutine function and signals failure by raising::

    def main_example(limit: int | None) -> None: ...
    async def main_example(limit: int | None) -> None: ...

:class:`JobExecutor` has two layers:

- ``run()`` logs start/success/failure markers and re-raises failures, so
  callers can choose their own reporting policy.
- ``execute()`` is the failure boundary: it turns anything the job raises,
  ``SystemExit`` included, into ``Err(JobError)``. Cancellation and
  ``KeyboardInterrupt`` still propagate. The runtime loop and the
  process-exit adapter both call it.

Example::

    executor = JobExecutor(load_job("myjobs.scan:main"))
    result = await executor.execute(limit=1000)
    if result.is_err():
        ...
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from jobhost.core.errors import ConfigError, JobError
from jobhost.core.logging import get_logger
from jobhost.core.result import Err, Ok, Result

logger = get_logger(__name__)

JobResult = Result[None]

# Interruptions of the runner itself; everything else raised by a job body,
# including SystemExit, is a job failure.
_PROPAGATE = (asyncio.CancelledError, KeyboardInterrupt)


@runtime_checkable
class JobFunction(Protocol):
    """A job body: ``run_job(limit)``; may return an awaitable."""

    def __call__(self, limit: int | None) -> None | Awaitable[None]: ...


def load_job(target: str) -> JobFunction:
    """Resolve a ``"package.module:attr"`` target to a job callable.

    Raises:
        ConfigError: If the target is malformed, cannot be imported, or
            does not name a callable.
    """
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Job target must look like 'module:function', got {target!r}")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import job module {module_name!r}", cause=exc) from exc

    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise ConfigError(f"Job target {target!r} has no attribute {part!r}", cause=exc) from exc

    if not callable(obj):
        raise ConfigError(f"Job target {target!r} is not callable")
    return obj


def _is_async(fn: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(fn):
        return True
    call = getattr(fn, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


class JobExecutor:
    """Stateless adapter that runs the job with a bounded work limit."""

    def __init__(self, job: JobFunction) -> None:
        self._job = job

    @property
    def job_name(self) -> str:
        return getattr(self._job, "__qualname__", type(self._job).__name__)

    async def run(self, limit: int | None = None) -> None:
        """Run the job once. Failures are logged and re-raised."""
        logger.info("job.started", job=self.job_name, limit=limit)
        try:
            if _is_async(self._job):
                await self._job(limit)
            else:
                outcome = await asyncio.to_thread(self._job, limit)
                if inspect.isawaitable(outcome):
                    await outcome
        except _PROPAGATE:
            raise
        except BaseException as exc:
            logger.error(
                "job.failed",
                job=self.job_name,
                error=str(exc),
                kind=type(exc).__name__,
                exc_info=True,
            )
            raise
        logger.info("job.succeeded", job=self.job_name)

    async def execute(self, limit: int | None = None) -> JobResult:
        """Run the job once and return its outcome instead of raising."""
        try:
            await self.run(limit)
        except _PROPAGATE:
            raise
        except BaseException as exc:
            return Err(JobError.from_exception(exc))
        return Ok(None)
