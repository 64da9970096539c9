"""Single-shot runner for containers, batch orchestrators and local runs.

The exit status is the orchestrator's only success signal: ``0`` when the
job succeeded, ``1`` when it failed. No retries and no HTTP.
"""

from __future__ import annotations

import asyncio
from typing import NoReturn

from jobhost.core.logging import get_logger
from jobhost.execution.job import JobExecutor

logger = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ProcessExitAdapter:
    def __init__(self, executor: JobExecutor) -> None:
        self._executor = executor

    async def run(self, limit: int | None = None) -> int:
        """Execute the job once and return the exit status."""
        result = await self._executor.execute(limit)
        if result.is_ok():
            return EXIT_SUCCESS
        logger.error("process.job_failed", **result.error.to_dict())
        return EXIT_FAILURE

    def run_once(self, limit: int | None = None) -> NoReturn:
        """Execute the job once and terminate the process with its status."""
        raise SystemExit(asyncio.run(self.run(limit)))
