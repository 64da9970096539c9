"""Managed-runtime handler.

When the function is deployed on a managed Python runtime instead of as a
custom runtime, the platform polls and reports on its own and calls
``jobhost.handler.handler`` once per event. This is the single-iteration
case of the runtime loop: run the job once, return on success, raise the
``JobError`` on failure so the platform records it.
"""

from __future__ import annotations

import asyncio
from typing import Any

from jobhost.core.logging import LogContext, get_logger
from jobhost.core.settings import JobhostSettings
from jobhost.execution.job import JobExecutor, load_job

logger = get_logger(__name__)


def handler(event: Any, context: Any = None, *, settings: JobhostSettings | None = None) -> dict[str, Any]:
    settings = settings or JobhostSettings()
    executor = JobExecutor(load_job(settings.job))
    request_id = getattr(context, "aws_request_id", None)

    with LogContext(request_id=request_id):
        result = asyncio.run(executor.execute(settings.limit))

    # Raises the JobError for the platform to report.
    result.unwrap()
    return {"statusCode": 200, "body": "Done"}
