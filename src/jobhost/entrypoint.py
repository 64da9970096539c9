"""Process entrypoint: detect the deployment mode once and run the job.

::

    settings + logging
          │
    detect_mode()  ── CUSTOM_RUNTIME ──────────▶ RuntimeLoopClient.run()   (until signal / fatal)
          │
          └────────── ORCHESTRATED_OR_LOCAL ──▶ ProcessExitAdapter.run_once()  (exit 0 / 1)

Fatal errors (bad configuration, unusable control plane) are logged and end
the process with status 1 so the host can restart it.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Mapping, NoReturn

from jobhost.core.errors import JobhostError
from jobhost.core.logging import configure_logging, get_logger
from jobhost.core.settings import JobhostSettings
from jobhost.execution.environment import EnvironmentMode, detect_mode, runtime_api_address
from jobhost.execution.job import JobExecutor, load_job
from jobhost.execution.process_exit import EXIT_FAILURE, EXIT_SUCCESS, ProcessExitAdapter
from jobhost.execution.runtime_loop import RuntimeLoopClient

logger = get_logger(__name__)


async def serve(client: RuntimeLoopClient) -> None:
    """Run the loop with SIGINT/SIGTERM wired to ``client.stop``."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, client.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            pass  # Unsupported platform or not in main thread

    try:
        await client.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def build_runtime_client(
    executor: JobExecutor,
    settings: JobhostSettings,
    environ: Mapping[str, str] | None = None,
) -> RuntimeLoopClient:
    return RuntimeLoopClient(
        runtime_api_address(environ),
        executor,
        limit=settings.limit,
        api_version=settings.api_version,
        report_timeout=settings.report_timeout,
    )


def main(
    settings: JobhostSettings | None = None,
    environ: Mapping[str, str] | None = None,
) -> NoReturn:
    """Run the configured job in whichever mode the host calls for."""
    settings = settings or JobhostSettings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    mode = detect_mode(environ)
    logger.info("jobhost.starting", mode=mode.value, job=settings.job, limit=settings.limit)

    try:
        executor = JobExecutor(load_job(settings.job))
        if mode is EnvironmentMode.CUSTOM_RUNTIME:
            asyncio.run(serve(build_runtime_client(executor, settings, environ)))
            raise SystemExit(EXIT_SUCCESS)
        ProcessExitAdapter(executor).run_once(settings.limit)
    except JobhostError as exc:
        logger.critical("runtime.fatal", mode=mode.value, **exc.to_dict())
        raise SystemExit(EXIT_FAILURE) from exc
