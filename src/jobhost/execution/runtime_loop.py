"""Custom runtime loop: poll the control plane, run the job, report back.

The serverless host bills and retries the init phase differently from the
invocation phase: a process that fails before its first poll is throttled
and re-initialised by the host. The job therefore only ever runs after a
successful ``GET .../invocation/next``, inside the invocation phase, and a
failing job is reported through the error endpoint instead of crashing the
process.

STATE MACHINE
─────────────
::

    ┌──────────────┐  GET /next   ┌───────────┐  execute()  ┌───────────┐
    │ AWAITING_NEXT│─────────────▶│ EXECUTING │────────────▶│ REPORTING │
    └──────────────┘              └───────────┘             └───────────┘
          ▲   │  transport error / bad response                   │
          │   └──────────────────────────────▶ FATAL (raised)      │
          │                                                        │
          └──────────── POST /response or /error ──────────────────┘

    stop():  AWAITING_NEXT ──▶ STOPPED immediately (poll cancelled);
             EXECUTING/REPORTING finish the invocation first.

Exactly one invocation is in flight at a time: the next poll starts only
after the previous report returned (or failed).

Example::

    client = RuntimeLoopClient("127.0.0.1:9001", JobExecutor(job), limit=1000)
    await client.run()   # returns after stop(), raises on fatal errors
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx

from jobhost.core.errors import ConfigError, JobhostError, ProtocolError, TransportError
from jobhost.core.logging import LogContext, get_logger
from jobhost.execution.invocation import (
    REQUEST_ID_HEADER,
    Invocation,
    InvocationOutcome,
    LoopState,
    LoopStats,
)
from jobhost.execution.job import JobExecutor

logger = get_logger(__name__)

DEFAULT_API_VERSION = "2018-06-01"


class RuntimeLoopClient:
    """Runtime API client driving the poll → execute → report cycle.

    Parameters
    ----------
    address : str
        ``host:port`` of the control plane.
    executor : JobExecutor
        Runs the job for each invocation.
    limit : int | None
        Work cap passed to the job on every invocation.
    report_timeout : float
        Seconds allowed for each report call. Polls never time out.
    client : httpx.AsyncClient | None
        Injected HTTP client, left open when the loop ends. When omitted
        the loop creates (and closes) its own.
    transport : httpx.AsyncBaseTransport | None
        Transport for the client the loop creates itself.
    """

    def __init__(
        self,
        address: str,
        executor: JobExecutor,
        *,
        limit: int | None = None,
        api_version: str = DEFAULT_API_VERSION,
        report_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = f"http://{address}/{api_version}/runtime/invocation"
        self._executor = executor
        self._limit = limit
        self._report_timeout = report_timeout
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._stopping = False
        self._task: asyncio.Task[Any] | None = None

        self.state = LoopState.AWAITING_NEXT
        self.stats = LoopStats()

    @property
    def next_url(self) -> str:
        return f"{self._base_url}/next"

    def report_url(self, request_id: str, endpoint: str) -> str:
        return f"{self._base_url}/{quote(request_id, safe='')}/{endpoint}"

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        """Loop until :meth:`stop` is called.

        Raises:
            ConfigError: The runtime API address is not a valid host:port.
            ProtocolError: The poll response was unusable.
            TransportError: The control plane could not be reached.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport)
        self._task = asyncio.current_task()
        logger.info("runtime.started", url=self._base_url, limit=self._limit)

        try:
            while not self._stopping:
                self.state = LoopState.AWAITING_NEXT
                try:
                    invocation = await self.next_invocation()
                except asyncio.CancelledError:
                    if not self._stopping:
                        raise
                    if self._task is not None:
                        self._task.uncancel()
                    break
                except JobhostError:
                    self.state = LoopState.FATAL
                    raise
                await self.handle(invocation)
            self.state = LoopState.STOPPED
        finally:
            self._task = None
            if self._owns_client and self._client is not None:
                await self._client.aclose()
                self._client = None

        logger.info("runtime.stopped", **self.stats.to_dict())

    def stop(self) -> None:
        """Request shutdown.

        A pending long poll is cancelled right away; an invocation that is
        executing or being reported is completed first.
        """
        if self._stopping:
            return
        self._stopping = True
        logger.info("runtime.stopping", state=self.state.value)
        if self.state is LoopState.AWAITING_NEXT and self._task is not None and not self._task.done():
            self._task.cancel()

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    async def next_invocation(self) -> Invocation:
        """Block on the long poll until the control plane hands out work."""
        assert self._client is not None
        url = self.next_url
        try:
            response = await self._client.get(url, timeout=None)
        except httpx.InvalidURL as exc:
            raise ConfigError(
                f"Runtime API address does not form a valid URL: {exc}", cause=exc
            ).with_context(url=url) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Polling the control plane failed: {exc}", phase="poll", cause=exc
            ).with_context(url=url) from exc

        if not response.is_success:
            raise ProtocolError(
                f"Control plane answered the poll with HTTP {response.status_code}"
            ).with_context(url=url, http_status=response.status_code)

        request_id = response.headers.get(REQUEST_ID_HEADER)
        if not request_id:
            raise ProtocolError(
                f"Poll response is missing the {REQUEST_ID_HEADER} header"
            ).with_context(url=url, http_status=response.status_code)

        invocation = Invocation.from_headers(request_id, response.headers, response.content)
        logger.info("runtime.polled", **invocation.log_fields())
        return invocation

    async def handle(self, invocation: Invocation) -> InvocationOutcome:
        """Execute one invocation and report its outcome."""
        async with LogContext(request_id=invocation.request_id):
            self.state = LoopState.EXECUTING
            result = await self._executor.execute(self._limit)

            self.state = LoopState.REPORTING
            if result.is_ok():
                outcome = InvocationOutcome.SUCCEEDED
                await self._report(invocation, "response", {"success": True})
            else:
                outcome = InvocationOutcome.FAILED
                await self._report(invocation, "error", result.error.to_report())

            self.stats.record(outcome)
        return outcome

    async def _report(self, invocation: Invocation, endpoint: str, body: dict[str, Any]) -> bool:
        """POST an outcome. Failures are logged, never retried or raised."""
        assert self._client is not None
        url = self.report_url(invocation.request_id, endpoint)
        try:
            response = await self._client.post(url, json=body, timeout=self._report_timeout)
        except httpx.HTTPError as exc:
            self._report_failed(
                TransportError(f"Report failed: {exc}", phase="report", cause=exc).with_context(
                    request_id=invocation.request_id, url=url
                )
            )
            return False

        if not response.is_success:
            self._report_failed(
                TransportError(
                    f"Report rejected with HTTP {response.status_code}", phase="report"
                ).with_context(request_id=invocation.request_id, url=url, http_status=response.status_code)
            )
            return False

        logger.info("runtime.reported", endpoint=endpoint, status=response.status_code)
        return True

    def _report_failed(self, error: TransportError) -> None:
        self.stats.report_failures += 1
        logger.warning("runtime.report_failed", **error.to_dict())
