"""
Tests for the custom runtime loop.

Each test scripts a fake control plane; when the script runs out the next
poll fails at the transport level, which ends ``run()`` with a fatal
``TransportError``. That makes "and then the loop polls again" observable.
"""

from __future__ import annotations

import asyncio
import sys
from unittest.mock import patch

import httpx
import pytest
import structlog
from structlog.testing import capture_logs

from jobhost.core.errors import ConfigError, ProtocolError, TransportError
from jobhost.execution.invocation import InvocationOutcome, LoopState
from jobhost.execution.job import JobExecutor
from jobhost.execution.runtime_loop import RuntimeLoopClient
from tests._support.control_plane import NEXT_PATH, invocation_path

ADDRESS = "127.0.0.1:9001"
ABC123 = {"lambda-runtime-aws-request-id": "abc123"}


def _ok_job(calls: list):
    def job(limit):
        calls.append(limit)

    return job


def _failing_job(exc: BaseException):
    def job(limit):
        raise exc

    return job


async def _run_until_fatal(client: RuntimeLoopClient) -> None:
    with pytest.raises(TransportError) as excinfo:
        await client.run()
    assert excinfo.value.phase == "poll"
    assert excinfo.value.fatal is True


# ── Success path ────────────────────────────────────────────────────────


class TestSuccessfulInvocation:
    @pytest.mark.asyncio
    async def test_reports_response_then_polls_again(self, control_plane):
        plane = control_plane([ABC123])
        calls: list = []
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job(calls)), client=http)
            await _run_until_fatal(client)

        assert plane.calls == [
            ("GET", NEXT_PATH),
            ("POST", invocation_path("abc123", "response")),
            ("GET", NEXT_PATH),
        ]
        report = plane.reports[0]
        assert str(report.url) == f"http://{ADDRESS}/2018-06-01/runtime/invocation/abc123/response"
        assert plane.body(report) == {"success": True}
        assert calls == [None]

    @pytest.mark.asyncio
    async def test_limit_is_passed_to_every_invocation(self, control_plane):
        plane = control_plane([{"lambda-runtime-aws-request-id": "a"}, {"lambda-runtime-aws-request-id": "b"}])
        calls: list = []
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job(calls)), limit=1000, client=http)
            await _run_until_fatal(client)

        assert calls == [1000, 1000]
        assert client.stats.succeeded == 2

    @pytest.mark.asyncio
    async def test_request_id_is_bound_while_job_runs(self, control_plane):
        seen: list = []

        def job(limit):
            seen.append(structlog.contextvars.get_contextvars().get("request_id"))

        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(job), client=http)
            await _run_until_fatal(client)

        assert seen == ["abc123"]
        assert "request_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_custom_api_version_changes_paths(self, control_plane):
        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(
                ADDRESS, JobExecutor(_ok_job([])), api_version="2099-01-01", client=http
            )
            await _run_until_fatal(client)

        assert plane.calls[0] == ("GET", "/2099-01-01/runtime/invocation/next")
        assert plane.calls[1] == ("POST", "/2099-01-01/runtime/invocation/abc123/response")


# ── Failure path ────────────────────────────────────────────────────────


class TestFailedInvocation:
    @pytest.mark.asyncio
    async def test_reports_error_then_polls_again(self, control_plane):
        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_failing_job(Exception("bad input"))), client=http)
            await _run_until_fatal(client)

        assert plane.calls == [
            ("GET", NEXT_PATH),
            ("POST", invocation_path("abc123", "error")),
            ("GET", NEXT_PATH),
        ]
        assert plane.body(plane.reports[0]) == {"errorMessage": "bad input", "errorType": "JobError"}
        assert client.stats.failed == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc",
        [ValueError("v"), KeyError("k"), RuntimeError("r"), OSError("o"), ZeroDivisionError("z")],
    )
    async def test_error_type_is_always_job_error(self, control_plane, exc):
        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_failing_job(exc)), client=http)
            await _run_until_fatal(client)

        assert plane.body(plane.reports[0])["errorType"] == "JobError"

    @pytest.mark.asyncio
    async def test_empty_message_falls_back_to_exception_name(self, control_plane):
        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_failing_job(RuntimeError())), client=http)
            await _run_until_fatal(client)

        assert plane.body(plane.reports[0])["errorMessage"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_job_calling_sys_exit_is_reported_and_loop_continues(self, control_plane):
        def job(limit):
            sys.exit(1)

        plane = control_plane([ABC123, {"lambda-runtime-aws-request-id": "def456"}])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(job), client=http)
            await _run_until_fatal(client)

        assert plane.calls == [
            ("GET", NEXT_PATH),
            ("POST", invocation_path("abc123", "error")),
            ("GET", NEXT_PATH),
            ("POST", invocation_path("def456", "error")),
            ("GET", NEXT_PATH),
        ]
        assert plane.body(plane.reports[0]) == {"errorMessage": "1", "errorType": "JobError"}
        assert client.stats.failed == 2

    @pytest.mark.asyncio
    async def test_exactly_one_report_per_invocation(self, control_plane):
        ids = ["r1", "r2", "r3"]
        plane = control_plane([{"lambda-runtime-aws-request-id": i} for i in ids])
        outcomes = iter([None, Exception("boom"), None])

        def job(limit):
            exc = next(outcomes)
            if exc is not None:
                raise exc

        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(job), client=http)
            await _run_until_fatal(client)

        assert [m for m, _ in plane.calls] == ["GET", "POST", "GET", "POST", "GET", "POST", "GET"]
        assert [r.url.path for r in plane.reports] == [
            invocation_path("r1", "response"),
            invocation_path("r2", "error"),
            invocation_path("r3", "response"),
        ]
        assert client.stats.to_dict() == {
            "invocations": 3,
            "succeeded": 2,
            "failed": 1,
            "report_failures": 0,
        }


# ── Reporting failures ──────────────────────────────────────────────────


class TestReportFailures:
    @pytest.mark.asyncio
    async def test_rejected_report_does_not_stop_loop(self, control_plane):
        plane = control_plane([ABC123, {"lambda-runtime-aws-request-id": "def456"}], report_status=500)
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            await _run_until_fatal(client)

        assert len(plane.reports) == 2
        assert client.stats.report_failures == 2
        assert client.stats.succeeded == 2

    @pytest.mark.asyncio
    async def test_report_transport_error_is_not_retried(self, control_plane):
        plane = control_plane([ABC123], report_error=httpx.ReadTimeout("slow"))
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            with capture_logs() as logs:
                await _run_until_fatal(client)

        assert plane.calls == [
            ("GET", NEXT_PATH),
            ("POST", invocation_path("abc123", "response")),
            ("GET", NEXT_PATH),
        ]
        failed = [e for e in logs if e["event"] == "runtime.report_failed"]
        assert len(failed) == 1
        assert failed[0]["phase"] == "report"
        assert failed[0]["fatal"] is False


# ── Fatal control-plane errors ──────────────────────────────────────────


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_missing_request_id_is_fatal_without_report(self, control_plane):
        calls: list = []
        plane = control_plane([{"content-type": "application/json"}])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job(calls)), client=http)
            with pytest.raises(ProtocolError) as excinfo:
                await client.run()

        assert plane.calls == [("GET", NEXT_PATH)]
        assert plane.reports == []
        assert calls == []
        assert client.state is LoopState.FATAL
        assert excinfo.value.fatal is True

    @pytest.mark.asyncio
    async def test_error_status_on_poll_is_fatal(self, control_plane):
        plane = control_plane([httpx.Response(500, headers=ABC123)])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            with pytest.raises(ProtocolError) as excinfo:
                await client.run()

        assert excinfo.value.context.http_status == 500
        assert plane.reports == []

    @pytest.mark.asyncio
    async def test_unreachable_control_plane_is_fatal(self, control_plane):
        plane = control_plane([])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            await _run_until_fatal(client)

        assert client.state is LoopState.FATAL
        assert client.stats.invocations == 0


# ── Shutdown ────────────────────────────────────────────────────────────


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_during_execution_finishes_report_first(self, control_plane):
        plane = control_plane([ABC123, {"lambda-runtime-aws-request-id": "never"}])
        holder: dict = {}

        def job(limit):
            holder["client"].stop()

        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(job), client=http)
            holder["client"] = client
            await client.run()

        assert plane.calls == [
            ("GET", NEXT_PATH),
            ("POST", invocation_path("abc123", "response")),
        ]
        assert client.state is LoopState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_long_poll(self):
        polled = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            polled.set()
            await asyncio.Event().wait()
            raise AssertionError("unreachable")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            task = asyncio.create_task(client.run())
            await asyncio.wait_for(polled.wait(), timeout=1)
            client.stop()
            await asyncio.wait_for(task, timeout=1)

        assert client.state is LoopState.STOPPED
        assert client.stats.invocations == 0


class TestHandle:
    @pytest.mark.asyncio
    async def test_handle_returns_outcome(self, control_plane):
        plane = control_plane([ABC123])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_failing_job(ValueError("x"))), client=http)
            invocation = await client.next_invocation()
            outcome = await client.handle(invocation)

        assert invocation.request_id == "abc123"
        assert invocation.payload == b'{"source": "test"}'
        assert outcome is InvocationOutcome.FAILED
        assert client.state is LoopState.REPORTING


class TestHttpClientOwnership:
    @pytest.mark.asyncio
    async def test_owned_client_is_closed_after_run(self, control_plane):
        plane = control_plane([ABC123])
        created: list[httpx.AsyncClient] = []
        real_client = httpx.AsyncClient

        def make_client(**kwargs):
            created.append(real_client(**kwargs))
            return created[-1]

        with patch("httpx.AsyncClient", side_effect=make_client):
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), transport=plane.transport())
            await _run_until_fatal(client)

        assert len(created) == 1
        assert created[0].is_closed
        assert plane.reports[0].url.path == invocation_path("abc123", "response")

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self, control_plane):
        plane = control_plane([])
        async with plane.client() as http:
            client = RuntimeLoopClient(ADDRESS, JobExecutor(_ok_job([])), client=http)
            await _run_until_fatal(client)
            assert not http.is_closed

    @pytest.mark.asyncio
    async def test_malformed_address_is_fatal_config_error(self, control_plane):
        plane = control_plane([ABC123])
        calls: list = []
        client = RuntimeLoopClient("127.0.0.1:notaport", JobExecutor(_ok_job(calls)), transport=plane.transport())
        with pytest.raises(ConfigError) as excinfo:
            await client.run()

        assert excinfo.value.fatal is True
        assert client.state is LoopState.FATAL
        assert plane.calls == []
        assert calls == []
