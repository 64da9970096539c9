"""
Shared pytest fixtures and configuration for jobhost tests.

This module provides:
- Environment isolation (no ambient Runtime API address or JOBHOST_* vars)
- structlog state reset between tests
- A ``control_plane`` factory for the fake Runtime API
"""

import sys
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
import structlog

# Ensure jobhost package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from tests._support import sample_jobs
from tests._support.control_plane import FakeControlPlane


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove host-injected and jobhost env vars so mode detection is predictable."""
    monkeypatch.delenv("AWS_LAMBDA_RUNTIME_API", raising=False)
    for key in ("JOBHOST_JOB", "JOBHOST_LIMIT", "JOBHOST_LOG_LEVEL", "JOBHOST_LOG_JSON",
                "JOBHOST_API_VERSION", "JOBHOST_REPORT_TIMEOUT", "JOBHOST_EXAMPLE_ROOT"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Reset structlog configuration and bound context around each test."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clear_sample_job_calls() -> Generator[None, None, None]:
    sample_jobs.CALLS.clear()
    yield
    sample_jobs.CALLS.clear()


# =============================================================================
# Control Plane
# =============================================================================


@pytest.fixture
def control_plane() -> Callable[..., FakeControlPlane]:
    """
    Factory for a scripted fake control plane.

        plane = control_plane([{"lambda-runtime-aws-request-id": "abc123"}])
    """

    def _make(polls: list[Any], **kwargs: Any) -> FakeControlPlane:
        return FakeControlPlane(polls, **kwargs)

    return _make
