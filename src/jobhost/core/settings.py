"""Runtime settings for jobhost.

``JobhostSettings`` collects everything the entrypoint needs besides the
deployment mode: which job to run, how much work to attempt, logging and
control-plane tuning. Values come from ``JOBHOST_*`` environment variables
or a ``.env`` file and are validated once at startup.

The control-plane address is deliberately not a setting: it is only ever
injected by the serverless host (``AWS_LAMBDA_RUNTIME_API``) and is read by
:mod:`jobhost.execution.environment`.

Examples:
    >>> from jobhost.core.settings import JobhostSettings
    >>> s = JobhostSettings(limit=1000)
    >>> s.limit
    1000

Tags:
    settings, configuration, pydantic, environment, jobhost
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JOB = "jobhost.jobs.example:main_example"


class JobhostSettings(BaseSettings):
    """Settings shared by every entry point.

    Fields
    ──────
    job            : ``module:attr`` target of the job function
    limit          : Cap on items the job processes (None = unbounded)
    log_level      : Structlog log level
    log_json       : Force JSON (True) / console (False) logs, None = auto
    api_version    : Runtime API version path segment
    report_timeout : Seconds allowed for a response/error report call
    """

    model_config = SettingsConfigDict(
        env_prefix="JOBHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Job ──────────────────────────────────────────────────────
    job: str = Field(default=DEFAULT_JOB, description="Job function target")
    limit: int | None = Field(default=None, ge=0, description="Max items per run")

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Control plane ────────────────────────────────────────────
    api_version: str = "2018-06-01"
    report_timeout: float = Field(default=10.0, gt=0)
