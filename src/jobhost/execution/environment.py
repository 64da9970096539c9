"""Deployment mode detection.

The serverless host injects the control-plane address as
``AWS_LAMBDA_RUNTIME_API``; nothing else sets it. Its presence is therefore
the only signal needed to tell a custom runtime from a container or a
developer machine. The mode is computed once at startup and passed
explicitly to whichever runner is built.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Mapping

from jobhost.core.errors import ConfigError

RUNTIME_API_ENV = "AWS_LAMBDA_RUNTIME_API"


class EnvironmentMode(str, Enum):
    CUSTOM_RUNTIME = "custom_runtime"
    ORCHESTRATED_OR_LOCAL = "orchestrated_or_local"


def detect_mode(environ: Mapping[str, str] | None = None) -> EnvironmentMode:
    """Classify the host. Reads ``os.environ`` unless a mapping is given."""
    env = os.environ if environ is None else environ
    if env.get(RUNTIME_API_ENV):
        return EnvironmentMode.CUSTOM_RUNTIME
    return EnvironmentMode.ORCHESTRATED_OR_LOCAL


def runtime_api_address(environ: Mapping[str, str] | None = None) -> str:
    """Return the ``host:port`` of the control plane."""
    env = os.environ if environ is None else environ
    address = env.get(RUNTIME_API_ENV)
    if not address:
        raise ConfigError(f"{RUNTIME_API_ENV} is not set")
    return address
