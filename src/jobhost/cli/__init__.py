"""jobhost command-line interface."""

from jobhost.cli.app import app

__all__ = ["app"]
