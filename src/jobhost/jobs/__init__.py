"""Bundled jobs. Real deployments point ``JOBHOST_JOB`` at their own module."""
