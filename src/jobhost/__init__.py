"""
jobhost - run one job identically under a serverless custom runtime,
a container orchestrator, or a developer machine.
"""

__version__ = "0.1.0"
