"""Example job: list up to ``limit`` files under a directory.

Stands in for a real job module so the runner works out of the box. The
directory comes from ``JOBHOST_EXAMPLE_ROOT`` (default: current directory).
"""

from __future__ import annotations

import itertools
import os
from pathlib import Path

from jobhost.core.logging import get_logger

logger = get_logger(__name__)


def iter_files(root: Path):
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in sorted(filenames):
            yield Path(dirpath) / name


def main_example(limit: int | None = None, root: Path | None = None) -> int:
    """Look at no more than ``limit`` files (all of them when None)."""
    root = root or Path(os.environ.get("JOBHOST_EXAMPLE_ROOT", "."))
    if not root.is_dir():
        raise FileNotFoundError(f"Example root {str(root)!r} is not a directory")

    seen = 0
    for path in itertools.islice(iter_files(root), limit):
        logger.debug("example.file", path=str(path))
        seen += 1

    logger.info("example.done", root=str(root), files=seen, limit=limit)
    return seen
