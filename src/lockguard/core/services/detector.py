from __future__ import annotations

import logging
import os
from typing import Iterable

from ..domain.enums import LOCKFILE_NAMES, Ecosystem
from ..domain.errors import IoError, NotFoundError
from ..domain.models import DetectedLockfile

logger = logging.getLogger(__name__)


IGNORED_DIRS = frozenset(
    {
        "node_modules",
        "vendor",
        ".git",
        "target",
        "Pods",
        ".venv",
        "venv",
        "__pycache__",
        "build",
        "dist",
        ".dart_tool",
        "deps",
        "_build",
    }
)

FILENAME_TO_ECOSYSTEM: dict[str, Ecosystem] = {
    name: eco for eco, names in LOCKFILE_NAMES.items() for name in names
}


class LockfileDetector:
    """Find recognized lockfiles under a directory.

    ``max_depth`` 0 looks at the root only; 1 (default) also looks at its direct
    sub-directories. Vendored dependency trees are never entered.
    """

    def __init__(self, max_depth: int = 1, ignored_dirs: Iterable[str] = IGNORED_DIRS) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self._max_depth = max_depth
        self._ignored = frozenset(ignored_dirs)

    def detect(self, root: str) -> list[DetectedLockfile]:
        if not os.path.exists(root):
            raise NotFoundError(root, "Path does not exist")
        if not os.path.isdir(root):
            raise NotFoundError(root, "Path is not a directory")

        found: list[DetectedLockfile] = []
        self._walk(root, 0, found)
        if not found:
            raise NotFoundError(root, "No recognized lockfile found")
        found.sort(key=lambda d: d.path)
        logger.debug("Detected %d lockfiles under %s", len(found), root)
        return found

    def _walk(self, directory: str, depth: int, found: list[DetectedLockfile]) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            raise IoError(directory, exc.strerror or str(exc)) from exc

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if depth < self._max_depth and entry.name not in self._ignored:
                    self._walk(entry.path, depth + 1, found)
                continue
            eco = FILENAME_TO_ECOSYSTEM.get(entry.name)
            if eco is not None and entry.is_file():
                found.append(DetectedLockfile(ecosystem=eco, path=entry.path))
