from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

_logger = logging.getLogger(__name__)

EXECUTABLE_NAMES = ("python3", "python")

# Typical python-build-standalone layouts, probed before the full search.
FAST_PATHS = (
    "python/install/bin/python3",
    "python/install/bin/python",
    "install/bin/python3",
    "install/bin/python",
    "bin/python3",
    "bin/python",
    "python3",
    "python",
)


def is_executable(path: Path) -> bool:
    """Regular file (symlinks followed) with the execute bit for this user."""
    return path.is_file() and os.access(path, os.X_OK)


def _probe_fast_paths(
    root: Path, names: Sequence[str], accept: Callable[[Path], bool]
) -> Optional[Path]:
    for rel in FAST_PATHS:
        candidate = root / rel
        if candidate.name in names and accept(candidate):
            return candidate
    return None


def _list_dir(directory: Path) -> List[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as e:
        _logger.debug("Cannot list %s: %s", directory, e)
        return []


def find_executable(
    root: Path,
    *,
    names: Sequence[str] = EXECUTABLE_NAMES,
    use_fast_paths: bool = True,
    require_executable: bool = True,
) -> Optional[Path]:
    """Find an interpreter named one of ``names`` under ``root``.

    Each directory's own files are checked before any of its subdirectories
    are entered; subdirectories are visited in sorted listing order. Only
    executable regular files count: a same-named file without the execute
    bit is ignored unless ``require_executable`` is False. Returns None when
    the tree holds no match.
    """
    root = Path(root)
    if not root.is_dir():
        return None

    accept = is_executable if require_executable else Path.is_file

    if use_fast_paths:
        hit = _probe_fast_paths(root, names, accept)
        if hit is not None:
            _logger.debug("Found interpreter at known layout path %s", hit)
            return hit

    stack: List[Path] = [root]
    visited: Set[Path] = set()
    while stack:
        directory = stack.pop()
        key = directory.resolve()
        if key in visited:
            continue
        visited.add(key)

        children = _list_dir(directory)
        for child in children:
            if child.name in names and accept(child):
                _logger.debug("Found interpreter %s", child)
                return child

        subdirs = [c for c in children if c.is_dir()]
        # reversed so the first listed subdirectory is searched first
        stack.extend(reversed(subdirs))

    return None
