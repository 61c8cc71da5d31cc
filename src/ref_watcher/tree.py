# ref_watcher/tree.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Directory traversal helpers.

walk_directories() produces the flat list of directories the watcher
registers; it knows nothing about the notification library.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


class TreeFilter:
    """Decides which directories belong to the watched tree.

    A directory is skipped when its name is in `exclude_names`, or when it
    is (or lies inside) one of `exclude_paths`, e.g. the service's own
    output directories.
    """

    def __init__(self, exclude_names: Iterable[str] = (), exclude_paths: Iterable[Path] = ()):
        self.exclude_names = set(exclude_names)
        self.exclude_paths = [os.path.abspath(p) for p in exclude_paths]

    def is_excluded(self, path: str) -> bool:
        if os.path.basename(os.path.normpath(path)) in self.exclude_names:
            return True
        absolute = os.path.abspath(path)
        for excluded in self.exclude_paths:
            if absolute == excluded or absolute.startswith(excluded + os.sep):
                return True
        return False


def walk_directories(root: str, tree_filter: TreeFilter) -> list[str]:
    """Every directory under root (root first), parents before children.

    Unreadable directories are logged and skipped.
    """
    directories = []
    for dirpath, dirnames, _ in os.walk(root, onerror=_log_walk_error):
        dirnames[:] = sorted(
            d for d in dirnames if not tree_filter.is_excluded(os.path.join(dirpath, d))
        )
        directories.append(os.path.normpath(dirpath))
    return directories


def iter_files(directories: Iterable[str], extensions: Iterable[str]) -> Iterator[str]:
    """Files directly inside the given directories with a matching suffix."""
    suffixes = tuple(extensions)
    for directory in directories:
        try:
            names = sorted(os.listdir(directory))
        except OSError as e:
            logger.warning(f"Could not list {directory}: {e}")
            continue
        for name in names:
            path = os.path.join(directory, name)
            if name.lower().endswith(suffixes) and os.path.isfile(path):
                yield os.path.normpath(path)


def replicate_tree(root: str, directories: Iterable[str], dest: Path) -> None:
    """Create dest/<relative dir> for every directory under root."""
    for directory in directories:
        rel = os.path.relpath(directory, root)
        target = Path(dest) if rel == os.curdir else Path(dest) / rel
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create mirror directory {target}: {e}")


def _log_walk_error(error: OSError) -> None:
    logger.warning(f"Error accessing path {error.filename!r}: {error}")
