# ref_watcher/store.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
In-memory document store and its JSON materialization.

The store maps source paths to SourceRecords. It is shared between the
deferred extraction tasks, so every access goes through one lock; the
lock is also held while materializing so that a snapshot on disk is
never a mix of two puts.

Output modes:
- aggregate: one file (reference.json) holding every path
- mirror: references/<relative path>.json per source file, laid out like
  the watched tree
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Optional

from .config import OutputMode
from .errors import MaterializationError
from .records import SourceRecord

logger = logging.getLogger(__name__)


class DocumentStore:
    """Path -> SourceRecord mapping with JSON output.

    Records are replaced wholesale by put(); there is no delete, so a path
    that stops parsing keeps its last good record.
    """

    def __init__(
        self,
        root: Path,
        mode: OutputMode = OutputMode.AGGREGATE,
        aggregate_file: Path = Path("reference.json"),
        mirror_dir: Path = Path("references"),
    ):
        """Initialize an empty store.

        Args:
            root: Watched root; mirror paths are computed relative to it.
            mode: Aggregate or mirror output.
            aggregate_file: Target file in aggregate mode.
            mirror_dir: Target directory in mirror mode.
        """
        self.root = Path(root)
        self.mode = mode
        self.aggregate_file = Path(aggregate_file)
        self.mirror_dir = Path(mirror_dir)
        self._records: dict[str, SourceRecord] = {}
        self._lock = threading.RLock()

    def put(self, path: str, record: SourceRecord) -> None:
        """Insert or replace the record for path."""
        with self._lock:
            self._records[path] = record

    def get(self, path: str) -> Optional[SourceRecord]:
        """Current record for path, if any."""
        with self._lock:
            return self._records.get(path)

    def paths(self) -> list[str]:
        """Sorted list of indexed paths."""
        with self._lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._records

    def to_dict(self, paths: Optional[Iterable[str]] = None) -> dict[str, dict]:
        """JSON-ready mapping of path -> record, sorted by path."""
        with self._lock:
            selected = sorted(self._records if paths is None else paths)
            return {
                p: self._records[p].model_dump() for p in selected if p in self._records
            }

    def materialize(self, path: Optional[str] = None) -> None:
        """Write the index to disk.

        In aggregate mode the whole mapping is always written. In mirror
        mode only `path` is written, or every path when it is None.

        Raises:
            MaterializationError: The write failed. In-memory state is
                left untouched.
        """
        with self._lock:
            try:
                if self.mode == OutputMode.MIRROR:
                    targets = self.paths() if path is None else [path]
                    for target in targets:
                        self._write_mirror(target)
                else:
                    _write_json(self.aggregate_file, self.to_dict())
            except (OSError, TypeError, ValueError) as e:
                raise MaterializationError(f"Failed to write index: {e}") from e

    def mirror_path(self, path: str) -> Optional[Path]:
        """JSON file for a source path in mirror mode (None if outside root)."""
        rel = os.path.relpath(os.path.abspath(path), os.path.abspath(self.root))
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        return self.mirror_dir / Path(rel).with_suffix(".json")

    def _write_mirror(self, path: str) -> None:
        target = self.mirror_path(path)
        if target is None:
            logger.warning(f"Not mirroring {path}: outside {self.root}")
            return
        _write_json(target, self.to_dict([path]))


def _write_json(target: Path, data: dict) -> None:
    """Write data as 2-space indented UTF-8 JSON, replacing target atomically."""
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(target.name + ".tmp")  # see WatcherConfig.output_files
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp, target)
