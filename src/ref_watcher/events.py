# ref_watcher/events.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Filesystem change events as seen by the watch loop.

watchdog events are translated into ChangeEvent so that the filter,
extractor and event log never depend on the notification library.
"""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from watchdog.events import (
    FileSystemEvent,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)


class Operation(str, Enum):
    """Kind of change reported for a path."""

    CREATE = "CREATE"
    WRITE = "WRITE"
    RENAME = "RENAME"
    REMOVE = "REMOVE"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change notification.

    Attributes:
        path: Normalized path of the changed file or directory.
        operation: What happened to it.
        observed_at: Wall-clock time (Unix seconds) the event was received.
        is_directory: True when the path is a directory.
    """

    path: str
    operation: Operation
    observed_at: float = field(default_factory=time.time)
    is_directory: bool = False

    @property
    def key(self) -> tuple[str, Operation]:
        """Debounce/dedup key for this event."""
        return (self.path, self.operation)


def from_watchdog(event: FileSystemEvent) -> list[ChangeEvent]:
    """Translate a watchdog event into zero or more ChangeEvents.

    A move yields RENAME for the old path and CREATE for the new one.
    Open/close and other notifications are dropped.
    """
    now = time.time()
    src = os.path.normpath(_as_str(event.src_path))
    is_dir = event.is_directory

    if event.event_type == EVENT_TYPE_CREATED:
        return [ChangeEvent(src, Operation.CREATE, now, is_dir)]
    if event.event_type == EVENT_TYPE_MODIFIED:
        return [ChangeEvent(src, Operation.WRITE, now, is_dir)]
    if event.event_type == EVENT_TYPE_DELETED:
        return [ChangeEvent(src, Operation.REMOVE, now, is_dir)]
    if event.event_type == EVENT_TYPE_MOVED:
        dest = _dest_path(event)
        events = [ChangeEvent(src, Operation.RENAME, now, is_dir)]
        if dest:
            events.append(ChangeEvent(dest, Operation.CREATE, now, is_dir))
        return events
    return []


def _dest_path(event: FileSystemEvent) -> Optional[str]:
    dest = getattr(event, "dest_path", "")
    if not dest:
        return None
    return os.path.normpath(_as_str(dest))


def _as_str(path) -> str:
    if isinstance(path, bytes):
        return os.fsdecode(path)
    return str(path)
