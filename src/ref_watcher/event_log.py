# ref_watcher/event_log.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Daily append-only event log.

One line per recorded event: "HH:MM:SS, <path>, <OPERATION>". The file is
logs/file_watcher_logs_<YYYY-MM-DD>.txt, named after the day the watcher
started.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, TextIO

from .errors import FatalInitError
from .events import ChangeEvent

logger = logging.getLogger(__name__)


def log_file_name(day: datetime) -> str:
    return f"file_watcher_logs_{day:%Y-%m-%d}.txt"


def format_entry(event: ChangeEvent) -> str:
    """Render an event as a log line (without newline)."""
    stamp = datetime.fromtimestamp(event.observed_at).strftime("%H:%M:%S")
    return f"{stamp}, {event.path}, {event.operation.value}"


class EventLog:
    """Owns the event log file handle."""

    def __init__(self, log_dir: Path, now: Callable[[], datetime] = datetime.now):
        self.log_dir = Path(log_dir)
        self.path = self.log_dir / log_file_name(now())
        self._file: Optional[TextIO] = None
        self._lock = threading.Lock()

    def open(self) -> None:
        """Create the log directory and open the file for appending.

        Raises:
            FatalInitError: Directory or file could not be created.
        """
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "a", encoding="utf-8", buffering=1)
        except OSError as e:
            raise FatalInitError(f"Cannot open event log {self.path}: {e}") from e

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def record(self, event: ChangeEvent) -> None:
        """Append one line for event. Write errors are logged, not raised."""
        line = format_entry(event)
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.write(line + "\n")
            except OSError as e:
                logger.error(f"Error writing to event log: {e}")

    def close(self) -> None:
        """Close the file. Safe to call more than once."""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
