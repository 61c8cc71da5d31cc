# ref_watcher/errors.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Error taxonomy for ref-watcher.

Only FatalInitError ends the process. Everything else is isolated to the
single path or event that raised it and is logged by the watch loop.
"""


class RefWatcherError(Exception):
    """Base class for ref-watcher errors."""


class FatalInitError(RefWatcherError):
    """A resource required before the event loop could not be acquired."""


class RetryableError(RefWatcherError):
    """Error that indicates the attempt should be retried."""


class NotReadyError(RetryableError):
    """File is empty, missing or unreadable (probably mid-write)."""


class SourceSyntaxError(RetryableError):
    """Parser produced a tree containing syntax errors."""


class RetryExhausted(RefWatcherError):
    """Every attempt of a retry policy failed."""

    def __init__(self, last_error: Exception, attempts: int):
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


class MaterializationError(RefWatcherError):
    """Writing the JSON index to disk failed."""
