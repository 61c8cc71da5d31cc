# ref_watcher/extractor.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Source extraction with tolerance for half-written files.

A change notification often arrives while the writer still has the file
open: the file may be empty, truncated, or temporarily missing. The
extractor treats those states as "not ready yet" and retries through a
RetryPolicy before reporting a ParseFailure.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import NotReadyError, RetryExhausted
from .parsers import ParserRegistry
from .records import SourceRecord
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseFailure:
    """Extraction gave up on a path.

    Attributes:
        path: The file that could not be indexed.
        error: The error raised by the last attempt.
        attempts: How many attempts were made.
    """

    path: str
    error: Exception
    attempts: int

    def __str__(self) -> str:
        return f"{self.path}: {self.error} (after {self.attempts} attempts)"


ExtractResult = Union[SourceRecord, ParseFailure]


class SourceExtractor:
    """Reads a file and turns it into a SourceRecord.

    Retries on NotReadyError (empty/unreadable) and SourceSyntaxError
    (a partial write usually looks like broken syntax).
    """

    def __init__(
        self,
        registry: ParserRegistry,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()

    def handles(self, path: str) -> bool:
        """True if a parser exists for this path's extension."""
        return self.registry.handles(path)

    def extract(self, path: str) -> ExtractResult:
        """Extract a SourceRecord from path.

        Args:
            path: File to parse.

        Returns:
            The record on success, otherwise a ParseFailure carrying the
            last error. Never raises for per-file problems.
        """
        parser = self.registry.get_parser(path)
        if parser is None:
            return ParseFailure(path, NotReadyError(f"no parser for {path}"), 0)

        def attempt() -> SourceRecord:
            return parser.parse_record(self._read(path))

        try:
            return self.retry_policy.run(attempt)
        except RetryExhausted as e:
            return ParseFailure(path, e.last_error, e.attempts)

    def _read(self, path: str) -> bytes:
        try:
            content = Path(path).read_bytes()
        except OSError as e:
            raise NotReadyError(f"cannot read {path}: {e}") from e
        if not content:
            raise NotReadyError(f"{path} is empty")
        return content
