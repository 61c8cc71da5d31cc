# ref_watcher/config.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Configuration models for the ref-watcher service.

Defines the structure of the optional YAML configuration file. Values
given on the command line override the file.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, field_validator

from .retry import RetryPolicy


class DedupPolicy(str, Enum):
    """How repeated notifications for the same path are suppressed."""

    IMMEDIATE = "immediate"  # drop an event equal to the previous one
    WINDOWED = "windowed"  # run once per quiescence window, first event wins


class OutputMode(str, Enum):
    """Where the index is written."""

    AGGREGATE = "aggregate"  # single reference.json
    MIRROR = "mirror"  # references/<relative path>.json


class RetryConfig(BaseModel):
    """Retry settings for reading half-written files.

    Attributes:
        max_attempts: Total parse attempts per event.
        delay_ms: Wait between attempts.
        backoff: Delay multiplier after each failure (1.0 = fixed).
    """

    max_attempts: int = 3
    delay_ms: int = 50
    backoff: float = 1.0

    def policy(self) -> RetryPolicy:
        """Build a RetryPolicy from these settings."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            delay=self.delay_ms / 1000.0,
            backoff=self.backoff,
        )


class WatcherConfig(BaseModel):
    """Configuration for a watched source tree.

    Attributes:
        root: Directory to watch (recursively).
        extensions: File suffixes to index.
        dedup_policy: Duplicate suppression policy.
        debounce_ms: Quiescence window for the windowed policy.
        output_mode: Aggregate file or mirrored per-file JSON.
        aggregate_file: Output file in aggregate mode.
        mirror_dir: Output directory in mirror mode.
        log_dir: Directory for the daily event log.
        retry: Parse retry settings.
        initial_scan: Index every matching file before watching.
        watch_new_directories: Register directories created after startup.
        exclude_dirs: Directory names never watched or scanned.
        workers: Threads used for extraction.

    Example YAML:
        root: ./proj
        dedup_policy: windowed
        debounce_ms: 100
        output_mode: mirror
        exclude_dirs: [.git, vendor]
    """

    root: Path
    extensions: list[str] = [".go"]
    dedup_policy: DedupPolicy = DedupPolicy.WINDOWED
    debounce_ms: int = 100
    output_mode: OutputMode = OutputMode.AGGREGATE
    aggregate_file: Path = Path("reference.json")
    mirror_dir: Path = Path("references")
    log_dir: Path = Path("logs")
    retry: RetryConfig = RetryConfig()
    initial_scan: bool = True
    watch_new_directories: bool = True
    exclude_dirs: list[str] = [".git"]
    workers: int = 4

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in value]

    @field_validator("debounce_ms", "workers")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def output_dirs(self) -> list[Path]:
        """Directories written by the service (skipped when inside root)."""
        dirs = [self.log_dir]
        if self.output_mode == OutputMode.MIRROR:
            dirs.append(self.mirror_dir)
        return dirs

    def output_files(self) -> list[Path]:
        """The aggregate index and its temporary sibling."""
        return [
            self.aggregate_file,
            self.aggregate_file.with_name(self.aggregate_file.name + ".tmp"),
        ]

    @classmethod
    def from_yaml(cls, path: Optional[Path], **overrides: Any) -> "WatcherConfig":
        """Load configuration from YAML, then apply non-None overrides.

        Args:
            path: YAML file, or None to use defaults only.
            **overrides: Field values (usually from the CLI).

        Raises:
            FileNotFoundError: path does not exist.
            yaml.YAMLError: path is not valid YAML.
            pydantic.ValidationError: values are invalid.
        """
        data: dict[str, Any] = {}
        if path is not None:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)
