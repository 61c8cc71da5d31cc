# ref_watcher/__init__.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Incremental reference indexer for Go source trees.

Watches a directory tree, re-parses changed Go files and keeps a JSON
index of packages, imports, functions and top-level variables.

Usage:
    python -m ref_watcher ./proj --mode mirror

Components:
    - WatcherConfig: Configuration model (YAML or CLI)
    - FileWatcher: Watch loop owning the observer, log and executor
    - ImmediateDedup / WindowedDebounce: Event suppression policies
    - SourceExtractor: Retry-tolerant file -> SourceRecord extraction
    - DocumentStore: Locked path -> record mapping with JSON output
    - SourceRecord / FunctionRecord / VariableRecord: Index models
"""

from .config import DedupPolicy, OutputMode, RetryConfig, WatcherConfig
from .debounce import ImmediateDedup, WindowedDebounce
from .extractor import ParseFailure, SourceExtractor
from .records import FunctionRecord, SourceRecord, VariableRecord
from .store import DocumentStore
from .watcher import FileWatcher

__all__ = [
    # Config
    "DedupPolicy",
    "OutputMode",
    "RetryConfig",
    "WatcherConfig",
    # Pipeline
    "FileWatcher",
    "ImmediateDedup",
    "WindowedDebounce",
    "SourceExtractor",
    "ParseFailure",
    "DocumentStore",
    # Records
    "SourceRecord",
    "FunctionRecord",
    "VariableRecord",
]
