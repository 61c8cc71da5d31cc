# ref_watcher/parsers/__init__.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Language parsers for ref-watcher.

Tree-sitter based parsers that turn source files into SourceRecords.
"""

from .base import BaseParser, sanitize_doc
from .go_parser import GoParser
from .registry import ParserRegistry

__all__ = [
    "BaseParser",
    "GoParser",
    "ParserRegistry",
    "sanitize_doc",
]
