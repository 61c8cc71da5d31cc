# ref_watcher/parsers/registry.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Parser registry mapping file extensions to loaded parsers."""

import logging
import os
from typing import Iterable, Optional

from .base import BaseParser
from .go_parser import GoParser

logger = logging.getLogger(__name__)

PARSER_CLASSES: tuple[type[BaseParser], ...] = (GoParser,)


class ParserRegistry:
    """Registry of source parsers, keyed by file extension.

    Initializes and caches parser instances. Only extensions listed in
    `extensions` are routed to a parser; other files are ignored.
    """

    def __init__(self, extensions: Optional[Iterable[str]] = None):
        """Initialize parser registry and load all available parsers.

        Args:
            extensions: Suffixes to accept (e.g. [".go"]). None accepts
                every suffix a loaded parser declares.
        """
        self._parsers: dict[str, BaseParser] = {}
        wanted = {e.lower() for e in extensions} if extensions is not None else None
        for parser_class in PARSER_CLASSES:
            parser = parser_class()
            if not parser.is_available():
                logger.warning(f"{parser_class.__name__} loaded but tree-sitter not available")
                continue
            for ext in parser.extensions:
                if wanted is None or ext in wanted:
                    self._parsers[ext] = parser
        if wanted:
            for ext in sorted(wanted - set(self._parsers)):
                logger.warning(f"No parser available for {ext} files")

    def get_parser(self, path: str) -> Optional[BaseParser]:
        """Get the parser responsible for a file path, if any."""
        return self._parsers.get(os.path.splitext(path)[1].lower())

    def handles(self, path: str) -> bool:
        """True if the path has an extension with a loaded parser."""
        return self.get_parser(path) is not None

    def list_extensions(self) -> list[str]:
        """Sorted list of handled extensions."""
        return sorted(self._parsers)

    def __repr__(self) -> str:
        return f"ParserRegistry({', '.join(self.list_extensions())})"
