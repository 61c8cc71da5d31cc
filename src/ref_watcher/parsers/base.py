# ref_watcher/parsers/base.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Base parser interface for ref-watcher language parsers.

A parser owns a tree-sitter Parser for one language and turns file
content into a SourceRecord. Reading files and retrying is the job of
SourceExtractor; parsers only ever see bytes.
"""

import re
from abc import ABC, abstractmethod
from typing import Iterator, Optional

from tree_sitter import Node, Tree

from ..errors import SourceSyntaxError
from ..records import SourceRecord

_NEWLINE_RUN = re.compile(r"\s*\n\s*")


def sanitize_doc(text: str) -> str:
    """Trim a doc comment and collapse its line breaks to single spaces."""
    return _NEWLINE_RUN.sub(" ", text.strip())


class BaseParser(ABC):
    """Base class for tree-sitter backed source parsers."""

    #: File suffixes (with dot) this parser handles.
    extensions: tuple[str, ...] = ()

    def __init__(self):
        """Initialize parser with language-specific tree-sitter."""
        self.parser = None
        self.language = None
        self._load_parser()

    @abstractmethod
    def _load_parser(self) -> None:
        """Load the tree-sitter parser for this language."""
        pass

    def is_available(self) -> bool:
        """Check if parser loaded successfully."""
        return self.parser is not None and self.language is not None

    def parse(self, content: bytes) -> Tree:
        """Parse source bytes into a syntax tree.

        Raises:
            SourceSyntaxError: The tree contains error or missing nodes.
        """
        tree = self.parser.parse(content)
        if tree.root_node.has_error:
            line = self._first_error_line(tree.root_node)
            where = f" near line {line}" if line else ""
            raise SourceSyntaxError(f"syntax error{where}")
        return tree

    @abstractmethod
    def build_record(self, tree: Tree) -> SourceRecord:
        """Walk a clean syntax tree and build the file's SourceRecord."""
        pass

    def parse_record(self, content: bytes) -> SourceRecord:
        """Parse content and build its SourceRecord in one step."""
        return self.build_record(self.parse(content))

    def _get_node_text(self, node: Optional[Node]) -> str:
        """Get the decoded text of a node ('' for None)."""
        if node is None:
            return ""
        return node.text.decode("utf-8", errors="replace")

    def _get_node_line(self, node: Node) -> int:
        """Get the 1-indexed line number of a node."""
        return node.start_point[0] + 1

    def _walk_tree(self, node: Node) -> Iterator[Node]:
        """Walk all nodes in a tree using a generator."""
        yield node
        for child in node.children:
            yield from self._walk_tree(child)

    def _first_error_line(self, root: Node) -> Optional[int]:
        for node in self._walk_tree(root):
            if node.type == "ERROR" or node.is_missing:
                return self._get_node_line(node)
        return None
