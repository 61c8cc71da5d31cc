# ref_watcher/parsers/go_parser.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Go parser for ref-watcher using tree-sitter.

Extracts the package clause, imports, function and method signatures and
top-level var/const specs from Go source files. Type nodes are converted
to TypeExpr variants and rendered with type_expr.render().
"""

from typing import Iterator, Optional

import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

from ..records import FunctionRecord, SourceRecord, VariableRecord
from ..type_expr import (
    Chan,
    Func,
    Ident,
    Interface,
    Map,
    Pointer,
    Qualified,
    Slice,
    TypeExpr,
    Unknown,
    Variadic,
    render,
)
from .base import BaseParser, sanitize_doc

# Comment lines that are compiler directives, not documentation
DIRECTIVE_PREFIXES = ("//go:", "//line ", "//export ", "//extern ")

# Statement terminators the grammar may expose as anonymous siblings
TERMINATORS = ("\n", ";", "\x00")


class GoParser(BaseParser):
    """Parser for Go source files."""

    extensions = (".go",)

    def _load_parser(self) -> None:
        """Load Go tree-sitter parser."""
        self.language = Language(tree_sitter_go.language())
        self.parser = Parser(self.language)

    def build_record(self, tree: Tree) -> SourceRecord:
        """Walk top-level declarations of a Go file."""
        package = ""
        imports: list[str] = []
        functions: list[FunctionRecord] = []
        variables: list[VariableRecord] = []
        for node in tree.root_node.named_children:
            if node.type == "package_clause":
                package = self._package_name(node)
            elif node.type == "import_declaration":
                imports.extend(self._import_paths(node))
            elif node.type in ("function_declaration", "method_declaration"):
                functions.append(self._function_record(node))
            elif node.type in ("var_declaration", "const_declaration"):
                variables.extend(self._variable_records(node))
        return SourceRecord(
            package=package, imports=imports, functions=functions, variables=variables
        )

    # -- package / imports ------------------------------------------------

    def _package_name(self, node: Node) -> str:
        for child in node.named_children:
            if child.type == "package_identifier":
                return self._get_node_text(child)
        return ""

    def _import_paths(self, node: Node) -> list[str]:
        paths = []
        for spec in self._iter_specs(node, "import_spec"):
            path = self._get_node_text(spec.child_by_field_name("path"))
            paths.append(path.strip("\"`"))
        return paths

    # -- functions --------------------------------------------------------

    def _function_record(self, node: Node) -> FunctionRecord:
        params, param_types = self._parameters(node.child_by_field_name("parameters"))
        return FunctionRecord(
            name=self._get_node_text(node.child_by_field_name("name")),
            docs=self._doc_comment(node),
            params=params,
            param_types=param_types,
            return_types=self._results(node.child_by_field_name("result")),
        )

    def _parameters(self, params: Optional[Node]) -> tuple[list[str], list[str]]:
        """Names and rendered types, one entry per declared parameter.

        Unnamed parameters get an empty name so both lists stay aligned.
        """
        names: list[str] = []
        types: list[str] = []
        if params is None:
            return names, types
        for decl in params.named_children:
            if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            rendered = render(self._param_type(decl))
            decl_names = decl.children_by_field_name("name") or [None]
            for name in decl_names:
                names.append(self._get_node_text(name))
                types.append(rendered)
        return names, types

    def _results(self, result: Optional[Node]) -> list[str]:
        if result is None:
            return []
        if result.type == "parameter_list":
            return self._parameters(result)[1]
        return [render(self.type_expr(result))]

    def _param_type(self, decl: Node) -> TypeExpr:
        elem = self.type_expr(decl.child_by_field_name("type"))
        if decl.type == "variadic_parameter_declaration":
            return Variadic(elem)
        return elem

    # -- variables --------------------------------------------------------

    def _variable_records(self, node: Node) -> list[VariableRecord]:
        spec_type = "var_spec" if node.type == "var_declaration" else "const_spec"
        specs = list(self._iter_specs(node, spec_type))
        decl_doc = self._doc_comment(node)
        records = []
        for spec in specs:
            type_node = spec.child_by_field_name("type")
            docs = self._doc_comment(spec) or self._trailing_comment(spec)
            if not docs and len(specs) == 1:
                docs = decl_doc or self._trailing_comment(node)
            records.append(
                VariableRecord(
                    name=self._get_node_text(spec.child_by_field_name("name")),
                    type=render(self.type_expr(type_node)) if type_node is not None else "",
                    docs=docs,
                )
            )
        return records

    def _iter_specs(self, node: Node, spec_type: str) -> Iterator[Node]:
        """Yield spec nodes of a declaration, looking inside grouped lists."""
        for child in node.named_children:
            if child.type == spec_type:
                yield child
            elif child.type.endswith("_list"):
                yield from self._iter_specs(child, spec_type)

    # -- types ------------------------------------------------------------

    def type_expr(self, node: Optional[Node]) -> TypeExpr:
        """Convert a tree-sitter type node into a TypeExpr."""
        if node is None:
            return Unknown("missing")
        kind = node.type
        if kind == "type_identifier":
            return Ident(self._get_node_text(node))
        if kind == "qualified_type":
            return Qualified(
                self._get_node_text(node.child_by_field_name("package")),
                self._get_node_text(node.child_by_field_name("name")),
            )
        if kind == "pointer_type":
            return Pointer(self.type_expr(self._first_named(node)))
        if kind in ("slice_type", "array_type", "implicit_length_array_type"):
            return Slice(self.type_expr(node.child_by_field_name("element")))
        if kind == "map_type":
            return Map(
                self.type_expr(node.child_by_field_name("key")),
                self.type_expr(node.child_by_field_name("value")),
            )
        if kind == "channel_type":
            return Chan(self.type_expr(node.child_by_field_name("value")))
        if kind == "function_type":
            params = node.child_by_field_name("parameters")
            return Func(tuple(self._param_type_exprs(params)))
        if kind == "interface_type":
            return Interface()
        if kind == "parenthesized_type":
            return self.type_expr(self._first_named(node))
        return Unknown(kind)

    def _param_type_exprs(self, params: Optional[Node]) -> Iterator[TypeExpr]:
        if params is None:
            return
        for decl in params.named_children:
            if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            expr = self._param_type(decl)
            for _ in decl.children_by_field_name("name") or [None]:
                yield expr

    def _first_named(self, node: Node) -> Optional[Node]:
        for child in node.named_children:
            if child.type != "comment":
                return child
        return None

    # -- comments ---------------------------------------------------------

    def _doc_comment(self, node: Node) -> str:
        """Text of the comment block ending on the line above node."""
        lines: list[str] = []
        expected_row = node.start_point[0]
        prev = self._prev(node)
        while (
            prev is not None
            and prev.type == "comment"
            and prev.end_point[0] == expected_row - 1
            and not self._is_trailing(prev)
        ):
            lines[:0] = self._comment_lines(prev)
            expected_row = prev.start_point[0]
            prev = self._prev(prev)
        return sanitize_doc("\n".join(lines))

    def _trailing_comment(self, node: Node) -> str:
        """Text of a comment that starts on node's last line."""
        last_row = node.end_point[0]
        candidate = self._next(node)
        if candidate is None or candidate.type != "comment":
            # the parser sometimes keeps a trailing comment inside the spec
            children = node.named_children
            candidate = children[-1] if children else None
        if (
            candidate is not None
            and candidate.type == "comment"
            and candidate.start_point[0] == last_row
        ):
            return sanitize_doc("\n".join(self._comment_lines(candidate)))
        return ""

    def _prev(self, node: Node) -> Optional[Node]:
        prev = node.prev_sibling
        while prev is not None and prev.type in TERMINATORS:
            prev = prev.prev_sibling
        return prev

    def _next(self, node: Node) -> Optional[Node]:
        nxt = node.next_sibling
        while nxt is not None and nxt.type in TERMINATORS:
            nxt = nxt.next_sibling
        return nxt

    def _is_trailing(self, comment: Node) -> bool:
        prev = self._prev(comment)
        return (
            prev is not None
            and prev.type != "comment"
            and prev.end_point[0] == comment.start_point[0]
        )

    def _comment_lines(self, comment: Node) -> list[str]:
        text = self._get_node_text(comment)
        if text.startswith("//"):
            if text.startswith(DIRECTIVE_PREFIXES):
                return []
            body = text[2:]
            return [body[1:] if body.startswith(" ") else body]
        body = text[2:-2] if text.endswith("*/") else text[2:]
        lines = []
        for line in body.split("\n"):
            stripped = line.strip()
            if stripped.startswith("*"):
                stripped = stripped[1:].strip()
            lines.append(stripped)
        return lines
