# ref_watcher/type_expr.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Type expressions and their canonical rendering.

TypeExpr is a closed union of frozen dataclasses, one per shape the index
understands. Parsers build these from syntax nodes; render() turns them
into the deterministic strings stored in the index. render() is total:
anything it does not recognise becomes UNKNOWN_TYPE.
"""

from dataclasses import dataclass
from typing import Union

UNKNOWN_TYPE = "<unknown type>"
EMPTY_INTERFACE = "interface{}"


@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class Qualified:
    qualifier: str
    name: str


@dataclass(frozen=True)
class Pointer:
    elem: "TypeExpr"


@dataclass(frozen=True)
class Slice:
    """Slice or array of elem (array length is not rendered)."""

    elem: "TypeExpr"


@dataclass(frozen=True)
class Map:
    key: "TypeExpr"
    value: "TypeExpr"


@dataclass(frozen=True)
class Chan:
    """Channel of elem, any direction."""

    elem: "TypeExpr"


@dataclass(frozen=True)
class Func:
    """Function type; only parameter types are rendered."""

    params: tuple["TypeExpr", ...] = ()


@dataclass(frozen=True)
class Interface:
    pass


@dataclass(frozen=True)
class Variadic:
    elem: "TypeExpr"


@dataclass(frozen=True)
class Unknown:
    """A shape the renderer does not summarize (struct, generic, ...)."""

    kind: str = ""


TypeExpr = Union[
    Ident, Qualified, Pointer, Slice, Map, Chan, Func, Interface, Variadic, Unknown
]


def render(expr: TypeExpr) -> str:
    """Render a type expression as a canonical string.

    Args:
        expr: Any TypeExpr variant.

    Returns:
        The rendered type, or UNKNOWN_TYPE for Unknown and foreign objects.
    """
    if isinstance(expr, Ident):
        return expr.name
    if isinstance(expr, Qualified):
        return f"{expr.qualifier}.{expr.name}"
    if isinstance(expr, Pointer):
        return "*" + render(expr.elem)
    if isinstance(expr, Slice):
        return "[]" + render(expr.elem)
    if isinstance(expr, Map):
        return f"map[{render(expr.key)}]{render(expr.value)}"
    if isinstance(expr, Chan):
        return "chan " + render(expr.elem)
    if isinstance(expr, Func):
        return "func(" + ", ".join(render(p) for p in expr.params) + ")"
    if isinstance(expr, Interface):
        return EMPTY_INTERFACE
    if isinstance(expr, Variadic):
        return "..." + render(expr.elem)
    if isinstance(expr, Unknown):
        return UNKNOWN_TYPE
    return UNKNOWN_TYPE
