# ref_watcher/records.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Index record models.

These Pydantic models define the JSON written for every indexed file:

- SourceRecord: package, imports, functions and variables of one file
- FunctionRecord: one function or method signature with its doc text
- VariableRecord: one top-level var/const spec

Field names match the on-disk schema (docs, params, param_types,
return_types), so model_dump() is the serialized form.
"""

from pydantic import BaseModel


class FunctionRecord(BaseModel):
    """A function-like declaration.

    params and param_types are aligned: one entry per declared parameter,
    even when several parameters share a type in the source.
    """

    name: str
    docs: str = ""
    params: list[str] = []
    param_types: list[str] = []
    return_types: list[str] = []


class VariableRecord(BaseModel):
    """A top-level var or const spec (first declared name only)."""

    name: str
    type: str = ""
    docs: str = ""


class SourceRecord(BaseModel):
    """Everything indexed for a single source file.

    Records are replaced wholesale on every successful parse.
    """

    package: str = ""
    imports: list[str] = []
    functions: list[FunctionRecord] = []
    variables: list[VariableRecord] = []
