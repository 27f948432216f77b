"""Definition lookup, parsing and execution."""

from rtbuild.core.services.definitions.loader import (
    BUILTIN_DEFINITIONS_DIR,
    execute_definition,
    list_definitions,
    load_definition,
    parse_definition,
    resolve_definition,
    search_dirs,
)

__all__ = [
    "BUILTIN_DEFINITIONS_DIR",
    "execute_definition",
    "list_definitions",
    "load_definition",
    "parse_definition",
    "resolve_definition",
    "search_dirs",
]
