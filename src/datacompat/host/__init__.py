"""libcst-backed host: source units, symbol tables, discovery and resolution."""

from datacompat.host.describe import TypeResolver, describe
from datacompat.host.discovery import ClassDeclaration, discover_candidates
from datacompat.host.source import (
    SourceUnit,
    is_generated_code,
    iter_python_files,
    module_name_for,
)
from datacompat.host.symbols import ModuleSymbols, RoundSymbols, default_module_exists

__all__ = [
    "ClassDeclaration",
    "ModuleSymbols",
    "RoundSymbols",
    "SourceUnit",
    "TypeResolver",
    "default_module_exists",
    "describe",
    "discover_candidates",
    "is_generated_code",
    "iter_python_files",
    "module_name_for",
]
