from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from datacompat.host.source import SourceUnit
from datacompat.host.symbols import ModuleSymbols

MARKER_NAMES = frozenset({"datacompat.data_compat", "datacompat.markers.data_compat"})
DEFAULT_MARKER_NAMES = frozenset({"datacompat.Default", "datacompat.markers.Default"})
DATACLASS_NAMES = frozenset({"dataclasses.dataclass"})
GENERIC_BASES = frozenset(
    {
        "typing.Generic",
        "typing_extensions.Generic",
        "typing.Protocol",
        "typing_extensions.Protocol",
    }
)


def decorator_target(decorator: cst.Decorator) -> cst.BaseExpression:
    expr = decorator.decorator
    if isinstance(expr, cst.Call):
        return expr.func
    return expr


@dataclass(frozen=True, eq=False)
class ClassDeclaration:
    """A class carrying the ``data_compat`` marker, as found in a source unit."""

    unit: SourceUnit
    node: cst.ClassDef
    qualname: str
    line: int
    marker: cst.Decorator
    is_dataclass: bool
    has_type_parameters: bool

    @property
    def simple_name(self) -> str:
        return self.node.name.value

    @property
    def module_name(self) -> str:
        return self.unit.module_name

    @property
    def qualified_name(self) -> Optional[str]:
        if "<locals>" in self.qualname.split("."):
            return None
        return self.qualname

    @property
    def is_private(self) -> bool:
        name = self.simple_name
        return name.startswith("_") and not name.endswith("__")

    @property
    def key(self) -> str:
        return f"{self.module_name}:{self.qualname}"

    @property
    def location(self) -> str:
        return f"{self.unit.display_name}:{self.line}"


class _CandidateVisitor(cst.CSTVisitor):
    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(self, unit: SourceUnit, symbols: ModuleSymbols) -> None:
        super().__init__()
        self.unit = unit
        self.symbols = symbols
        self.scope: List[str] = []
        self.found: List[ClassDeclaration] = []

    def visit_ClassDef(self, node: cst.ClassDef) -> None:
        qualname = ".".join([*self.scope, node.name.value])
        marker = self._marker(node)
        if marker is not None:
            position = self.get_metadata(PositionProvider, node)
            self.found.append(
                ClassDeclaration(
                    unit=self.unit,
                    node=node,
                    qualname=qualname,
                    line=position.start.line,
                    marker=marker,
                    is_dataclass=self._is_dataclass(node),
                    has_type_parameters=self._has_type_parameters(node),
                )
            )
        self.scope.append(node.name.value)

    def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
        self.scope.pop()

    def visit_FunctionDef(self, node: cst.FunctionDef) -> None:
        self.scope.extend([node.name.value, "<locals>"])

    def leave_FunctionDef(self, original_node: cst.FunctionDef) -> None:
        del self.scope[-2:]

    def _marker(self, node: cst.ClassDef) -> Optional[cst.Decorator]:
        for decorator in node.decorators:
            if self.symbols.qualify(decorator_target(decorator)) in MARKER_NAMES:
                return decorator
        return None

    def _is_dataclass(self, node: cst.ClassDef) -> bool:
        return any(
            self.symbols.qualify(decorator_target(decorator)) in DATACLASS_NAMES
            for decorator in node.decorators
        )

    def _has_type_parameters(self, node: cst.ClassDef) -> bool:
        if node.type_parameters is not None and node.type_parameters.params:
            return True
        for base in node.bases:
            if base.keyword is not None or not isinstance(base.value, cst.Subscript):
                continue
            if self.symbols.qualify(base.value.value) in GENERIC_BASES:
                return True
        return False


def discover_candidates(units: Iterable[SourceUnit]) -> Tuple[ClassDeclaration, ...]:
    found: List[ClassDeclaration] = []
    for unit in units:
        wrapper = MetadataWrapper(unit.module, unsafe_skip_copy=True)
        visitor = _CandidateVisitor(unit, ModuleSymbols.from_unit(unit))
        wrapper.visit(visitor)
        found.extend(visitor.found)
    return tuple(found)
