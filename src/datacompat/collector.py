"""Default-value collection.

``Default`` markers live on field annotations, which the candidate discovery
pass does not read. They are gathered here in a separate pass over every unit
of the round and joined back to their owning class through parent links.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

import libcst as cst
from libcst.metadata import MetadataWrapper, ParentNodeProvider

from datacompat.host.discovery import DEFAULT_MARKER_NAMES
from datacompat.host.source import SourceUnit
from datacompat.host.symbols import ModuleSymbols
from datacompat.logging import get_logger

_LOGGER = get_logger("collector")

_EMPTY: Mapping[str, str] = {}


@dataclass(frozen=True)
class DefaultCollision:
    owner: str
    name: str
    previous: str
    current: str


@dataclass
class DefaultValueIndex:
    """``owner key -> property name -> default expression`` for one round."""

    entries: Dict[str, Dict[str, str]] = field(default_factory=dict)
    collisions: List[DefaultCollision] = field(default_factory=list)

    def register(self, owner: str, name: str, expression: str) -> None:
        values = self.entries.setdefault(owner, {})
        previous = values.get(name)
        if previous is not None:
            self.collisions.append(
                DefaultCollision(owner=owner, name=name, previous=previous, current=expression)
            )
            _LOGGER.debug(
                "Default for %s.%s registered twice; keeping %r over %r",
                owner,
                name,
                expression,
                previous,
            )
        values[name] = expression

    def lookup(self, owner: str, name: str) -> Optional[str]:
        return self.entries.get(owner, _EMPTY).get(name)

    def for_owner(self, owner: str) -> Mapping[str, str]:
        return self.entries.get(owner, _EMPTY)

    def __len__(self) -> int:
        return sum(len(values) for values in self.entries.values())


def _marker_literal(call: cst.Call) -> Optional[str]:
    for arg in call.args:
        if arg.keyword is not None and arg.keyword.value != "value_as_string":
            continue
        value = arg.value
        if isinstance(value, (cst.SimpleString, cst.ConcatenatedString)):
            evaluated = value.evaluated_value
            if isinstance(evaluated, str):
                return evaluated
        return None
    return None


class _DefaultMarkerVisitor(cst.CSTVisitor):
    METADATA_DEPENDENCIES = (ParentNodeProvider,)

    def __init__(self, unit: SourceUnit, symbols: ModuleSymbols, index: DefaultValueIndex) -> None:
        super().__init__()
        self.unit = unit
        self.symbols = symbols
        self.index = index

    def visit_Call(self, node: cst.Call) -> None:
        if self.symbols.qualify(node.func) not in DEFAULT_MARKER_NAMES:
            return
        target = self._parameter_name(node)
        owner = self._owner_qualname(node)
        if target is None or owner is None:
            _LOGGER.debug("Skipping Default marker without owner in %s", self.unit.display_name)
            return
        literal = _marker_literal(node)
        if literal is None:
            _LOGGER.debug(
                "Skipping Default marker for %s.%s: argument is not a string literal",
                owner,
                target,
            )
            return
        self.index.register(f"{self.unit.module_name}:{owner}", target, literal)

    def _parent(self, node: cst.CSTNode) -> Optional[cst.CSTNode]:
        return self.get_metadata(ParentNodeProvider, node, None)

    def _parameter_name(self, node: cst.CSTNode) -> Optional[str]:
        current = self._parent(node)
        while current is not None:
            if isinstance(current, cst.AnnAssign):
                return current.target.value if isinstance(current.target, cst.Name) else None
            if isinstance(current, cst.Param):
                return current.name.value
            if isinstance(current, (cst.BaseStatement, cst.ClassDef, cst.FunctionDef)):
                return None
            current = self._parent(current)
        return None

    def _owner_qualname(self, node: cst.CSTNode) -> Optional[str]:
        current = self._parent(node)
        while current is not None and not isinstance(current, cst.ClassDef):
            current = self._parent(current)
        if current is None:
            return None
        names: List[str] = []
        while current is not None:
            if isinstance(current, cst.ClassDef):
                names.append(current.name.value)
            elif isinstance(current, cst.FunctionDef):
                names.extend(["<locals>", current.name.value])
            current = self._parent(current)
        return ".".join(reversed(names))


def collect_defaults(units: Iterable[SourceUnit]) -> DefaultValueIndex:
    """Build the round's default index. Runs before any candidate is classified."""
    index = DefaultValueIndex()
    for unit in units:
        wrapper = MetadataWrapper(unit.module, unsafe_skip_copy=True)
        wrapper.visit(_DefaultMarkerVisitor(unit, ModuleSymbols.from_unit(unit), index))
    _LOGGER.debug("Collected %d default expressions", len(index))
    return index
