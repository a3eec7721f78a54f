from __future__ import annotations

import builtins
import importlib.util
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional, Set

import libcst as cst

from datacompat.host.source import SourceUnit
from datacompat.model import ImportRef

ModuleExists = Callable[[str], bool]

BUILTIN_NAMES: frozenset[str] = frozenset(dir(builtins))

PROTOCOL_BASES = frozenset(
    {
        "typing.Protocol",
        "typing_extensions.Protocol",
        "abc.ABC",
    }
)
ABC_METACLASSES = frozenset({"abc.ABCMeta"})
TYPING_INTERFACES = frozenset(
    {
        "typing.Hashable",
        "typing.Sized",
        "typing.Container",
        "typing.Collection",
        "typing.Iterable",
        "typing.Reversible",
        "typing.SupportsAbs",
        "typing.SupportsBytes",
        "typing.SupportsComplex",
        "typing.SupportsFloat",
        "typing.SupportsIndex",
        "typing.SupportsInt",
        "typing.SupportsRound",
    }
)


def dotted_name(expr: cst.BaseExpression | None) -> str | None:
    if expr is None:
        return None
    if isinstance(expr, cst.Name):
        return expr.value
    if isinstance(expr, cst.Attribute):
        parts = []
        current: cst.BaseExpression = expr
        while isinstance(current, cst.Attribute):
            parts.append(current.attr.value)
            current = current.value
        if isinstance(current, cst.Name):
            parts.append(current.value)
            return ".".join(reversed(parts))
    return None


def default_module_exists(module: str) -> bool:
    top = module.split(".")[0]
    try:
        return importlib.util.find_spec(top) is not None
    except (ImportError, ValueError):
        return False


@dataclass
class ModuleSymbols:
    """Module-level bindings of one source unit."""

    module_name: str
    package_name: str
    imports: Dict[str, ImportRef] = field(default_factory=dict)
    classes: Dict[str, cst.ClassDef] = field(default_factory=dict)
    definitions: Set[str] = field(default_factory=set)

    @classmethod
    def from_unit(cls, unit: SourceUnit) -> "ModuleSymbols":
        symbols = cls(module_name=unit.module_name, package_name=unit.package_name)
        symbols._collect(unit.module.body)
        return symbols

    def _collect(self, body: Iterable[cst.CSTNode]) -> None:
        for stmt in body:
            if isinstance(stmt, cst.SimpleStatementLine):
                for item in stmt.body:
                    self._collect_small(item)
            elif isinstance(stmt, cst.ClassDef):
                self.classes[stmt.name.value] = stmt
                self.definitions.add(stmt.name.value)
            elif isinstance(stmt, cst.FunctionDef):
                self.definitions.add(stmt.name.value)
            elif isinstance(stmt, cst.If):
                self._collect(stmt.body.body)
                orelse = stmt.orelse
                while orelse is not None:
                    self._collect(orelse.body.body)
                    orelse = orelse.orelse if isinstance(orelse, cst.If) else None
            elif isinstance(stmt, cst.Try):
                self._collect(stmt.body.body)
                for handler in stmt.handlers:
                    self._collect(handler.body.body)

    def _collect_small(self, item: cst.BaseSmallStatement) -> None:
        if isinstance(item, cst.Import):
            for alias in item.names:
                module = dotted_name(alias.name)
                if module is None:
                    continue
                if alias.asname is not None:
                    local = dotted_name(alias.asname.name) or module
                    self.imports[local] = ImportRef(module=module, alias=local)
                else:
                    self.imports[module.split(".")[0]] = ImportRef(module=module)
        elif isinstance(item, cst.ImportFrom):
            module = self._absolute_module(item)
            if module is None or isinstance(item.names, cst.ImportStar):
                return
            for alias in item.names:
                name = dotted_name(alias.name)
                if name is None:
                    continue
                local = dotted_name(alias.asname.name) if alias.asname is not None else None
                self.imports[local or name] = ImportRef(module=module, name=name, alias=local)
        elif isinstance(item, cst.AnnAssign):
            target = dotted_name(item.target)
            if target and "." not in target:
                self.definitions.add(target)
        elif isinstance(item, cst.Assign):
            for target in item.targets:
                name = dotted_name(target.target)
                if name and "." not in name:
                    self.definitions.add(name)
        elif isinstance(item, cst.TypeAlias):
            self.definitions.add(item.name.value)

    def _absolute_module(self, item: cst.ImportFrom) -> str | None:
        module = dotted_name(item.module) if item.module is not None else ""
        if module is None:
            return None
        level = len(item.relative)
        if level == 0:
            return module
        parts = self.package_name.split(".") if self.package_name else []
        if level - 1 > len(parts):
            return None
        base = parts[: len(parts) - (level - 1)]
        if module:
            base.append(module)
        return ".".join(base) or None

    def is_bound(self, name: str) -> bool:
        return name in self.imports or name in self.definitions

    def qualify(self, expr: cst.BaseExpression | None) -> str | None:
        """Canonical dotted name of ``expr`` with import aliases expanded."""
        name = dotted_name(expr)
        if name is None:
            return None
        head, _, rest = name.partition(".")
        ref = self.imports.get(head)
        if ref is not None:
            if ref.name is not None:
                target = f"{ref.module}.{ref.name}"
            elif ref.alias is not None:
                target = ref.module
            else:
                target = head
            return f"{target}.{rest}" if rest else target
        if head in self.definitions:
            prefix = f"{self.module_name}." if self.module_name else ""
            return f"{prefix}{name}"
        return name


@dataclass
class RoundSymbols:
    """Symbol graph visible to one round."""

    units: Mapping[str, SourceUnit]
    module_exists: ModuleExists = default_module_exists
    _modules: Dict[str, ModuleSymbols] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        self._root_packages = {name.split(".")[0] for name in self.units if name}

    def symbols_for(self, module_name: str) -> Optional[ModuleSymbols]:
        unit = self.units.get(module_name)
        if unit is None:
            return None
        cached = self._modules.get(module_name)
        if cached is None:
            cached = ModuleSymbols.from_unit(unit)
            self._modules[module_name] = cached
        return cached

    def is_round_module(self, module: str) -> bool:
        if module in self.units:
            return True
        prefix = module + "."
        return any(name.startswith(prefix) for name in self.units)

    def is_module_known(self, module: str) -> bool:
        if self.is_round_module(module):
            return True
        if module.split(".")[0] in self._root_packages:
            return False
        return self.module_exists(module)

    def is_import_available(self, ref: ImportRef) -> bool:
        if not self.is_module_known(ref.module):
            return False
        if ref.name is None:
            return True
        symbols = self.symbols_for(ref.module)
        if symbols is None:
            return True
        return symbols.is_bound(ref.name) or self.is_round_module(f"{ref.module}.{ref.name}")

    def find_class(self, qualified: str) -> tuple[ModuleSymbols, cst.ClassDef] | None:
        module, _, name = qualified.rpartition(".")
        symbols = self.symbols_for(module)
        if symbols is None:
            return None
        node = symbols.classes.get(name)
        if node is not None:
            return symbols, node
        ref = symbols.imports.get(name)
        if ref is not None and ref.name is not None:
            return self.find_class(f"{ref.module}.{ref.name}")
        return None

    def is_interface(self, qualified: str) -> bool:
        """True when ``qualified`` names a protocol or abstract base class.

        Only classes that list ``Protocol``/``ABC`` directly, or use
        ``ABCMeta``, count. Concrete subclasses of such classes do not.
        """
        module = qualified.rpartition(".")[0]
        if module == "collections.abc" or qualified in TYPING_INTERFACES:
            return True
        found = self.find_class(qualified)
        if found is None:
            return False
        symbols, node = found
        for keyword in node.keywords:
            if keyword.keyword is not None and keyword.keyword.value == "metaclass":
                if symbols.qualify(keyword.value) in ABC_METACLASSES:
                    return True
        for base in node.bases:
            if base.keyword is not None:
                continue
            base_expr = base.value
            if isinstance(base_expr, cst.Subscript):
                base_expr = base_expr.value
            if symbols.qualify(base_expr) in PROTOCOL_BASES:
                return True
        return False
