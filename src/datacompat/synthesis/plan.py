"""Structural plan of one generated output unit.

The plan is the only thing the emission step reads. It is built by
``Synthesizer`` and carries no rendering decisions beyond names, annotation
text and documentation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from datacompat.model import AnnotationRef, ImportRef, InterfaceRef


class ComparisonPolicy(str, Enum):
    OPERATOR = "operator"
    TOTAL_ORDER = "total_order"
    TOTAL_ORDER_NULLABLE = "total_order_nullable"


@dataclass(frozen=True)
class ParameterPlan:
    name: str
    annotation: str


@dataclass(frozen=True)
class ConstructorPlan:
    parameters: Tuple[ParameterPlan, ...]
    storages: Tuple[str, ...]
    key_parameter: str = "_datacompat_key"
    key_constant: str = "_CONSTRUCTOR_KEY"


@dataclass(frozen=True)
class FieldPlan:
    name: str
    storage: str
    annotation: str
    documentation: str


@dataclass(frozen=True)
class ReprPlan:
    type_name: str
    fields: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class EqualityTerm:
    storage: str
    policy: ComparisonPolicy
    zero: Optional[str] = None


@dataclass(frozen=True)
class EqualityPlan:
    terms: Tuple[EqualityTerm, ...]


@dataclass(frozen=True)
class HashPlan:
    storages: Tuple[str, ...]


@dataclass(frozen=True)
class SetterCall:
    setter: str
    storage: str


@dataclass(frozen=True)
class ToBuilderPlan:
    type_name: str
    builder_arguments: Tuple[str, ...]
    setter_calls: Tuple[SetterCall, ...]


@dataclass(frozen=True)
class BuilderFieldPlan:
    name: str
    annotation: str
    mandatory: bool
    initializer: Optional[str]
    documentation: str


@dataclass(frozen=True)
class SetterPlan:
    method_name: str
    property_name: str
    annotation: str
    documentation: str


@dataclass(frozen=True)
class BuildPlan:
    type_name: str
    arguments: Tuple[str, ...]
    required: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BuilderPlan:
    type_name: str
    fields: Tuple[BuilderFieldPlan, ...]
    constructor_parameters: Tuple[ParameterPlan, ...]
    setters: Tuple[SetterPlan, ...]
    build: BuildPlan
    name: str = "Builder"

    @property
    def needs_constructor_arguments(self) -> bool:
        return bool(self.constructor_parameters)


@dataclass(frozen=True)
class NamespaceHookPlan:
    type_name: str
    name: str = "Companion"


@dataclass(frozen=True)
class FactoryPlan:
    function_name: str
    type_name: str
    parameters: Tuple[ParameterPlan, ...]
    configurator: str = "initializer"


@dataclass(frozen=True)
class ImportPlan:
    fixed: Tuple[ImportRef, ...]
    resolved: Tuple[ImportRef, ...]
    extra: Tuple[ImportRef, ...]
    future: Tuple[str, ...] = ("annotations",)


@dataclass(frozen=True)
class OutputTypePlan:
    name: str
    unit_name: str
    package_name: str
    source: str
    documentation: Optional[str]
    decorators: Tuple[AnnotationRef, ...]
    bases: Tuple[InterfaceRef, ...]
    constructor: ConstructorPlan
    fields: Tuple[FieldPlan, ...]
    repr: ReprPlan
    equality: EqualityPlan
    hash: HashPlan
    to_builder: ToBuilderPlan
    builder: BuilderPlan
    namespace_hook: Optional[NamespaceHookPlan]
    factory: FactoryPlan
    imports: ImportPlan
    header: Tuple[str, ...] = field(default=())

    @property
    def module_name(self) -> str:
        if self.package_name:
            return f"{self.package_name}.{self.unit_name}"
        return self.unit_name

    def member_names(self) -> Tuple[str, ...]:
        """Class members in emission order."""
        names = ["__init__"]
        names.extend(item.name for item in self.fields)
        names.extend(["__repr__", "__eq__", "__hash__", "to_builder", self.builder.name])
        if self.namespace_hook is not None:
            names.append(self.namespace_hook.name)
        return tuple(names)
