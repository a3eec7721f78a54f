from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from datacompat.classifier import ClassifiedType
from datacompat.model import ImportRef, PropertyDescriptor, import_sort_key
from datacompat.synthesis.naming import (
    factory_name,
    free_name,
    setter_documentation,
    setter_name,
    storage_name,
    unit_name,
)
from datacompat.synthesis.plan import (
    BuilderFieldPlan,
    BuilderPlan,
    BuildPlan,
    ComparisonPolicy,
    ConstructorPlan,
    EqualityPlan,
    EqualityTerm,
    FactoryPlan,
    FieldPlan,
    HashPlan,
    ImportPlan,
    NamespaceHookPlan,
    OutputTypePlan,
    ParameterPlan,
    ReprPlan,
    SetterCall,
    SetterPlan,
    ToBuilderPlan,
)

RUNTIME_MODULE = "datacompat.runtime"
GENERATED_TAG = "@generated from"
HASH_IMPORT = ImportRef(module=RUNTIME_MODULE, name="combine_hash")
FLOAT_IMPORT = ImportRef(module=RUNTIME_MODULE, name="compare_floats")
TYPING_IMPORTS = (
    ImportRef(module="typing", name="Callable"),
    ImportRef(module="typing", name="Optional"),
)


def _dedupe(refs: Iterable[ImportRef], exclude: Iterable[ImportRef] = ()) -> List[ImportRef]:
    seen = set(exclude)
    result: List[ImportRef] = []
    for ref in refs:
        if ref in seen:
            continue
        seen.add(ref)
        result.append(ref)
    return result


@dataclass
class Synthesizer:
    """Builds the structural plan of an output type.

    Planning is pure and total: a classified type always yields a plan, and
    the same input always yields an equal plan.
    """

    check_mandatory_in_build: bool = True
    header: str = "Generated by datacompat. Do not edit."

    def plan(self, classified: ClassifiedType) -> OutputTypePlan:
        descriptor = classified.descriptor
        properties = classified.properties
        name = descriptor.output_name
        mandatory = classified.mandatory

        return OutputTypePlan(
            name=name,
            unit_name=unit_name(name),
            package_name=descriptor.package_name,
            source=f"{descriptor.module_name}.{descriptor.qualified_name}",
            documentation=descriptor.documentation,
            decorators=descriptor.pass_through_annotations,
            bases=descriptor.implemented_capabilities,
            constructor=self._constructor(properties),
            fields=self._fields(properties),
            repr=ReprPlan(
                type_name=name,
                fields=tuple((prop.name, storage_name(prop.name)) for prop in properties),
            ),
            equality=EqualityPlan(terms=tuple(self._equality_term(prop) for prop in properties)),
            hash=HashPlan(storages=tuple(storage_name(prop.name) for prop in properties)),
            to_builder=ToBuilderPlan(
                type_name=name,
                builder_arguments=tuple(storage_name(prop.name) for prop in mandatory),
                setter_calls=tuple(
                    SetterCall(setter=setter_name(prop.name), storage=storage_name(prop.name))
                    for prop in classified.optional
                ),
            ),
            builder=self._builder(name, properties),
            namespace_hook=(
                NamespaceHookPlan(type_name=name) if descriptor.generate_namespace_hook else None
            ),
            factory=self._factory(name, mandatory),
            imports=self._imports(classified),
            header=self._header(descriptor.module_name, descriptor.qualified_name),
        )

    def _header(self, module_name: str, qualified_name: str) -> Tuple[str, ...]:
        lines = []
        if self.header:
            lines.append(self.header)
        lines.append(f"{GENERATED_TAG} {module_name}.{qualified_name}")
        lines.append("pylint: disable=protected-access")
        return tuple(lines)

    def _constructor(self, properties: Tuple[PropertyDescriptor, ...]) -> ConstructorPlan:
        return ConstructorPlan(
            parameters=tuple(ParameterPlan(prop.name, prop.type.text) for prop in properties),
            storages=tuple(storage_name(prop.name) for prop in properties),
        )

    def _fields(self, properties: Tuple[PropertyDescriptor, ...]) -> Tuple[FieldPlan, ...]:
        return tuple(
            FieldPlan(
                name=prop.name,
                storage=storage_name(prop.name),
                annotation=prop.type.text,
                documentation=prop.resolved_documentation,
            )
            for prop in properties
        )

    def _equality_term(self, prop: PropertyDescriptor) -> EqualityTerm:
        storage = storage_name(prop.name)
        if prop.type.is_float and prop.type.nullable:
            return EqualityTerm(storage, ComparisonPolicy.TOTAL_ORDER_NULLABLE, prop.type.float_zero)
        if prop.type.is_float:
            return EqualityTerm(storage, ComparisonPolicy.TOTAL_ORDER)
        return EqualityTerm(storage, ComparisonPolicy.OPERATOR)

    def _builder(self, name: str, properties: Tuple[PropertyDescriptor, ...]) -> BuilderPlan:
        fields: List[BuilderFieldPlan] = []
        parameters: List[ParameterPlan] = []
        setters: List[SetterPlan] = []
        for prop in properties:
            documentation = prop.resolved_documentation
            if prop.is_mandatory:
                parameters.append(ParameterPlan(prop.name, prop.type.text))
                initializer = None
            else:
                initializer = prop.default_expression or "None"
            fields.append(
                BuilderFieldPlan(
                    name=prop.name,
                    annotation=prop.type.text,
                    mandatory=prop.is_mandatory,
                    initializer=initializer,
                    documentation=documentation,
                )
            )
            setters.append(
                SetterPlan(
                    method_name=setter_name(prop.name),
                    property_name=prop.name,
                    annotation=prop.type.text,
                    documentation=setter_documentation(prop.name, documentation),
                )
            )
        required: Tuple[str, ...] = ()
        if self.check_mandatory_in_build:
            required = tuple(prop.name for prop in properties if prop.is_mandatory)
        return BuilderPlan(
            type_name=name,
            fields=tuple(fields),
            constructor_parameters=tuple(parameters),
            setters=tuple(setters),
            build=BuildPlan(
                type_name=name,
                arguments=tuple(prop.name for prop in properties),
                required=required,
            ),
        )

    def _factory(self, name: str, mandatory: Tuple[PropertyDescriptor, ...]) -> FactoryPlan:
        parameters = tuple(ParameterPlan(prop.name, prop.type.text) for prop in mandatory)
        return FactoryPlan(
            function_name=factory_name(name),
            type_name=name,
            parameters=parameters,
            configurator=free_name("initializer", (param.name for param in parameters)),
        )

    def _imports(self, classified: ClassifiedType) -> ImportPlan:
        descriptor = classified.descriptor
        fixed = [HASH_IMPORT]
        if any(prop.type.is_float for prop in classified.properties):
            fixed.append(FLOAT_IMPORT)
        fixed.extend(TYPING_IMPORTS)

        refs: List[ImportRef] = []
        for prop in classified.properties:
            refs.extend(prop.type.imports)
        for decorator in descriptor.pass_through_annotations:
            refs.extend(decorator.imports)
        for base in descriptor.implemented_capabilities:
            refs.extend(base.imports)
        resolved = _dedupe(sorted(refs, key=import_sort_key), exclude=fixed)
        extra = _dedupe(
            (ImportRef.from_qualified(item) for item in descriptor.extra_import_directives),
            exclude=[*fixed, *resolved],
        )
        return ImportPlan(fixed=tuple(fixed), resolved=tuple(resolved), extra=tuple(extra))
