"""Rendering of structural plans into Python modules.

Every output type becomes one module. The module is assembled as a libcst
tree; user-supplied text (annotations, defaults, decorators, bases) is parsed
with ``cst.parse_expression`` before it is placed in the tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import libcst as cst

from datacompat.exceptions import EmissionError
from datacompat.logging import get_logger
from datacompat.model import ImportRef, import_sort_key
from datacompat.synthesis.plan import (
    BuilderPlan,
    ComparisonPolicy,
    EqualityTerm,
    FactoryPlan,
    ImportPlan,
    OutputTypePlan,
    ParameterPlan,
)

_LOGGER = get_logger("emission")

INDENT = "    "


class EmissionSink(Protocol):
    def write(self, unit_name: str, package_path: str, code: str) -> str: ...


@dataclass
class FileSystemSink:
    """Writes ``<root>/<package path>/<unit>.py``."""

    root: Path

    def path_for(self, unit_name: str, package_path: str) -> Path:
        directory = self.root.joinpath(*[part for part in package_path.split(".") if part])
        return directory / f"{unit_name}.py"

    def write(self, unit_name: str, package_path: str, code: str) -> str:
        path = self.path_for(unit_name, package_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists() and path.read_text(encoding="utf-8") == code:
            _LOGGER.debug("Unchanged %s", path)
            return str(path)
        path.write_text(code, encoding="utf-8")
        _LOGGER.info("Wrote %s", path)
        return str(path)


@dataclass
class MemorySink:
    units: Dict[str, str] = field(default_factory=dict)

    def write(self, unit_name: str, package_path: str, code: str) -> str:
        module_name = f"{package_path}.{unit_name}" if package_path else unit_name
        self.units[module_name] = code
        return module_name


@dataclass(frozen=True)
class GeneratedUnit:
    module_name: str
    location: str
    code: str
    source: str


class EmissionAdapter:
    def __init__(self, sink: EmissionSink) -> None:
        self.sink = sink

    def emit(self, plan: OutputTypePlan) -> GeneratedUnit:
        code = render_module(plan)
        try:
            location = self.sink.write(plan.unit_name, plan.package_name, code)
        except OSError as exc:
            raise EmissionError(plan.module_name, exc) from exc
        return GeneratedUnit(
            module_name=plan.module_name,
            location=location,
            code=code,
            source=plan.source,
        )


def _pad(depth: int) -> str:
    return INDENT * depth


def _docstring(text: str, depth: int) -> cst.SimpleStatementLine:
    """Docstring statement for a body indented ``depth`` levels."""
    escaped = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    lines = escaped.splitlines() or [""]
    body = lines[0]
    for line in lines[1:]:
        body += "\n" + (_pad(depth) + line if line else "")
    if len(lines) > 1:
        body += "\n" + _pad(depth)
    elif body.endswith('"'):
        body = body[:-1] + '\\"'
    return cst.SimpleStatementLine([cst.Expr(cst.SimpleString(f'"""{body}"""'))])


def _stmt(code: str) -> cst.BaseStatement:
    return cst.parse_statement(code)


def _expr(code: str) -> cst.BaseExpression:
    return cst.parse_expression(code)


def _wrapped(prefix: str, parts: Sequence[str], joiner: str, depth: int) -> str:
    """``prefix (part joiner part ...)`` spread over lines at ``depth``."""
    if len(parts) == 1:
        return f"{prefix}{parts[0]}"
    inner = _pad(depth + 1)
    lines = [f"{prefix}("]
    for position, part in enumerate(parts):
        lead = "" if position == 0 else joiner
        lines.append(f"{inner}{lead}{part}")
    lines.append(f"{_pad(depth)})")
    return "\n".join(lines)


def _param(name: str, annotation: Optional[str] = None, default: Optional[str] = None) -> cst.Param:
    return cst.Param(
        name=cst.Name(name),
        annotation=cst.Annotation(_expr(annotation)) if annotation else None,
        default=_expr(default) if default is not None else None,
    )


def _self_params(parameters: Sequence[ParameterPlan]) -> List[cst.Param]:
    return [_param("self"), *(_param(item.name, item.annotation) for item in parameters)]


def _function(
    name: str,
    params: List[cst.Param],
    body: List[cst.BaseStatement],
    returns: Optional[str],
    *,
    kwonly: Sequence[cst.Param] = (),
    decorators: Sequence[str] = (),
    blank_lines: int = 1,
) -> cst.FunctionDef:
    parameters = cst.Parameters(params=params)
    if kwonly:
        parameters = cst.Parameters(params=params, star_arg=cst.ParamStar(), kwonly_params=kwonly)
    return cst.FunctionDef(
        name=cst.Name(name),
        params=parameters,
        body=cst.IndentedBlock(body=body),
        returns=cst.Annotation(_expr(returns)) if returns else None,
        decorators=[cst.Decorator(_expr(item)) for item in decorators],
        leading_lines=[cst.EmptyLine(indent=False) for _ in range(blank_lines)],
    )


def _tuple_literal(items: Sequence[str]) -> str:
    quoted = [f'"{item}"' for item in items]
    if len(quoted) == 1:
        return f"({quoted[0]},)"
    return "(" + ", ".join(quoted) + ")"


def _equality_expr(term: EqualityTerm) -> str:
    mine = f"self.{term.storage}"
    theirs = f"other.{term.storage}"
    if term.policy is ComparisonPolicy.TOTAL_ORDER:
        return f"compare_floats({mine}, {theirs}) == 0"
    if term.policy is ComparisonPolicy.TOTAL_ORDER_NULLABLE:
        zero = term.zero or "0.0"
        return (
            f"compare_floats({mine} if {mine} is not None else {zero}, "
            f"{theirs} if {theirs} is not None else {zero}) == 0"
        )
    return f"{mine} == {theirs}"


def _render_constructor(plan: OutputTypePlan) -> cst.FunctionDef:
    constructor = plan.constructor
    body: List[cst.BaseStatement] = [
        _stmt(
            f"if {constructor.key_parameter} is not {constructor.key_constant}:\n"
            f"    raise TypeError(\"Use {plan.name}.{plan.builder.name} "
            f"or {plan.factory.function_name}() to create {plan.name}.\")\n"
        )
    ]
    for parameter, storage in zip(constructor.parameters, constructor.storages):
        body.append(_stmt(f"self.{storage} = {parameter.name}"))
    return _function(
        "__init__",
        _self_params(constructor.parameters),
        body,
        "None",
        kwonly=[_param(constructor.key_parameter, "object", "None")],
    )


def _render_fields(plan: OutputTypePlan) -> List[cst.FunctionDef]:
    return [
        _function(
            item.name,
            [_param("self")],
            [_docstring(item.documentation, 2), _stmt(f"return self.{item.storage}")],
            item.annotation,
            decorators=["property"],
        )
        for item in plan.fields
    ]


def _render_repr(plan: OutputTypePlan) -> cst.FunctionDef:
    parts = ", ".join(f"{name}={{self.{storage}!r}}" for name, storage in plan.repr.fields)
    if parts:
        statement = f'return f"{plan.repr.type_name}({parts})"'
    else:
        statement = f'return "{plan.repr.type_name}()"'
    return _function("__repr__", [_param("self")], [_stmt(statement)], "str")


def _render_eq(plan: OutputTypePlan) -> cst.FunctionDef:
    terms = [_equality_expr(term) for term in plan.equality.terms]
    body: List[cst.BaseStatement] = [
        _docstring("Compare all properties of both instances in declaration order.", 2),
        _stmt("if self is other:\n    return True\n"),
        _stmt("if type(other) is not type(self):\n    return False\n"),
    ]
    if terms:
        body.append(_stmt(_wrapped("return ", terms, "and ", 2)))
    else:
        body.append(_stmt("return True"))
    return _function("__eq__", [_param("self"), _param("other", "object")], body, "bool")


def _render_hash(plan: OutputTypePlan) -> cst.FunctionDef:
    arguments = ", ".join(f"self.{storage}" for storage in plan.hash.storages)
    return _function(
        "__hash__",
        [_param("self")],
        [
            _docstring("Hash based on all class properties.", 2),
            _stmt(f"return combine_hash({arguments})"),
        ],
        "int",
    )


def _render_to_builder(plan: OutputTypePlan) -> cst.FunctionDef:
    to_builder = plan.to_builder
    builder_name = f"{to_builder.type_name}.{plan.builder.name}"
    arguments = ", ".join(f"self.{storage}" for storage in to_builder.builder_arguments)
    parts = [f"{builder_name}({arguments})"]
    parts.extend(f".{call.setter}(self.{call.storage})" for call in to_builder.setter_calls)
    return _function(
        "to_builder",
        [_param("self")],
        [
            _docstring("Convert to Builder allowing to change class properties.", 2),
            _stmt(_wrapped("return ", parts, "", 2)),
        ],
        builder_name,
    )


def _render_builder(builder: BuilderPlan) -> cst.ClassDef:
    qualified = f"{builder.type_name}.{builder.name}"
    body: List[cst.BaseStatement] = [
        _docstring(
            f"Composes and builds a {builder.type_name} object.\n"
            "\n"
            "This is a concrete implementation of the builder design pattern.",
            2,
        )
    ]
    if builder.fields:
        init_body: List[cst.BaseStatement] = []
        for item in builder.fields:
            value = item.name if item.mandatory else item.initializer
            init_body.append(_stmt(f"self.{item.name}: {item.annotation} = {value}"))
            init_body.append(_docstring(item.documentation, 3))
        body.append(
            _function(
                "__init__",
                _self_params(builder.constructor_parameters),
                init_body,
                "None",
            )
        )
    for setter in builder.setters:
        body.append(
            _function(
                setter.method_name,
                [_param("self"), _param(setter.property_name, setter.annotation)],
                [
                    _docstring(setter.documentation, 3),
                    _stmt(f"self.{setter.property_name} = {setter.property_name}"),
                    _stmt("return self"),
                ],
                qualified,
            )
        )
    build = builder.build
    build_body: List[cst.BaseStatement] = [
        _docstring(
            f"Returns a {build.type_name} reference to the object being constructed by the builder.\n"
            "\n"
            f":return: {build.type_name}",
            3,
        )
    ]
    for name in build.required:
        build_body.append(
            _stmt(
                f"if self.{name} is None:\n"
                f"    raise ValueError(\"Null {name} found when building {build.type_name}.\")\n"
            )
        )
    arguments = [f"self.{name}" for name in build.arguments]
    arguments.append("_datacompat_key=_CONSTRUCTOR_KEY")
    build_body.append(_stmt(f"return {build.type_name}({', '.join(arguments)})"))
    body.append(_function("build", [_param("self")], build_body, build.type_name))
    return cst.ClassDef(
        name=cst.Name(builder.name),
        body=cst.IndentedBlock(body=body),
        leading_lines=[cst.EmptyLine(indent=False)],
    )


def _render_class(plan: OutputTypePlan) -> cst.ClassDef:
    body: List[cst.BaseStatement] = []
    if plan.documentation:
        body.append(_docstring(plan.documentation, 1))
    if plan.constructor.storages:
        body.append(_stmt(f"__slots__ = {_tuple_literal(plan.constructor.storages)}"))
    else:
        body.append(_stmt("__slots__ = ()"))
    body.append(_render_constructor(plan))
    body.extend(_render_fields(plan))
    body.append(_render_repr(plan))
    body.append(_render_eq(plan))
    body.append(_render_hash(plan))
    body.append(_render_to_builder(plan))
    body.append(_render_builder(plan.builder))
    if plan.namespace_hook is not None:
        body.append(
            cst.ClassDef(
                name=cst.Name(plan.namespace_hook.name),
                body=cst.IndentedBlock(
                    body=[_docstring(f"Public namespace of {plan.namespace_hook.type_name}.", 2)]
                ),
                leading_lines=[cst.EmptyLine(indent=False)],
            )
        )
    return cst.ClassDef(
        name=cst.Name(plan.name),
        body=cst.IndentedBlock(body=body),
        bases=[cst.Arg(_expr(base.text)) for base in plan.bases],
        decorators=[cst.Decorator(_expr(item.text)) for item in plan.decorators],
        leading_lines=[cst.EmptyLine(indent=False), cst.EmptyLine(indent=False)],
    )


def _render_factory(factory: FactoryPlan) -> cst.FunctionDef:
    builder_name = f"{factory.type_name}.Builder"
    params = [_param(item.name, item.annotation) for item in factory.parameters]
    params.append(
        _param(
            factory.configurator,
            f"Optional[Callable[[{builder_name}], object]]",
            "None",
        )
    )
    arguments = ", ".join(item.name for item in factory.parameters)
    body: List[cst.BaseStatement] = [
        _docstring(
            f"Creates a {factory.type_name} through a DSL-style builder.\n"
            "\n"
            f":param {factory.configurator}: the initialisation block\n"
            f":return: {factory.type_name}",
            1,
        ),
        _stmt(f"builder = {builder_name}({arguments})"),
        _stmt(f"if {factory.configurator} is not None:\n    {factory.configurator}(builder)\n"),
        _stmt("return builder.build()"),
    ]
    return _function(factory.function_name, params, body, factory.type_name, blank_lines=2)


def _import_statement(ref: ImportRef) -> cst.BaseStatement:
    if ref.name is None:
        alias = f" as {ref.alias}" if ref.alias else ""
        return _stmt(f"import {ref.module}{alias}")
    alias = f" as {ref.alias}" if ref.alias else ""
    return _stmt(f"from {ref.module} import {ref.name}{alias}")


def _render_imports(imports: ImportPlan) -> List[cst.BaseStatement]:
    statements: List[cst.BaseStatement] = [
        _stmt(f"from __future__ import {', '.join(imports.future)}")
    ]
    grouped: Dict[str, List[ImportRef]] = {}
    plain: List[ImportRef] = []
    for ref in [*imports.fixed, *imports.resolved]:
        if ref.name is None:
            plain.append(ref)
        else:
            grouped.setdefault(ref.module, []).append(ref)
    block: List[cst.BaseStatement] = []
    for ref in sorted(plain, key=import_sort_key):
        block.append(_import_statement(ref))
    for module in sorted(grouped):
        names = []
        for ref in sorted(grouped[module], key=import_sort_key):
            names.append(f"{ref.name} as {ref.alias}" if ref.alias else ref.name or "")
        block.append(_stmt(f"from {module} import {', '.join(names)}"))
    block.extend(_import_statement(ref) for ref in imports.extra)
    if block:
        first = block[0]
        if isinstance(first, cst.SimpleStatementLine):
            block[0] = first.with_changes(leading_lines=[cst.EmptyLine(indent=False)])
    statements.extend(block)
    return statements


def render_module(plan: OutputTypePlan) -> str:
    body: List[cst.BaseStatement] = _render_imports(plan.imports)
    body.append(
        _stmt(f"{plan.constructor.key_constant} = object()").with_changes(
            leading_lines=[cst.EmptyLine(indent=False)]
        )
    )
    body.append(_render_class(plan))
    body.append(_render_factory(plan.factory))
    module = cst.Module(
        body=body,
        header=[cst.EmptyLine(comment=cst.Comment(f"# {line}")) for line in plan.header],
    )
    return module.code
