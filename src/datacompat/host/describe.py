"""Turn a validated ``ClassDeclaration`` into a ``TypeDescriptor``.

This is the host's symbol-resolution step. Any referenced name that the round
cannot see yet raises ``UnresolvedSymbols`` so the driver can retry later.
"""

from __future__ import annotations

import ast
import inspect
from typing import Iterable, List, Mapping, NamedTuple, Optional, Sequence, Set, Tuple

import libcst as cst

from datacompat.exceptions import InvariantViolation, UnresolvedSymbols
from datacompat.host.discovery import (
    DATACLASS_NAMES,
    MARKER_NAMES,
    ClassDeclaration,
    decorator_target,
)
from datacompat.host.symbols import BUILTIN_NAMES, ModuleSymbols, RoundSymbols, dotted_name
from datacompat.model import (
    AnnotationRef,
    ImportRef,
    InterfaceRef,
    PropertyDescriptor,
    TypeDescriptor,
    TypeExpression,
    derive_output_name,
    import_sort_key,
    snake_case,
)

ANNOTATED_NAMES = frozenset({"typing.Annotated", "typing_extensions.Annotated"})
OPTIONAL_NAMES = frozenset({"typing.Optional", "typing_extensions.Optional"})
UNION_NAMES = frozenset({"typing.Union", "typing_extensions.Union"})
CLASSVAR_NAMES = frozenset({"typing.ClassVar", "typing_extensions.ClassVar"})
SKIPPED_FIELD_TYPES = frozenset({"dataclasses.KW_ONLY", "dataclasses.InitVar"})
RESERVED_MEMBERS = frozenset(
    {
        "to_builder",
        "build",
        "Builder",
        "Companion",
        "self",
        "other",
        "property",
        "_datacompat_key",
    }
)
_CONSTANT_NAMES = frozenset({"None", "True", "False", "Ellipsis"})


class _ReferenceCollector(cst.CSTVisitor):
    """Collects the head name of every name chain in an expression.

    String literals are read as forward references only in annotation
    position, and never inside ``Literal[...]``.
    """

    def __init__(self, forward_references: bool = True) -> None:
        super().__init__()
        self.forward_references = forward_references
        self.heads: List[str] = []

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        current: cst.BaseExpression = node
        while isinstance(current, cst.Attribute):
            current = current.value
        if isinstance(current, cst.Name):
            self.heads.append(current.value)
            return False
        return True

    def visit_Name(self, node: cst.Name) -> None:
        self.heads.append(node.value)

    def visit_Arg(self, node: cst.Arg) -> bool:
        node.value.visit(self)
        return False

    def visit_Subscript(self, node: cst.Subscript) -> bool:
        name = dotted_name(node.value) or ""
        tail = name.rpartition(".")[2]
        if tail == "Literal":
            node.value.visit(self)
            return False
        if tail == "Annotated":
            node.value.visit(self)
            elements = _subscript_elements(node)
            if elements:
                elements[0].visit(self)
            return False
        return True

    def visit_SimpleString(self, node: cst.SimpleString) -> None:
        if not self.forward_references:
            return
        forward = _parse_forward_reference(node)
        if forward is not None:
            forward.visit(self)


def _parse_forward_reference(node: cst.SimpleString) -> Optional[cst.BaseExpression]:
    value = node.evaluated_value
    if not isinstance(value, str):
        return None
    try:
        return cst.parse_expression(value)
    except cst.ParserSyntaxError:
        return None


def _subscript_elements(node: cst.Subscript) -> List[cst.BaseExpression]:
    elements: List[cst.BaseExpression] = []
    for element in node.slice:
        if isinstance(element.slice, cst.Index):
            elements.append(element.slice.value)
    return elements


def _is_none(expr: cst.BaseExpression) -> bool:
    return isinstance(expr, cst.Name) and expr.value == "None"


class TypeResolver:
    """Resolves annotations of one module against the round's symbols."""

    def __init__(
        self,
        unit_symbols: ModuleSymbols,
        round_symbols: RoundSymbols,
        module: cst.Module,
        float_types: Mapping[str, str],
    ) -> None:
        self.symbols = unit_symbols
        self.round = round_symbols
        self.module = module
        self.float_types = float_types
        self.unresolved: Set[str] = set()

    def for_module(self, symbols: ModuleSymbols) -> "TypeResolver":
        """Resolver for another round module that reports into the same unresolved set."""
        resolver = TypeResolver(
            symbols, self.round, self.round.units[symbols.module_name].module, self.float_types
        )
        resolver.unresolved = self.unresolved
        return resolver

    def code(self, node: cst.CSTNode) -> str:
        return self.module.code_for_node(node)

    def unwrap_annotated(self, expr: cst.BaseExpression) -> cst.BaseExpression:
        if isinstance(expr, cst.Subscript) and self.symbols.qualify(expr.value) in ANNOTATED_NAMES:
            elements = _subscript_elements(expr)
            if elements:
                return elements[0]
        return expr

    def resolve_type(self, annotation: cst.BaseExpression) -> TypeExpression:
        core = self.unwrap_annotated(annotation)
        nullable, inner = self._split_nullable(core)
        float_zero = None
        if inner is not None:
            float_zero = self.float_types.get(self.symbols.qualify(inner) or "")
        return TypeExpression(
            text=self.code(core),
            nullable=nullable,
            float_zero=float_zero,
            imports=self.imports_for(core),
        )

    def _split_nullable(
        self, expr: cst.BaseExpression
    ) -> Tuple[bool, Optional[cst.BaseExpression]]:
        """Return (nullable, single non-None member or None)."""
        if isinstance(expr, cst.SimpleString):
            forward = _parse_forward_reference(expr)
            if forward is not None:
                return self._split_nullable(forward)
            return False, None
        if _is_none(expr):
            return True, None
        members: List[cst.BaseExpression]
        if isinstance(expr, cst.Subscript):
            target = self.symbols.qualify(expr.value)
            if target in ANNOTATED_NAMES:
                return self._split_nullable(self.unwrap_annotated(expr))
            if target in OPTIONAL_NAMES:
                elements = _subscript_elements(expr)
                inner = elements[0] if len(elements) == 1 else None
                return True, self._strip_forward(inner)
            if target not in UNION_NAMES:
                return False, expr
            members = _subscript_elements(expr)
        elif isinstance(expr, cst.BinaryOperation) and isinstance(expr.operator, cst.BitOr):
            members = self._flatten_union(expr)
        else:
            return False, expr
        nullable = any(_is_none(member) for member in members)
        rest = [member for member in members if not _is_none(member)]
        inner = rest[0] if len(rest) == 1 else None
        return nullable, self._strip_forward(inner)

    def _strip_forward(self, expr: Optional[cst.BaseExpression]) -> Optional[cst.BaseExpression]:
        if isinstance(expr, cst.SimpleString):
            return _parse_forward_reference(expr)
        return expr

    def _flatten_union(self, expr: cst.BaseExpression) -> List[cst.BaseExpression]:
        if isinstance(expr, cst.BinaryOperation) and isinstance(expr.operator, cst.BitOr):
            return self._flatten_union(expr.left) + self._flatten_union(expr.right)
        return [expr]

    def imports_for(
        self, expr: cst.BaseExpression, *, forward_references: bool = True
    ) -> Tuple[ImportRef, ...]:
        collector = _ReferenceCollector(forward_references)
        expr.visit(collector)
        refs: Set[ImportRef] = set()
        for head in collector.heads:
            ref = self._reference(head)
            if ref is not None:
                refs.add(ref)
        return tuple(sorted(refs, key=import_sort_key))

    def _reference(self, head: str) -> Optional[ImportRef]:
        if head in _CONSTANT_NAMES:
            return None
        ref = self.symbols.imports.get(head)
        if ref is not None:
            if not self.round.is_import_available(ref):
                self.unresolved.add(head)
            return ref
        if head in self.symbols.definitions:
            return ImportRef(module=self.symbols.module_name, name=head)
        if head in BUILTIN_NAMES:
            return None
        self.unresolved.add(head)
        return None


def _cleandoc(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    cleaned = inspect.cleandoc(text).strip()
    return cleaned or None


def _literal(resolver: TypeResolver, node: cst.BaseExpression, what: str) -> object:
    try:
        return ast.literal_eval(resolver.code(node))
    except (ValueError, TypeError, SyntaxError) as exc:
        raise InvariantViolation(f"{what} must be a literal, got {resolver.code(node)!r}") from exc


def _marker_arguments(
    resolver: TypeResolver, marker: cst.Decorator
) -> Tuple[Tuple[str, ...], bool]:
    if not isinstance(marker.decorator, cst.Call):
        return (), False
    imports: Tuple[str, ...] = ()
    namespace = False
    positional = ("imports_for_defaults", "generate_namespace")
    for position, arg in enumerate(marker.decorator.args):
        if arg.keyword is not None:
            name = arg.keyword.value
        elif position < len(positional):
            name = positional[position]
        else:
            raise InvariantViolation("@data_compat takes at most two arguments")
        if name == "imports_for_defaults":
            value = _literal(resolver, arg.value, "imports_for_defaults")
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                raise InvariantViolation("imports_for_defaults must be a list of qualified names")
            if not all(isinstance(item, str) and item.strip() for item in value):
                raise InvariantViolation("imports_for_defaults must be a list of qualified names")
            imports = tuple(item.strip() for item in value)
        elif name == "generate_namespace":
            value = _literal(resolver, arg.value, "generate_namespace")
            if not isinstance(value, bool):
                raise InvariantViolation("generate_namespace must be a bool")
            namespace = value
        else:
            raise InvariantViolation(f"Unknown @data_compat argument {name!r}")
    return imports, namespace


def _class_body(node: cst.ClassDef) -> Sequence[cst.BaseStatement]:
    if isinstance(node.body, cst.IndentedBlock):
        return node.body.body
    return ()


def _attribute_docstring(stmt: Optional[cst.BaseStatement]) -> Optional[str]:
    if not isinstance(stmt, cst.SimpleStatementLine) or len(stmt.body) != 1:
        return None
    expr = stmt.body[0]
    if not isinstance(expr, cst.Expr):
        return None
    if isinstance(expr.value, (cst.SimpleString, cst.ConcatenatedString)):
        value = expr.value.evaluated_value
        if isinstance(value, str):
            return _cleandoc(value)
    return None


class _Field(NamedTuple):
    name: str
    annotation: cst.BaseExpression
    documentation: Optional[str]
    resolver: TypeResolver
    declared_in: Optional[str] = None


def _own_fields(resolver: TypeResolver, node: cst.ClassDef) -> List[_Field]:
    body = list(_class_body(node))
    fields: List[_Field] = []
    for index, stmt in enumerate(body):
        if not isinstance(stmt, cst.SimpleStatementLine) or len(stmt.body) != 1:
            continue
        item = stmt.body[0]
        if not isinstance(item, cst.AnnAssign) or not isinstance(item.target, cst.Name):
            continue
        annotation = item.annotation.annotation
        head = annotation.value if isinstance(annotation, cst.Subscript) else annotation
        qualified = resolver.symbols.qualify(head)
        if qualified in CLASSVAR_NAMES or qualified in SKIPPED_FIELD_TYPES:
            continue
        following = body[index + 1] if index + 1 < len(body) else None
        fields.append(
            _Field(item.target.value, annotation, _attribute_docstring(following), resolver)
        )
    return fields


def _is_dataclass(symbols: ModuleSymbols, node: cst.ClassDef) -> bool:
    return any(
        symbols.qualify(decorator_target(decorator)) in DATACLASS_NAMES
        for decorator in node.decorators
    )


def _fields(
    resolver: TypeResolver, node: cst.ClassDef, seen: Optional[Set[str]] = None
) -> List[_Field]:
    """Dataclass fields of ``node`` in ``dataclasses`` order.

    Fields of dataclass bases visible in the round come first, walking the
    bases from last to first. A redefined field keeps its first position and
    takes the later annotation.
    """
    seen = set() if seen is None else seen
    collected: dict[str, _Field] = {}
    for base in reversed(node.bases):
        if base.keyword is not None:
            continue
        target = resolver.symbols.qualify(base.value)
        if target is None or target in seen:
            continue
        found = resolver.round.find_class(target)
        if found is None:
            continue
        base_symbols, base_node = found
        if not _is_dataclass(base_symbols, base_node):
            continue
        seen.add(target)
        base_resolver = resolver.for_module(base_symbols)
        owner = f"{base_symbols.module_name}:{base_node.name.value}"
        for field in _fields(base_resolver, base_node, seen):
            if field.declared_in is None:
                field = field._replace(declared_in=owner)
            collected[field.name] = field
    own: List[_Field] = []
    redefined: Set[str] = set()
    for field in _own_fields(resolver, node):
        if field.name in collected and field.name not in redefined:
            collected[field.name] = field
            redefined.add(field.name)
        else:
            own.append(field)
    return list(collected.values()) + own


def _check_names(names: Sequence[str], qualified_name: str) -> None:
    seen: Set[str] = set()
    for name in names:
        if name in seen:
            raise InvariantViolation(f"Duplicate property {name!r} in {qualified_name}")
        seen.add(name)
    for name in names:
        if name in RESERVED_MEMBERS:
            raise InvariantViolation(
                f"Property {name!r} in {qualified_name} collides with a generated member"
            )
        if name.startswith("__"):
            raise InvariantViolation(
                f"Property {name!r} in {qualified_name} cannot be name-mangled"
            )
        if name.startswith("set_") and name[4:] in seen:
            raise InvariantViolation(
                f"Property {name!r} in {qualified_name} collides with the setter of {name[4:]!r}"
            )
        if name.startswith("_") and name[1:] in seen:
            raise InvariantViolation(
                f"Property {name!r} in {qualified_name} collides with the storage of {name[1:]!r}"
            )


def _pass_through(
    resolver: TypeResolver, decorators: Iterable[cst.Decorator]
) -> Tuple[AnnotationRef, ...]:
    refs: List[AnnotationRef] = []
    for decorator in decorators:
        target = resolver.symbols.qualify(decorator_target(decorator))
        if target in MARKER_NAMES or target in DATACLASS_NAMES:
            continue
        refs.append(
            AnnotationRef(
                text=resolver.code(decorator.decorator),
                imports=resolver.imports_for(decorator.decorator, forward_references=False),
            )
        )
    return tuple(refs)


def _capabilities(resolver: TypeResolver, node: cst.ClassDef) -> Tuple[InterfaceRef, ...]:
    refs: List[InterfaceRef] = []
    for base in node.bases:
        if base.keyword is not None:
            continue
        imports = resolver.imports_for(base.value, forward_references=False)
        target = resolver.symbols.qualify(base.value)
        if target is None or not resolver.round.is_interface(target):
            continue
        refs.append(InterfaceRef(text=resolver.code(base.value), imports=imports))
    return tuple(refs)


def describe(
    declaration: ClassDeclaration,
    round_symbols: RoundSymbols,
    *,
    float_types: Mapping[str, str],
    marker_suffix: str = "Data",
) -> TypeDescriptor:
    unit = declaration.unit
    unit_symbols = round_symbols.symbols_for(unit.module_name) or ModuleSymbols.from_unit(unit)
    resolver = TypeResolver(unit_symbols, round_symbols, unit.module, float_types)
    qualified_name = declaration.qualified_name
    if qualified_name is None:
        raise InvariantViolation(f"{declaration.qualname} has no qualified name")
    output_module = snake_case(derive_output_name(declaration.simple_name, marker_suffix))
    if unit.module_name.rpartition(".")[2] == output_module:
        raise InvariantViolation(
            f"{qualified_name} would be generated into its own source module {unit.module_name}"
        )

    imports, namespace = _marker_arguments(resolver, declaration.marker)
    fields = _fields(resolver, declaration.node)
    _check_names([field.name for field in fields], qualified_name)
    properties = tuple(
        PropertyDescriptor(
            name=field.name,
            type=field.resolver.resolve_type(field.annotation),
            documentation=field.documentation,
            declared_in=field.declared_in,
        )
        for field in fields
    )
    pass_through = _pass_through(resolver, declaration.node.decorators)
    capabilities = _capabilities(resolver, declaration.node)
    if resolver.unresolved:
        raise UnresolvedSymbols(resolver.unresolved)

    return TypeDescriptor(
        simple_name=declaration.simple_name,
        package_name=unit.package_name,
        module_name=unit.module_name,
        qualified_name=qualified_name,
        properties=properties,
        documentation=_cleandoc(declaration.node.get_docstring(clean=False)),
        pass_through_annotations=pass_through,
        implemented_capabilities=capabilities,
        generate_namespace_hook=namespace,
        extra_import_directives=imports,
        marker_suffix=marker_suffix,
    )
