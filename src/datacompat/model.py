from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ImportRef:
    """One name a generated module has to import.

    ``name`` is ``None`` for a plain ``import module [as alias]``.
    """

    module: str
    name: Optional[str] = None
    alias: Optional[str] = None

    @property
    def bound_name(self) -> str:
        if self.alias:
            return self.alias
        if self.name:
            return self.name
        return self.module.split(".")[0]

    @classmethod
    def from_qualified(cls, qualified: str) -> "ImportRef":
        """``a.b.C`` imports ``C`` from ``a.b``; a bare ``mod`` imports the module."""
        qualified = qualified.strip()
        if "." not in qualified:
            return cls(module=qualified)
        module, _, name = qualified.rpartition(".")
        return cls(module=module, name=name)


@dataclass(frozen=True)
class TypeExpression:
    text: str
    nullable: bool = False
    float_zero: Optional[str] = None
    imports: Tuple[ImportRef, ...] = ()

    @property
    def is_float(self) -> bool:
        return self.float_zero is not None


@dataclass(frozen=True)
class AnnotationRef:
    """A decorator carried over verbatim to the generated class."""

    text: str
    imports: Tuple[ImportRef, ...] = ()


@dataclass(frozen=True)
class InterfaceRef:
    """A protocol or ABC base carried over to the generated class."""

    text: str
    imports: Tuple[ImportRef, ...] = ()


@dataclass(frozen=True)
class PropertyDescriptor:
    name: str
    type: TypeExpression
    documentation: Optional[str] = None
    default_expression: Optional[str] = None
    # owner key of the dataclass base that declares an inherited field
    declared_in: Optional[str] = None

    @property
    def is_mandatory(self) -> bool:
        return self.default_expression is None and not self.type.nullable

    @property
    def resolved_documentation(self) -> str:
        if self.documentation:
            return self.documentation
        return humanize_label(self.name)


@dataclass(frozen=True)
class TypeDescriptor:
    simple_name: str
    package_name: str
    module_name: str
    qualified_name: str
    properties: Tuple[PropertyDescriptor, ...] = ()
    documentation: Optional[str] = None
    pass_through_annotations: Tuple[AnnotationRef, ...] = ()
    implemented_capabilities: Tuple[InterfaceRef, ...] = ()
    generate_namespace_hook: bool = False
    extra_import_directives: Tuple[str, ...] = ()
    marker_suffix: str = "Data"

    @property
    def owner_key(self) -> str:
        return f"{self.module_name}:{self.qualified_name}"

    @property
    def output_name(self) -> str:
        return derive_output_name(self.simple_name, self.marker_suffix)

    def property_names(self) -> Tuple[str, ...]:
        return tuple(prop.name for prop in self.properties)


def derive_output_name(simple_name: str, marker_suffix: str) -> str:
    """``_PersonData`` becomes ``Person``."""
    name = simple_name.lstrip("_")
    if marker_suffix and name.endswith(marker_suffix):
        name = name[: -len(marker_suffix)]
    return name


_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """``HTTPRequest`` becomes ``http_request``."""
    return _BOUNDARY.sub("_", name).lower()


def humanize_label(name: str) -> str:
    """``first_name`` and ``firstName`` both become ``First name.``"""
    words: list[str] = []
    current = ""
    for char in name.strip("_"):
        if char == "_":
            if current:
                words.append(current)
            current = ""
            continue
        if char.isupper() and current and not current[-1].isupper():
            words.append(current)
            current = ""
        current += char
    if current:
        words.append(current)
    if not words:
        return f"{name}."
    text = " ".join(word.lower() for word in words)
    return text[:1].upper() + text[1:] + "."


def import_sort_key(ref: ImportRef) -> tuple[str, str, str]:
    return (ref.module, ref.name or "", ref.alias or "")
