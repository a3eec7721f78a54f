from __future__ import annotations

import pytest

from datacompat.config import DEFAULT_FLOAT_TYPES
from datacompat.exceptions import InvariantViolation, UnresolvedSymbols
from datacompat.host.describe import describe
from datacompat.host.discovery import discover_candidates
from datacompat.host.symbols import RoundSymbols, default_module_exists
from datacompat.model import ImportRef

from tests.source_helpers import PERSON_SOURCE, unit


def _describe(code: str, module: str = "shop.records", extra_units=(), module_exists=default_module_exists):
    source = unit(module, code)
    units = {source.module_name: source}
    units.update({item.module_name: item for item in extra_units})
    symbols = RoundSymbols(units, module_exists=module_exists)
    [candidate] = discover_candidates([source])
    return describe(candidate, symbols, float_types=DEFAULT_FLOAT_TYPES)


def test_person_descriptor() -> None:
    descriptor = _describe(PERSON_SOURCE, module="shop.models")
    assert descriptor.output_name == "Person"
    assert descriptor.package_name == "shop"
    assert descriptor.module_name == "shop.models"
    assert descriptor.qualified_name == "_PersonData"
    assert descriptor.documentation == "A person known to the shop."
    assert descriptor.property_names() == ("name", "nickname", "age", "score", "rating", "tags")
    types = {prop.name: prop.type for prop in descriptor.properties}
    assert types["name"].text == "str" and not types["name"].nullable
    assert types["nickname"].text == "Optional[str]" and types["nickname"].nullable
    assert types["score"].text == "float" and types["score"].float_zero == "0.0"
    assert types["rating"].nullable and types["rating"].float_zero == "0.0"
    assert types["tags"].text == "list[str]"
    assert types["nickname"].imports == (ImportRef(module="typing", name="Optional"),)
    docs = {prop.name: prop.documentation for prop in descriptor.properties}
    assert docs["name"] == "Full name."
    assert docs["age"] is None


def test_nullable_spellings() -> None:
    descriptor = _describe(
        """
        from dataclasses import dataclass
        from typing import Optional, Union

        from datacompat import data_compat


        @data_compat()
        @dataclass
        class _ShapesData:
            a: int | None
            b: Union[str, None]
            c: "Optional[int]"
            d: None | float
            e: Union[int, str]
            f: int
        """
    )
    nullable = {prop.name: prop.type.nullable for prop in descriptor.properties}
    assert nullable == {"a": True, "b": True, "c": True, "d": True, "e": False, "f": False}
    zeros = {prop.name: prop.type.float_zero for prop in descriptor.properties}
    assert zeros["d"] == "0.0"
    assert zeros["a"] is None


def test_imports_for_external_and_local_types() -> None:
    descriptor = _describe(
        """
        import datetime
        from dataclasses import dataclass
        from decimal import Decimal
        from typing import ClassVar

        from datacompat import data_compat


        class Address:
            pass


        @data_compat(["decimal.Decimal"], True)
        @dataclass
        class _InvoiceData:
            issued: datetime.date
            total: Decimal
            address: Address
            count: ClassVar[int] = 0
        """
    )
    imports = {prop.name: prop.type.imports for prop in descriptor.properties}
    assert list(imports) == ["issued", "total", "address"]
    assert imports["issued"] == (ImportRef(module="datetime"),)
    assert imports["total"] == (ImportRef(module="decimal", name="Decimal"),)
    assert imports["address"] == (ImportRef(module="shop.records", name="Address"),)
    assert descriptor.extra_import_directives == ("decimal.Decimal",)
    assert descriptor.generate_namespace_hook is True


def test_types_from_not_yet_generated_modules_are_deferred() -> None:
    code = """
    from dataclasses import dataclass

    from datacompat import data_compat
    from shop.person import Person


    @data_compat()
    @dataclass
    class _TeamData:
        leader: Person
        mascot: "Mascot"
    """
    with pytest.raises(UnresolvedSymbols) as excinfo:
        _describe(code, module="shop.teams")
    assert excinfo.value.names == ("Mascot", "Person")


def test_missing_external_module_is_deferred() -> None:
    code = """
    from dataclasses import dataclass

    from datacompat import data_compat
    from vendorlib import Thing


    @data_compat()
    @dataclass
    class _HolderData:
        thing: Thing
    """
    with pytest.raises(UnresolvedSymbols):
        _describe(code, module_exists=lambda module: module != "vendorlib")


@pytest.mark.parametrize(
    "fields",
    [
        "build: int",
        "to_builder: int",
        "name: str\n    set_name: str",
        "name: str\n    _name: str",
        "name: str\n    name: int",
        "_datacompat_key: int",
    ],
)
def test_colliding_property_names_are_invariant_violations(fields: str) -> None:
    code = (
        "from dataclasses import dataclass\n"
        "from datacompat import data_compat\n"
        "\n"
        "@data_compat()\n"
        "@dataclass\n"
        "class _CollideData:\n"
        f"    {fields}\n"
    )
    with pytest.raises(InvariantViolation):
        _describe(code)


def test_non_literal_marker_arguments_are_invariant_violations() -> None:
    code = """
    from dataclasses import dataclass

    from datacompat import data_compat

    IMPORTS = ["decimal.Decimal"]


    @data_compat(IMPORTS)
    @dataclass
    class _BadData:
        x: int
    """
    with pytest.raises(InvariantViolation):
        _describe(code)


def test_output_module_may_not_replace_its_source() -> None:
    code = """
    from dataclasses import dataclass

    from datacompat import data_compat


    @data_compat()
    @dataclass
    class _PersonData:
        name: str
    """
    with pytest.raises(InvariantViolation):
        _describe(code, module="shop.person")


def test_decorators_pass_through_and_interfaces_are_kept() -> None:
    descriptor = _describe(
        """
        from collections.abc import Sized
        from dataclasses import dataclass
        from typing import Protocol

        from datacompat import data_compat


        class Named(Protocol):
            name: str


        class Concrete:
            pass


        def tag(label):
            def wrap(cls):
                return cls
            return wrap


        @tag("catalog")
        @data_compat()
        @dataclass
        class _ItemData(Named, Concrete, Sized):
            name: str
        """,
        module="shop.items",
    )
    assert [item.text for item in descriptor.pass_through_annotations] == ['tag("catalog")']
    assert descriptor.pass_through_annotations[0].imports == (
        ImportRef(module="shop.items", name="tag"),
    )
    assert [item.text for item in descriptor.implemented_capabilities] == ["Named", "Sized"]
    assert descriptor.implemented_capabilities[1].imports == (
        ImportRef(module="collections.abc", name="Sized"),
    )


_RECORD_SOURCE = """
from dataclasses import dataclass
from typing import Annotated

from datacompat import Default


@dataclass
class Record:
    ident: int
    \"\"\"Record identifier.\"\"\"
    label: Annotated[str, Default('"plain"')]


class Plain:
    ignored: int
"""


def test_fields_of_dataclass_bases_come_first() -> None:
    descriptor = _describe(
        """
        from dataclasses import dataclass

        from datacompat import data_compat
        from shop.base import Plain, Record


        @data_compat()
        @dataclass
        class _CowData(Record, Plain):
            name: str
            label: str
        """,
        module="shop.cows",
        extra_units=[unit("shop.base", _RECORD_SOURCE)],
    )
    assert descriptor.property_names() == ("ident", "label", "name")
    by_name = {prop.name: prop for prop in descriptor.properties}
    assert by_name["ident"].declared_in == "shop.base:Record"
    assert by_name["ident"].documentation == "Record identifier."
    assert by_name["label"].declared_in is None
    assert by_name["label"].type.text == "str"
    assert descriptor.implemented_capabilities == ()

