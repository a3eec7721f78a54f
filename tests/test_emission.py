from __future__ import annotations

import ast
from pathlib import Path

import pytest

from datacompat.classifier import classify
from datacompat.collector import collect_defaults
from datacompat.config import DEFAULT_FLOAT_TYPES
from datacompat.emission import EmissionAdapter, FileSystemSink, MemorySink, render_module
from datacompat.exceptions import EmissionError
from datacompat.host.describe import describe
from datacompat.host.discovery import discover_candidates
from datacompat.host.symbols import RoundSymbols
from datacompat.synthesis import Synthesizer

from tests.source_helpers import PERSON_SOURCE, unit


def _plan(code: str = PERSON_SOURCE, module: str = "shop.models"):
    source = unit(module, code)
    symbols = RoundSymbols({source.module_name: source})
    [candidate] = discover_candidates([source])
    descriptor = describe(candidate, symbols, float_types=DEFAULT_FLOAT_TYPES)
    return Synthesizer().plan(classify(descriptor, collect_defaults([source])))


def test_rendered_module_layout() -> None:
    code = render_module(_plan())
    lines = code.splitlines()
    assert lines[:3] == [
        "# Generated by datacompat. Do not edit.",
        "# @generated from shop.models._PersonData",
        "# pylint: disable=protected-access",
    ]
    assert "from __future__ import annotations" in lines
    assert "from datacompat.runtime import combine_hash, compare_floats" in lines
    assert "from typing import Callable, Optional" in lines
    assert "_CONSTRUCTOR_KEY = object()" in lines
    assert "class Person:" in lines
    assert "    class Builder:" in lines
    assert "def person(" in code
    assert "Companion" not in code
    tree = ast.parse(code)
    names = [node.name for node in tree.body if isinstance(node, (ast.ClassDef, ast.FunctionDef))]
    assert names == ["Person", "person"]


def test_rendered_class_members_follow_plan_order() -> None:
    plan = _plan()
    tree = ast.parse(render_module(plan))
    person = next(node for node in tree.body if isinstance(node, ast.ClassDef))
    members = [
        node.name
        for node in person.body
        if isinstance(node, (ast.FunctionDef, ast.ClassDef))
    ]
    assert tuple(members) == plan.member_names()


def test_render_is_idempotent() -> None:
    assert render_module(_plan()) == render_module(_plan())


def test_extra_imports_and_namespace_hook() -> None:
    code = render_module(
        _plan(
            """
            from dataclasses import dataclass
            from typing import Annotated

            from datacompat import Default, data_compat


            @data_compat(imports_for_defaults=["decimal.Decimal", "math"], generate_namespace=True)
            @dataclass
            class _PriceData:
                amount: Annotated[object, Default("Decimal(math.floor(2.5))")]
            """,
            module="shop.prices",
        )
    )
    lines = code.splitlines()
    assert "from decimal import Decimal" in lines
    assert "import math" in lines
    assert lines.index("from decimal import Decimal") < lines.index("import math")
    assert "    class Companion:" in lines
    assert "compare_floats" not in code
    ast.parse(code)


def test_file_sink_skips_identical_content(tmp_path: Path) -> None:
    sink = FileSystemSink(tmp_path)
    location = sink.write("person", "shop", "x = 1\n")
    path = Path(location)
    assert path == tmp_path / "shop" / "person.py"
    assert path.read_text(encoding="utf-8") == "x = 1\n"
    stamp = path.stat().st_mtime_ns
    sink.write("person", "shop", "x = 1\n")
    assert path.stat().st_mtime_ns == stamp
    sink.write("person", "shop", "x = 2\n")
    assert path.read_text(encoding="utf-8") == "x = 2\n"


def test_memory_sink_and_adapter() -> None:
    sink = MemorySink()
    generated = EmissionAdapter(sink).emit(_plan())
    assert generated.module_name == "shop.person"
    assert generated.location == "shop.person"
    assert sink.units["shop.person"] == generated.code
    assert generated.source == "shop.models._PersonData"


def test_io_failures_become_emission_errors() -> None:
    class BrokenSink:
        def write(self, unit_name: str, package_path: str, code: str) -> str:
            raise PermissionError("read-only")

    with pytest.raises(EmissionError) as excinfo:
        EmissionAdapter(BrokenSink()).emit(_plan())
    assert excinfo.value.unit_name == "shop.person"
    assert isinstance(excinfo.value.cause, PermissionError)
