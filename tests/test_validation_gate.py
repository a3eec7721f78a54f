from __future__ import annotations

import pytest

from datacompat.diagnostics import CollectingDiagnosticSink, Severity
from datacompat.host.discovery import discover_candidates
from datacompat.validator import Accepted, Rejected, Validator

from tests.source_helpers import unit

_HEADER = """
from dataclasses import dataclass
from typing import Generic, TypeVar

from datacompat import data_compat

T = TypeVar("T")

"""


def _validate(body: str, *, suffix: str = "Data"):
    candidates = discover_candidates([unit("shop.gate", _HEADER + body)])
    assert len(candidates) == 1
    diagnostics = CollectingDiagnosticSink()
    result = Validator(marker_suffix=suffix, diagnostics=diagnostics).validate(candidates[0])
    return result, diagnostics


def test_private_dataclass_is_accepted() -> None:
    result, diagnostics = _validate(
        """
@data_compat()
@dataclass
class _PersonData:
    name: str
"""
    )
    assert isinstance(result, Accepted)
    assert diagnostics.diagnostics == []


@pytest.mark.parametrize(
    ("body", "message"),
    [
        (
            """
@data_compat()
@dataclass
class PublicPersonData:
    name: str
""",
            "@data_compat target must have private visibility",
        ),
        (
            """
@data_compat()
class _PlainData:
    name: str
""",
            "@data_compat cannot target a non-dataclass _PlainData",
        ),
        (
            """
@data_compat()
@dataclass
class _BoxData(Generic[T]):
    item: T
""",
            "@data_compat target shouldn't have type parameters",
        ),
        (
            """
@data_compat()
@dataclass
class _PersonRecord:
    name: str
""",
            "@data_compat target must end with Data suffix naming",
        ),
        (
            """
def build():
    @data_compat()
    @dataclass
    class _LocalData:
        name: str
    return _LocalData
""",
            "@data_compat must target classes with a qualified name",
        ),
    ],
)
def test_rejections_report_one_error(body: str, message: str) -> None:
    result, diagnostics = _validate(body)
    assert isinstance(result, Rejected)
    assert result.reason == message
    assert [item.message for item in diagnostics.diagnostics] == [message]
    assert diagnostics.diagnostics[0].severity is Severity.ERROR
    assert diagnostics.diagnostics[0].location.startswith("shop.gate:")


def test_pep695_type_parameters_are_rejected() -> None:
    result, _ = _validate(
        """
@data_compat()
@dataclass
class _PairData[K]:
    key: K
"""
    )
    assert isinstance(result, Rejected)
    assert result.reason == "@data_compat target shouldn't have type parameters"


def test_bare_suffix_is_not_a_valid_name() -> None:
    result, _ = _validate(
        """
@data_compat()
@dataclass
class _Data:
    name: str
"""
    )
    assert isinstance(result, Rejected)


def test_custom_suffix() -> None:
    result, _ = _validate(
        """
@data_compat()
@dataclass
class _PersonModel:
    name: str
""",
        suffix="Model",
    )
    assert isinstance(result, Accepted)


def test_discovery_resolves_marker_aliases() -> None:
    source = """
    import dataclasses
    import datacompat
    from datacompat import data_compat as marker


    @datacompat.data_compat(generate_namespace=True)
    @dataclasses.dataclass(frozen=True)
    class _AData:
        x: int


    @marker()
    @dataclasses.dataclass
    class _BData:
        y: int


    @dataclasses.dataclass
    class _Unmarked:
        z: int
    """
    candidates = discover_candidates([unit("shop.aliases", source)])
    assert [item.qualname for item in candidates] == ["_AData", "_BData"]
    assert all(item.is_dataclass for item in candidates)
