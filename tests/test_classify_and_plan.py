from __future__ import annotations

from datacompat.classifier import classify
from datacompat.collector import DefaultValueIndex, collect_defaults
from datacompat.config import DEFAULT_FLOAT_TYPES
from datacompat.host.describe import describe
from datacompat.host.discovery import discover_candidates
from datacompat.host.symbols import RoundSymbols
from datacompat.model import ImportRef, PropertyDescriptor, TypeDescriptor, TypeExpression
from datacompat.synthesis import ComparisonPolicy, Synthesizer

from tests.source_helpers import PERSON_SOURCE, unit


def _prop(name: str, text: str = "int", nullable: bool = False) -> PropertyDescriptor:
    return PropertyDescriptor(name=name, type=TypeExpression(text=text, nullable=nullable))


def _classified_person():
    source = unit("shop.models", PERSON_SOURCE)
    symbols = RoundSymbols({source.module_name: source})
    [candidate] = discover_candidates([source])
    descriptor = describe(candidate, symbols, float_types=DEFAULT_FLOAT_TYPES)
    return classify(descriptor, collect_defaults([source]))


def test_mandatory_iff_no_default_and_not_nullable() -> None:
    descriptor = TypeDescriptor(
        simple_name="_SampleData",
        package_name="shop",
        module_name="shop.sample_source",
        qualified_name="_SampleData",
        properties=(
            _prop("a"),
            _prop("b", "Optional[int]", nullable=True),
            _prop("c"),
            _prop("d", "Optional[int]", nullable=True),
        ),
    )
    index = DefaultValueIndex()
    index.register("shop.sample_source:_SampleData", "c", "3")
    index.register("shop.sample_source:_SampleData", "d", "4")
    classified = classify(descriptor, index)
    assert [prop.name for prop in classified.properties] == ["a", "b", "c", "d"]
    assert [prop.name for prop in classified.mandatory] == ["a"]
    assert [prop.name for prop in classified.optional] == ["b", "c", "d"]
    assert classified.properties[2].default_expression == "3"
    assert classified.descriptor.properties == classified.properties


def test_defaults_of_other_owners_do_not_apply() -> None:
    descriptor = TypeDescriptor(
        simple_name="_SampleData",
        package_name="shop",
        module_name="shop.sample_source",
        qualified_name="_SampleData",
        properties=(_prop("a"),),
    )
    index = DefaultValueIndex()
    index.register("shop.other:_SampleData", "a", "1")
    assert [prop.name for prop in classify(descriptor, index).mandatory] == ["a"]


def test_plan_follows_declaration_order() -> None:
    plan = Synthesizer().plan(_classified_person())
    names = ["name", "nickname", "age", "score", "rating", "tags"]
    assert plan.name == "Person"
    assert plan.module_name == "shop.person"
    assert [item.name for item in plan.fields] == names
    assert [parameter.name for parameter in plan.constructor.parameters] == names
    assert plan.hash.storages == tuple(f"_{name}" for name in names)
    assert [name for name, _ in plan.repr.fields] == names
    assert [item.name for item in plan.builder.fields] == names
    assert plan.builder.build.arguments == tuple(names)
    assert [parameter.name for parameter in plan.builder.constructor_parameters] == ["name", "age"]
    assert [parameter.name for parameter in plan.factory.parameters] == ["name", "age"]
    assert plan.factory.function_name == "person"
    assert plan.to_builder.builder_arguments == ("_name", "_age")
    assert [call.setter for call in plan.to_builder.setter_calls] == [
        "set_nickname",
        "set_score",
        "set_rating",
        "set_tags",
    ]
    assert plan.member_names()[:3] == ("__init__", "name", "nickname")


def test_plan_equality_policies_and_initializers() -> None:
    plan = Synthesizer().plan(_classified_person())
    policies = {term.storage: term.policy for term in plan.equality.terms}
    assert policies["_name"] is ComparisonPolicy.OPERATOR
    assert policies["_score"] is ComparisonPolicy.TOTAL_ORDER
    assert policies["_rating"] is ComparisonPolicy.TOTAL_ORDER_NULLABLE
    initializers = {item.name: item.initializer for item in plan.builder.fields}
    assert initializers == {
        "name": None,
        "nickname": "None",
        "age": None,
        "score": "1.5",
        "rating": "None",
        "tags": "[]",
    }
    assert plan.builder.build.required == ("name", "age")


def test_plan_imports_and_header() -> None:
    plan = Synthesizer(check_mandatory_in_build=False, header="Header line").plan(
        _classified_person()
    )
    assert plan.imports.fixed == (
        ImportRef(module="datacompat.runtime", name="combine_hash"),
        ImportRef(module="datacompat.runtime", name="compare_floats"),
        ImportRef(module="typing", name="Callable"),
        ImportRef(module="typing", name="Optional"),
    )
    assert plan.imports.resolved == ()
    assert plan.builder.build.required == ()
    assert plan.header == (
        "Header line",
        "@generated from shop.models._PersonData",
        "pylint: disable=protected-access",
    )


def test_plan_is_deterministic() -> None:
    assert Synthesizer().plan(_classified_person()) == Synthesizer().plan(_classified_person())
