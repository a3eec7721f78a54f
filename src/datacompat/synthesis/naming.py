from __future__ import annotations

import keyword
from typing import Iterable

from datacompat.model import snake_case


def setter_name(property_name: str) -> str:
    return f"set_{property_name}"


def storage_name(property_name: str) -> str:
    return f"_{property_name}"


def factory_name(type_name: str) -> str:
    name = snake_case(type_name)
    if name == type_name or keyword.iskeyword(name):
        name = f"create_{name}"
    return name


def unit_name(type_name: str) -> str:
    return snake_case(type_name)


def free_name(preferred: str, taken: Iterable[str]) -> str:
    used = set(taken)
    name = preferred
    while name in used:
        name = f"{name}_"
    return name


def setter_documentation(property_name: str, documentation: str) -> str:
    summary = documentation.rstrip(".")
    summary = summary[:1].lower() + summary[1:]
    return (
        f"Setter for {property_name}: {summary}.\n"
        "\n"
        f":param {property_name}: the new value\n"
        ":return: Builder"
    )
