from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

from datacompat.collector import DefaultValueIndex
from datacompat.model import PropertyDescriptor, TypeDescriptor


@dataclass(frozen=True)
class ClassifiedType:
    descriptor: TypeDescriptor
    properties: Tuple[PropertyDescriptor, ...]

    @property
    def mandatory(self) -> Tuple[PropertyDescriptor, ...]:
        return tuple(prop for prop in self.properties if prop.is_mandatory)

    @property
    def optional(self) -> Tuple[PropertyDescriptor, ...]:
        return tuple(prop for prop in self.properties if not prop.is_mandatory)


def classify(descriptor: TypeDescriptor, index: DefaultValueIndex) -> ClassifiedType:
    """Attach registered defaults so each property knows whether it is mandatory.

    A property is mandatory when it has no registered default and its type is
    not nullable. Inherited properties look up the defaults of the base that
    declares them.
    """
    properties = tuple(
        replace(
            prop,
            default_expression=index.lookup(prop.declared_in or descriptor.owner_key, prop.name),
        )
        for prop in descriptor.properties
    )
    return ClassifiedType(descriptor=replace(descriptor, properties=properties), properties=properties)
