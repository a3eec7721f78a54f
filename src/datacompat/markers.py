"""Source markers read by the datacompat generator.

Both markers are inert at runtime. The generator finds them by reading the
source, so they only need to be importable and to keep the decorated class
usable as a plain dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

ClassT = TypeVar("ClassT", bound=type)


def data_compat(
    imports_for_defaults: Sequence[str] = (),
    generate_namespace: bool = False,
) -> Callable[[ClassT], ClassT]:
    """Mark a private ``_...Data`` dataclass for builder synthesis.

    ``imports_for_defaults`` lists qualified names imported by the generated
    module so that ``Default`` expressions can refer to them.
    ``generate_namespace`` attaches an empty ``Companion`` class to the
    generated type.
    """

    def _mark(cls: ClassT) -> ClassT:
        return cls

    return _mark


@dataclass(frozen=True)
class Default:
    """Default expression for a field, used as ``Annotated[T, Default("...")]``."""

    value_as_string: str


__all__ = ["Default", "data_compat"]
