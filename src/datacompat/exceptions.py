"""Exception types raised inside the datacompat pipeline."""

from __future__ import annotations

from typing import Iterable


class DataCompatError(Exception):
    """Base class for datacompat failures."""


class UnresolvedSymbols(DataCompatError):
    """A candidate references names that are not available yet.

    This is a deferral, not an error: the driver retries the candidate in the
    next round.
    """

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(set(names)))
        super().__init__("Unresolved symbols: " + ", ".join(self.names))


class InvariantViolation(DataCompatError):
    """A candidate breaks an invariant the engine relies on.

    Synthesis of that single type is aborted.
    """


class EmissionError(DataCompatError):
    """Writing an output unit failed."""

    def __init__(self, unit_name: str, cause: BaseException) -> None:
        self.unit_name = unit_name
        self.cause = cause
        super().__init__(f"Failed to write {unit_name}: {cause}")


class ConfigError(DataCompatError):
    """Configuration content could not be validated."""


__all__ = [
    "ConfigError",
    "DataCompatError",
    "EmissionError",
    "InvariantViolation",
    "UnresolvedSymbols",
]
