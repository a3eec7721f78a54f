from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from datacompat.diagnostics import DiagnosticSink, Severity
from datacompat.host.discovery import ClassDeclaration
from datacompat.model import derive_output_name


@dataclass(frozen=True)
class Accepted:
    declaration: ClassDeclaration


@dataclass(frozen=True)
class Rejected:
    declaration: ClassDeclaration
    reason: str


ValidationResult = Union[Accepted, Rejected]


@dataclass
class Validator:
    """Gatekeeper run before a candidate is resolved or synthesized.

    Rules are checked in a fixed order and the first failing rule is the one
    reported. A rejection is permanent for the candidate.
    """

    marker_suffix: str = "Data"
    diagnostics: Optional[DiagnosticSink] = None

    def validate(self, candidate: ClassDeclaration) -> ValidationResult:
        reason = self._first_failure(candidate)
        if reason is None:
            return Accepted(candidate)
        if self.diagnostics is not None:
            self.diagnostics.report(Severity.ERROR, reason, candidate)
        return Rejected(candidate, reason)

    def _first_failure(self, candidate: ClassDeclaration) -> Optional[str]:
        if candidate.qualified_name is None:
            return "@data_compat must target classes with a qualified name"
        if not candidate.is_dataclass:
            return f"@data_compat cannot target a non-dataclass {candidate.qualified_name}"
        if not candidate.is_private:
            return "@data_compat target must have private visibility"
        if candidate.has_type_parameters:
            return "@data_compat target shouldn't have type parameters"
        if not self._has_marker_suffix(candidate.simple_name):
            return f"@data_compat target must end with {self.marker_suffix} suffix naming"
        return None

    def _has_marker_suffix(self, name: str) -> bool:
        if not name.endswith(self.marker_suffix):
            return False
        output = derive_output_name(name, self.marker_suffix)
        return bool(output) and output.isidentifier() and output != name
