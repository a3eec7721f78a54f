from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Protocol

from datacompat.logging import get_logger

if TYPE_CHECKING:
    from datacompat.host.discovery import ClassDeclaration

_LOGGER = get_logger("diagnostics")


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    location: str = ""

    def render(self) -> str:
        prefix = f"{self.location}: " if self.location else ""
        return f"{prefix}{self.severity.value}: {self.message}"


class DiagnosticSink(Protocol):
    def report(
        self,
        severity: Severity,
        message: str,
        declaration: Optional["ClassDeclaration"] = None,
    ) -> None: ...


@dataclass
class CollectingDiagnosticSink:
    """Keeps every report and mirrors it to the datacompat logger."""

    diagnostics: List[Diagnostic] = field(default_factory=list)

    def report(
        self,
        severity: Severity,
        message: str,
        declaration: Optional["ClassDeclaration"] = None,
    ) -> None:
        location = declaration.location if declaration is not None else ""
        diagnostic = Diagnostic(severity=severity, message=message, location=location)
        self.diagnostics.append(diagnostic)
        if severity is Severity.ERROR:
            _LOGGER.error(diagnostic.render())
        elif severity is Severity.WARNING:
            _LOGGER.warning(diagnostic.render())
        else:
            _LOGGER.info(diagnostic.render())

    @property
    def errors(self) -> List[Diagnostic]:
        return [item for item in self.diagnostics if item.severity is Severity.ERROR]

    def has_errors(self) -> bool:
        return bool(self.errors)
