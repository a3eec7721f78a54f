"""Multi-round driver.

Each round sees the original sources plus every module generated so far, so
a candidate that names a type generated in an earlier round resolves on the
next pass. The loop stops when nothing is deferred, when a round makes no
progress, or after ``max_rounds``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from datacompat.collector import collect_defaults
from datacompat.config import DataCompatSettings
from datacompat.diagnostics import CollectingDiagnosticSink, Diagnostic, Severity
from datacompat.emission import EmissionSink, GeneratedUnit
from datacompat.host.discovery import ClassDeclaration, discover_candidates
from datacompat.host.source import SourceUnit
from datacompat.host.symbols import ModuleExists, RoundSymbols, default_module_exists
from datacompat.logging import get_logger
from datacompat.processor import Processor, RoundContext
from datacompat.validator import Rejected

_LOGGER = get_logger("session")


@dataclass
class SessionResult:
    generated: List[GeneratedUnit] = field(default_factory=list)
    rejected: List[Rejected] = field(default_factory=list)
    deferred: List[ClassDeclaration] = field(default_factory=list)
    rounds: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(item.severity is Severity.ERROR for item in self.diagnostics)

    def generated_modules(self) -> List[str]:
        return [unit.module_name for unit in self.generated]


class Session:
    def __init__(
        self,
        settings: DataCompatSettings,
        sink: EmissionSink,
        diagnostics: Optional[CollectingDiagnosticSink] = None,
        module_exists: ModuleExists = default_module_exists,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self.diagnostics = diagnostics if diagnostics is not None else CollectingDiagnosticSink()
        self.module_exists = module_exists

    def run(self, units: Iterable[SourceUnit]) -> SessionResult:
        pool: Dict[str, SourceUnit] = {unit.module_name: unit for unit in units}
        finished: Set[str] = set()
        result = SessionResult()
        deferred: List[ClassDeclaration] = []
        unresolved: Dict[str, tuple[str, ...]] = {}
        claimed: Set[str] = set()

        for round_number in range(1, self.settings.max_rounds + 1):
            candidates = [
                candidate
                for candidate in discover_candidates(pool.values())
                if candidate.key not in finished
            ]
            if not candidates:
                break
            result.rounds = round_number
            context = RoundContext(
                round_number=round_number,
                settings=self.settings,
                units=dict(pool),
                symbols=RoundSymbols(dict(pool), module_exists=self.module_exists),
                index=collect_defaults(pool.values()),
                diagnostics=self.diagnostics,
                claimed_modules=claimed,
            )
            deferred = Processor(context, self.sink).process(candidates)
            unresolved = context.unresolved
            waiting = {candidate.key for candidate in deferred}
            finished.update(
                candidate.key for candidate in candidates if candidate.key not in waiting
            )
            result.generated.extend(context.generated)
            result.rejected.extend(context.rejected)
            for unit in context.generated:
                pool[unit.module_name] = SourceUnit.from_code(
                    unit.module_name, unit.code, generated=True
                )
            if not deferred:
                break
            if not context.generated:
                _LOGGER.debug("Round %d made no progress", round_number)
                break

        for candidate in deferred:
            names = ", ".join(unresolved.get(candidate.key, ()))
            self.diagnostics.report(
                Severity.ERROR,
                f"Unresolved symbols in {candidate.qualname}: {names}",
                candidate,
            )
        result.deferred = list(deferred)
        result.diagnostics = list(self.diagnostics.diagnostics)
        return result
