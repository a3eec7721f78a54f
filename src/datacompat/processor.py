from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Set

from datacompat.classifier import classify
from datacompat.collector import DefaultValueIndex
from datacompat.config import DataCompatSettings
from datacompat.diagnostics import DiagnosticSink, Severity
from datacompat.emission import EmissionAdapter, EmissionSink, GeneratedUnit
from datacompat.exceptions import EmissionError, InvariantViolation, UnresolvedSymbols
from datacompat.host.describe import describe
from datacompat.host.discovery import ClassDeclaration
from datacompat.host.source import SourceUnit
from datacompat.host.symbols import RoundSymbols
from datacompat.logging import get_logger
from datacompat.synthesis.engine import Synthesizer
from datacompat.validator import Rejected, Validator

_LOGGER = get_logger("processor")


@dataclass
class RoundContext:
    """Everything one round reads and writes.

    ``claimed_modules`` is shared by every round of a session, so an output
    module can only be produced once per run.
    """

    round_number: int
    settings: DataCompatSettings
    units: Mapping[str, SourceUnit]
    symbols: RoundSymbols
    index: DefaultValueIndex
    diagnostics: DiagnosticSink
    generated: List[GeneratedUnit] = field(default_factory=list)
    rejected: List[Rejected] = field(default_factory=list)
    unresolved: Dict[str, tuple[str, ...]] = field(default_factory=dict)
    claimed_modules: Set[str] = field(default_factory=set)


class Processor:
    """Runs validate, describe, classify, plan and emit for one round.

    ``process`` returns the candidates whose symbols are not available yet.
    Failures of a single candidate are reported and never stop the round.
    """

    def __init__(self, context: RoundContext, sink: EmissionSink) -> None:
        self.context = context
        settings = context.settings
        self.validator = Validator(
            marker_suffix=settings.marker_suffix,
            diagnostics=context.diagnostics,
        )
        self.synthesizer = Synthesizer(
            check_mandatory_in_build=settings.check_mandatory_in_build,
            header=settings.header,
        )
        self.adapter = EmissionAdapter(sink)

    def process(self, candidates: Iterable[ClassDeclaration]) -> List[ClassDeclaration]:
        deferred: List[ClassDeclaration] = []
        for candidate in candidates:
            if self._process_one(candidate):
                deferred.append(candidate)
        _LOGGER.info(
            "Round %d: %d generated, %d rejected, %d deferred",
            self.context.round_number,
            len(self.context.generated),
            len(self.context.rejected),
            len(deferred),
        )
        return deferred

    def _process_one(self, candidate: ClassDeclaration) -> bool:
        """Returns True when the candidate has to wait for a later round."""
        context = self.context
        result = self.validator.validate(candidate)
        if isinstance(result, Rejected):
            context.rejected.append(result)
            return False
        try:
            descriptor = describe(
                candidate,
                context.symbols,
                float_types=context.settings.float_types,
                marker_suffix=context.settings.marker_suffix,
            )
        except UnresolvedSymbols as exc:
            _LOGGER.debug("Deferring %s: %s", candidate.key, exc)
            context.unresolved[candidate.key] = exc.names
            return True
        except InvariantViolation as exc:
            self._fail(candidate, str(exc))
            return False

        plan = self.synthesizer.plan(classify(descriptor, context.index))
        existing = context.units.get(plan.module_name)
        if existing is not None and not existing.generated:
            self._fail(
                candidate,
                f"output module {plan.module_name} would overwrite a source module",
            )
            return False
        if plan.module_name in context.claimed_modules:
            self._fail(candidate, f"output module {plan.module_name} is generated twice")
            return False
        context.claimed_modules.add(plan.module_name)
        try:
            unit = self.adapter.emit(plan)
        except EmissionError as exc:
            self._fail(candidate, str(exc))
            return False
        context.generated.append(unit)
        _LOGGER.debug("Generated %s from %s", unit.module_name, candidate.key)
        return False

    def _fail(self, candidate: ClassDeclaration, reason: str) -> None:
        self.context.diagnostics.report(Severity.ERROR, reason, candidate)
        self.context.rejected.append(Rejected(candidate, reason))
