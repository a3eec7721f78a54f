"""Synthesis of output-type plans from classified descriptors."""

from datacompat.synthesis.engine import Synthesizer
from datacompat.synthesis.naming import factory_name, setter_name, snake_case, unit_name
from datacompat.synthesis.plan import (
    BuilderPlan,
    ComparisonPolicy,
    EqualityTerm,
    FactoryPlan,
    ImportPlan,
    OutputTypePlan,
)

__all__ = [
    "BuilderPlan",
    "ComparisonPolicy",
    "EqualityTerm",
    "FactoryPlan",
    "ImportPlan",
    "OutputTypePlan",
    "Synthesizer",
    "factory_name",
    "setter_name",
    "snake_case",
    "unit_name",
]
