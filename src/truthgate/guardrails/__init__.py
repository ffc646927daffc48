"""Guardrails policy engine."""

from .engine import GuardrailsEngine
from .models import AppliedRule, GuardrailsReport
from .rules import EVALUATORS, RuleContext, RuleOutcome, evaluate_rule

__all__ = [
    "GuardrailsEngine",
    "AppliedRule",
    "GuardrailsReport",
    "EVALUATORS",
    "RuleContext",
    "RuleOutcome",
    "evaluate_rule",
]
