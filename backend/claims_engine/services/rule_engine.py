"""
Rule Evaluator

Discovers one handler per rule type from claims_engine.rules and runs an
active-rule snapshot against a claim snapshot. Evaluation reads nothing
but its arguments, so the same claim and rule set always give the same
result.
"""

import importlib
import logging
import pkgutil

from claims_engine.domain import ClaimRecord, EvaluationResult, RuleSpec, RuleVerdict
from claims_engine.enums import Outcome, Recommendation, RuleType
from claims_engine.rules.base import BaseRule

logger = logging.getLogger(__name__)

RULES_PACKAGE = "claims_engine.rules"

_handlers: dict[RuleType, BaseRule] = {}


def load_rule_handlers() -> dict[RuleType, BaseRule]:
    """Discover and register every BaseRule subclass in claims_engine.rules."""
    if _handlers:
        return _handlers

    package = importlib.import_module(RULES_PACKAGE)
    for _, modname, _ in pkgutil.iter_modules(package.__path__):
        if modname == "base":
            continue
        module = importlib.import_module(f"{RULES_PACKAGE}.{modname}")
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, BaseRule)
                and attr is not BaseRule
                and hasattr(attr, "rule_type")
            ):
                _handlers[attr.rule_type] = attr()

    missing = set(RuleType) - set(_handlers)
    if missing:
        raise RuntimeError(f"No rule handler for types: {sorted(t.value for t in missing)}")
    return _handlers


def recommend(verdicts: list[RuleVerdict] | tuple[RuleVerdict, ...]) -> Recommendation:
    """Any fail rejects; otherwise any warn needs a human; otherwise approve."""
    outcomes = {v.outcome for v in verdicts}
    if Outcome.FAIL in outcomes:
        return Recommendation.AUTO_REJECT
    if Outcome.WARN in outcomes:
        return Recommendation.MANUAL_REVIEW
    return Recommendation.AUTO_APPROVE


class RuleEvaluator:
    """Runs active rules against a claim."""

    def __init__(self, handlers: dict[RuleType, BaseRule] | None = None):
        self.handlers = handlers if handlers is not None else load_rule_handlers()

    async def evaluate(self, claim: ClaimRecord, active_rules: list[RuleSpec]) -> EvaluationResult:
        """
        Evaluate every active rule, in priority order, and derive a recommendation.

        Inactive rules in `active_rules` are skipped. A handler that raises
        produces a warn verdict carrying the error, so one broken rule sends
        the claim to manual review instead of failing the submission.
        """
        ordered = sorted((r for r in active_rules if r.active), key=lambda r: r.sort_key)
        verdicts: list[RuleVerdict] = []

        for rule in ordered:
            handler = self.handlers.get(rule.rule_type)
            try:
                if handler is None:
                    raise LookupError(f"no handler for rule type {rule.rule_type.value}")
                verdict = await handler.evaluate(claim, rule)
            except Exception as e:
                logger.warning(
                    "Rule %s raised on claim %s: %s", rule.rule_id, claim.claim_id, e,
                    extra={"claim_id": claim.claim_id, "rule_id": rule.rule_id},
                )
                verdict = RuleVerdict(
                    rule_id=rule.rule_id,
                    rule_type=rule.rule_type,
                    priority=rule.priority,
                    outcome=Outcome.WARN,
                    message=f"Rule evaluation error: {str(e)[:200]}",
                )
            verdicts.append(verdict)

        return EvaluationResult(
            claim_id=claim.claim_id,
            verdicts=tuple(verdicts),
            recommendation=recommend(verdicts),
            rule_snapshot=tuple((r.rule_id, r.version) for r in ordered),
        )
