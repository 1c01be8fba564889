"""
Threshold: reject claims above a configured ceiling.
"""

from decimal import Decimal

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import RuleType
from claims_engine.rules.base import BaseRule


class ThresholdRule(BaseRule):
    """Fails when the claimed amount is strictly greater than `max_amount`."""

    rule_type = RuleType.THRESHOLD
    default_parameters = {}

    def validate_parameters(self, parameters: dict) -> dict:
        errors: dict[str, str] = {}
        max_amount = self.number(parameters, "max_amount", errors, required=True, minimum=0, exclusive=True)
        self._raise_if(errors, self.rule_type)
        return {"max_amount": self.json_number(max_amount)}

    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        ceiling = Decimal(str(self.params(rule)["max_amount"]))
        if claim.claimed_amount > ceiling:
            return self._fail(
                rule,
                f"claimed amount {self.money(claim.claimed_amount)} exceeds ceiling {self.money(ceiling)}",
            )
        return self._pass(rule, f"within ceiling {self.money(ceiling)}")
