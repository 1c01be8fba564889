"""
Fraud pattern: static red flags on a single claim.

Only the round-amount pattern is checked here. Duplicate detection and the
external risk score belong to the FraudScorer; `duplicate_window_days` on a
fraud rule is read by the scorer, not by this handler.
"""

from decimal import Decimal

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import RuleType
from claims_engine.rules.base import BaseRule


class FraudPatternRule(BaseRule):
    """Warns on suspiciously round amounts (>= round_amount_min and a multiple of round_amount_multiple)."""

    rule_type = RuleType.FRAUD
    default_parameters = {
        "round_amount_multiple": 1000,
        "round_amount_min": 5000,
    }

    def validate_parameters(self, parameters: dict) -> dict:
        errors: dict[str, str] = {}
        multiple = self.number(parameters, "round_amount_multiple", errors, minimum=0, exclusive=True)
        minimum = self.number(parameters, "round_amount_min", errors, minimum=0)
        window = self.number(parameters, "duplicate_window_days", errors, minimum=0, exclusive=True, integer=True)
        self._raise_if(errors, self.rule_type)

        normalized = {
            "round_amount_multiple": self.json_number(multiple) if multiple is not None
            else self.default_parameters["round_amount_multiple"],
            "round_amount_min": self.json_number(minimum) if minimum is not None
            else self.default_parameters["round_amount_min"],
        }
        if window is not None:
            normalized["duplicate_window_days"] = window
        return normalized

    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        params = self.params(rule)
        multiple = Decimal(str(params["round_amount_multiple"]))
        minimum = Decimal(str(params["round_amount_min"]))

        amount = claim.claimed_amount
        if amount >= minimum and amount % multiple == 0:
            return self._warn(
                rule, f"round claimed amount {self.money(amount)} (multiple of {self.money(multiple)})",
            )
        return self._pass(rule, "no static fraud pattern")
