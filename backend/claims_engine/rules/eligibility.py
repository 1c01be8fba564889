"""
Eligibility: claimant age must fall inside the configured band.

Age is optional on a claim. When it is unknown the rule passes with a note
rather than guessing.
"""

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import RuleType
from claims_engine.rules.base import BaseRule


class EligibilityRule(BaseRule):
    rule_type = RuleType.ELIGIBILITY
    default_parameters = {}

    def validate_parameters(self, parameters: dict) -> dict:
        errors: dict[str, str] = {}
        min_age = self.number(parameters, "min_age", errors, minimum=0, integer=True)
        max_age = self.number(parameters, "max_age", errors, minimum=0, integer=True)
        if not errors and min_age is None and max_age is None:
            errors["min_age"] = "min_age or max_age is required"
        if min_age is not None and max_age is not None and min_age > max_age:
            errors["max_age"] = "must be greater than or equal to min_age"
        self._raise_if(errors, self.rule_type)

        normalized = {}
        if min_age is not None:
            normalized["min_age"] = min_age
        if max_age is not None:
            normalized["max_age"] = max_age
        return normalized

    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        params = self.params(rule)
        min_age = params.get("min_age")
        max_age = params.get("max_age")

        if claim.claimant_age is None:
            return self._pass(rule, "claimant age unknown; eligibility not checked")
        if min_age is not None and claim.claimant_age < min_age:
            return self._fail(rule, f"claimant age {claim.claimant_age} below minimum {min_age}")
        if max_age is not None and claim.claimant_age > max_age:
            return self._fail(rule, f"claimant age {claim.claimant_age} above maximum {max_age}")
        return self._pass(rule, f"claimant age {claim.claimant_age} eligible")
