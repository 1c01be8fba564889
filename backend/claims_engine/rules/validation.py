"""
Validation: structural completeness of a claim.
"""

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import RuleType
from claims_engine.rules.base import BaseRule

CHECKABLE_FIELDS = ("attachments", "policy_id", "claimant_name", "claimant_age")


class ValidationRule(BaseRule):
    """Fails when any of `required_fields` is absent or empty."""

    rule_type = RuleType.VALIDATION
    default_parameters = {"required_fields": ["attachments"]}

    def validate_parameters(self, parameters: dict) -> dict:
        fields = parameters.get("required_fields", self.default_parameters["required_fields"])
        if not isinstance(fields, list) or not fields:
            self._raise_if({"required_fields": "must be a non-empty list"}, self.rule_type)
        unknown = [f for f in fields if f not in CHECKABLE_FIELDS]
        if unknown:
            self._raise_if(
                {"required_fields": f"unknown fields {unknown}; allowed: {list(CHECKABLE_FIELDS)}"},
                self.rule_type,
            )
        # Keep declaration order, drop repeats
        return {"required_fields": list(dict.fromkeys(fields))}

    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        missing = []
        for name in self.params(rule)["required_fields"]:
            value = getattr(claim, name)
            if value is None or (isinstance(value, (str, tuple, list)) and not value):
                missing.append(name)
        if missing:
            return self._fail(rule, f"missing required fields: {', '.join(missing)}")
        return self._pass(rule, "all required fields present")
