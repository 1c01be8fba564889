"""
Authorization: large claims should carry a pre-authorization document.

A missing pre-authorization is a warning, never a failure; the claim is
routed to manual review instead of being rejected.
"""

from decimal import Decimal

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import DocumentType, RuleType
from claims_engine.rules.base import BaseRule


class AuthorizationRule(BaseRule):
    rule_type = RuleType.AUTHORIZATION
    default_parameters = {"marker_document_type": DocumentType.PRE_AUTHORIZATION.value}

    def validate_parameters(self, parameters: dict) -> dict:
        errors: dict[str, str] = {}
        floor = self.number(parameters, "preauth_floor", errors, required=True, minimum=0)
        marker = parameters.get("marker_document_type", self.default_parameters["marker_document_type"])
        if not isinstance(marker, str) or not marker.strip():
            errors["marker_document_type"] = "must be a non-empty string"
        self._raise_if(errors, self.rule_type)
        return {"preauth_floor": self.json_number(floor), "marker_document_type": marker.strip()}

    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        params = self.params(rule)
        floor = Decimal(str(params["preauth_floor"]))
        marker = params["marker_document_type"]

        if claim.claimed_amount <= floor:
            return self._pass(rule, f"below pre-authorization floor {self.money(floor)}")
        if any(a.document_type == marker for a in claim.attachments):
            return self._pass(rule, "pre-authorization on file")
        return self._warn(
            rule,
            f"claimed amount {self.money(claim.claimed_amount)} exceeds {self.money(floor)} "
            f"without a {marker} attachment",
        )
