"""Tests for rule type handlers and the rule evaluator."""

from datetime import datetime
from decimal import Decimal

import pytest

from claims_engine.domain import AttachmentRef, ClaimRecord, RuleSpec
from claims_engine.enums import ClaimStatus, Outcome, Recommendation, RulePriority, RuleType
from claims_engine.errors import ValidationError
from claims_engine.services.rule_engine import RuleEvaluator, load_rule_handlers, recommend
from tests.conftest import bill


def record(amount="500.00", age: int | None = 40, attachments=None, policy_id="POL-1", claimant="Jane Doe") -> ClaimRecord:
    now = datetime(2026, 1, 15, 12, 0, 0)
    return ClaimRecord(
        pk=1,
        claim_id="CLM-000000000001",
        policy_id=policy_id,
        claimant_name=claimant,
        claimant_age=age,
        claimed_amount=Decimal(amount),
        status=ClaimStatus.PENDING,
        attachments=tuple(attachments) if attachments is not None else (bill(),),
        risk_score=None,
        risk_level=None,
        risk_reasons=(),
        validated=False,
        created_at=now,
        updated_at=now,
        version=1,
    )


def rule(rule_id, rule_type, priority="medium", active=True, version=1, **parameters) -> RuleSpec:
    return RuleSpec(
        rule_id=rule_id,
        name=rule_id,
        description="",
        rule_type=RuleType(rule_type),
        priority=RulePriority(priority),
        active=active,
        parameters=parameters,
        version=version,
    )


HANDLERS = load_rule_handlers()


# ── Handler discovery ────────────────────────────────────────────────────────

class TestDiscovery:
    def test_every_rule_type_has_a_handler(self):
        assert set(HANDLERS) == set(RuleType)


# ── Parameter validation ─────────────────────────────────────────────────────

class TestParameterValidation:
    def test_threshold_requires_positive_max_amount(self):
        with pytest.raises(ValidationError) as exc:
            HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": -5})
        assert "max_amount" in exc.value.field_errors

        with pytest.raises(ValidationError):
            HANDLERS[RuleType.THRESHOLD].validate_parameters({})
        with pytest.raises(ValidationError):
            HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": 0})
        with pytest.raises(ValidationError):
            HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": "lots"})

    def test_threshold_normalizes_numeric_strings(self):
        assert HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": "50000"}) == {"max_amount": 50000}
        assert HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": 99.5}) == {"max_amount": 99.5}

    def test_booleans_are_not_numbers(self):
        with pytest.raises(ValidationError):
            HANDLERS[RuleType.THRESHOLD].validate_parameters({"max_amount": True})

    def test_authorization_defaults_marker(self):
        params = HANDLERS[RuleType.AUTHORIZATION].validate_parameters({"preauth_floor": 0})
        assert params == {"preauth_floor": 0, "marker_document_type": "pre_authorization"}

    def test_validation_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            HANDLERS[RuleType.VALIDATION].validate_parameters({"required_fields": ["provider_npi"]})
        assert HANDLERS[RuleType.VALIDATION].validate_parameters({}) == {"required_fields": ["attachments"]}

    def test_eligibility_band(self):
        handler = HANDLERS[RuleType.ELIGIBILITY]
        assert handler.validate_parameters({"min_age": 18}) == {"min_age": 18}
        with pytest.raises(ValidationError):
            handler.validate_parameters({})
        with pytest.raises(ValidationError):
            handler.validate_parameters({"min_age": 65, "max_age": 18})
        with pytest.raises(ValidationError):
            handler.validate_parameters({"min_age": 17.5})

    def test_fraud_window_must_be_positive(self):
        handler = HANDLERS[RuleType.FRAUD]
        with pytest.raises(ValidationError):
            handler.validate_parameters({"duplicate_window_days": 0})
        assert handler.validate_parameters({"duplicate_window_days": 14}) == {
            "round_amount_multiple": 1000,
            "round_amount_min": 5000,
            "duplicate_window_days": 14,
        }


# ── Predicates ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPredicates:
    async def test_threshold_fails_strictly_above_ceiling(self):
        handler = HANDLERS[RuleType.THRESHOLD]
        r = rule("T", "threshold", max_amount=50000)
        assert (await handler.evaluate(record("60000.00"), r)).outcome == Outcome.FAIL
        assert (await handler.evaluate(record("50000.00"), r)).outcome == Outcome.PASS

    async def test_authorization_warns_without_marker(self):
        handler = HANDLERS[RuleType.AUTHORIZATION]
        r = rule("A", "authorization", preauth_floor=10000, marker_document_type="pre_authorization")
        assert (await handler.evaluate(record("12000.00"), r)).outcome == Outcome.WARN

        with_preauth = record("12000.00", attachments=[bill(), bill("preauth.pdf", "pre_authorization")])
        assert (await handler.evaluate(with_preauth, r)).outcome == Outcome.PASS
        assert (await handler.evaluate(record("10000.00"), r)).outcome == Outcome.PASS

    async def test_validation_fails_on_missing_attachments(self):
        handler = HANDLERS[RuleType.VALIDATION]
        r = rule("V", "validation", required_fields=["attachments", "claimant_age"])
        verdict = await handler.evaluate(record(attachments=[], age=None), r)
        assert verdict.outcome == Outcome.FAIL
        assert "attachments" in verdict.message and "claimant_age" in verdict.message

    async def test_eligibility_unknown_age_passes(self):
        handler = HANDLERS[RuleType.ELIGIBILITY]
        r = rule("E", "eligibility", min_age=18, max_age=65)
        assert (await handler.evaluate(record(age=None), r)).outcome == Outcome.PASS
        assert (await handler.evaluate(record(age=17), r)).outcome == Outcome.FAIL
        assert (await handler.evaluate(record(age=66), r)).outcome == Outcome.FAIL
        assert (await handler.evaluate(record(age=65), r)).outcome == Outcome.PASS

    async def test_fraud_round_amount(self):
        handler = HANDLERS[RuleType.FRAUD]
        r = rule("F", "fraud", round_amount_multiple=1000, round_amount_min=5000)
        assert (await handler.evaluate(record("9000.00"), r)).outcome == Outcome.WARN
        assert (await handler.evaluate(record("9000.50"), r)).outcome == Outcome.PASS
        assert (await handler.evaluate(record("4000.00"), r)).outcome == Outcome.PASS


# ── Evaluator ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRuleEvaluator:
    async def test_verdicts_in_priority_order_ties_by_rule_id(self):
        rules = [
            rule("B-low", "eligibility", "low", min_age=0),
            rule("Z-crit", "fraud", "critical"),
            rule("A-crit", "threshold", "critical", max_amount=1000),
            rule("M-high", "threshold", "high", max_amount=1000),
        ]
        result = await RuleEvaluator().evaluate(record(), rules)
        assert [v.rule_id for v in result.verdicts] == ["A-crit", "Z-crit", "M-high", "B-low"]
        assert result.rule_snapshot == (("A-crit", 1), ("Z-crit", 1), ("M-high", 1), ("B-low", 1))

    async def test_inactive_rules_are_skipped(self):
        rules = [rule("T", "threshold", max_amount=100, active=False)]
        result = await RuleEvaluator().evaluate(record("500.00"), rules)
        assert result.verdicts == ()
        assert result.recommendation == Recommendation.AUTO_APPROVE

    async def test_fail_beats_warn(self):
        rules = [
            rule("T", "threshold", max_amount=50000),
            rule("F", "fraud"),
        ]
        result = await RuleEvaluator().evaluate(record("60000.00"), rules)
        assert result.recommendation == Recommendation.AUTO_REJECT
        assert [v.rule_id for v in result.failures] == ["T"]
        assert [v.rule_id for v in result.warnings] == ["F"]

    async def test_single_warn_needs_review(self):
        rules = [rule("A", "authorization", preauth_floor=10000)]
        result = await RuleEvaluator().evaluate(record("12000.50"), rules)
        assert result.recommendation == Recommendation.MANUAL_REVIEW

    async def test_handler_error_becomes_warn(self):
        class Exploding:
            async def evaluate(self, claim, rule):
                raise RuntimeError("boom")

        handlers = dict(HANDLERS)
        handlers[RuleType.THRESHOLD] = Exploding()
        result = await RuleEvaluator(handlers).evaluate(record(), [rule("T", "threshold", max_amount=1)])
        assert result.verdicts[0].outcome == Outcome.WARN
        assert "boom" in result.verdicts[0].message
        assert result.recommendation == Recommendation.MANUAL_REVIEW

    async def test_evaluation_is_deterministic(self):
        rules = [
            rule("T", "threshold", "high", max_amount=50000),
            rule("A", "authorization", preauth_floor=10000),
            rule("F", "fraud", "critical"),
            rule("E", "eligibility", "low", min_age=18, max_age=100),
        ]
        claim = record("15000.00")
        evaluator = RuleEvaluator()
        first = await evaluator.evaluate(claim, rules)
        for _ in range(5):
            assert await evaluator.evaluate(claim, list(reversed(rules))) == first


class TestRecommend:
    def test_empty_verdicts_approve(self):
        assert recommend([]) == Recommendation.AUTO_APPROVE
