"""Tests for fraud scoring: risk bands, duplicate detection and score validation."""

from dataclasses import replace
from datetime import timedelta

import pytest

from claims_engine.enums import Recommendation, RiskLevel
from claims_engine.errors import ValidationError
from claims_engine.services.scoring_engine import (
    DUPLICATE_REASON, FraudScorer, classify_risk, duplicate_window_days,
)
from tests.test_rule_engine import record, rule


def prior(claim, claim_id="CLM-PRIOR0000001", days_ago=5, amount=None, **changes):
    return replace(
        claim,
        claim_id=claim_id,
        created_at=claim.created_at - timedelta(days=days_ago),
        claimed_amount=amount if amount is not None else claim.claimed_amount,
        **changes,
    )


class TestRiskBands:
    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (49.99, RiskLevel.LOW),
        (50, RiskLevel.MEDIUM),
        (74.99, RiskLevel.MEDIUM),
        (75, RiskLevel.HIGH),
        (89.99, RiskLevel.HIGH),
        (90, RiskLevel.CRITICAL),
        (100, RiskLevel.CRITICAL),
    ])
    def test_lower_bound_inclusive(self, score, level):
        assert classify_risk(score) == level


class TestFraudScorer:
    def test_low_score_defers_to_rules(self):
        a = FraudScorer().assess(record(), 10, [])
        assert a.risk_level == RiskLevel.LOW
        assert a.risk_score == 10
        assert a.recommendation is None
        assert a.reasons == ()

    def test_high_external_score_needs_review(self):
        a = FraudScorer().assess(record("9000.00"), 91, [])
        assert a.risk_level == RiskLevel.CRITICAL
        assert a.recommendation == Recommendation.MANUAL_REVIEW
        assert a.reasons == ("external risk score 91",)

    def test_duplicate_lifts_score_to_floor(self):
        claim = record("1000.00")
        a = FraudScorer().assess(claim, 5, [prior(claim)])
        assert DUPLICATE_REASON in a.reasons
        assert a.risk_score >= 85
        assert a.risk_level == RiskLevel.HIGH
        assert a.recommendation == Recommendation.MANUAL_REVIEW
        assert a.duplicate_claim_ids == ("CLM-PRIOR0000001",)

    def test_duplicate_keeps_higher_external_score(self):
        claim = record("1000.00")
        a = FraudScorer().assess(claim, 95, [prior(claim)])
        assert a.risk_score == 95
        assert a.risk_level == RiskLevel.CRITICAL
        assert a.reasons == (DUPLICATE_REASON, "external risk score 95")

    def test_amount_tolerance_is_one_percent(self):
        claim = record("1000.00")
        scorer = FraudScorer()
        inside = prior(claim, amount=claim.claimed_amount + 10)
        outside = prior(claim, amount=claim.claimed_amount + 11)
        assert scorer.assess(claim, 0, [inside]).duplicate_claim_ids == (inside.claim_id,)
        assert scorer.assess(claim, 0, [outside]).duplicate_claim_ids == ()

    def test_tolerance_is_relative_to_earlier_claim(self):
        scorer = FraudScorer()
        earlier = prior(record("1000.00"))
        # $10 below a $1000 claim is exactly 1% of the earlier amount
        assert scorer.assess(record("990.00"), 0, [earlier]).duplicate_claim_ids == (earlier.claim_id,)
        assert scorer.assess(record("989.99"), 0, [earlier]).duplicate_claim_ids == ()

    def test_later_claims_are_not_duplicates(self):
        claim = record("1000.00")
        later = prior(claim, days_ago=-2)
        assert FraudScorer().assess(claim, 0, [later], window_days=30).duplicate_claim_ids == ()

    def test_window_and_identity_must_match(self):
        claim = record("1000.00")
        scorer = FraudScorer()
        too_old = prior(claim, days_ago=31)
        other_policy = prior(claim, policy_id="POL-OTHER")
        other_claimant = prior(claim, claimant_name="John Roe")
        a = scorer.assess(claim, 0, [too_old, other_policy, other_claimant], window_days=30)
        assert a.duplicate_claim_ids == ()
        assert scorer.assess(claim, 0, [too_old], window_days=45).duplicate_claim_ids == (too_old.claim_id,)

    def test_claimant_match_ignores_case(self):
        claim = record("1000.00")
        a = FraudScorer().assess(claim, 0, [prior(claim, claimant_name="JANE DOE")])
        assert DUPLICATE_REASON in a.reasons

    def test_claim_is_not_its_own_duplicate(self):
        claim = record("1000.00")
        assert FraudScorer().assess(claim, 0, [claim]).duplicate_claim_ids == ()

    @pytest.mark.parametrize("score", [-1, 100.01, "high", None, True])
    def test_external_score_must_be_in_range(self, score):
        with pytest.raises(ValidationError):
            FraudScorer().assess(record(), score, [])


class TestDuplicateWindow:
    def test_largest_active_fraud_window_wins(self):
        rules = [
            rule("F1", "fraud", duplicate_window_days=14),
            rule("F2", "fraud", duplicate_window_days=60),
            rule("F3", "fraud", active=False, duplicate_window_days=365),
            rule("T", "threshold", max_amount=10),
        ]
        assert duplicate_window_days(rules, default=30) == 60

    def test_default_when_no_fraud_rule_sets_one(self):
        assert duplicate_window_days([rule("F", "fraud")], default=30) == 30
