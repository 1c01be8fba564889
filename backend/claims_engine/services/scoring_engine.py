"""
Fraud Scorer

Combines the external 0-100 risk score with duplicate-claim detection into
a FraudAssessment. Duplicates are a deterministic signal, so a match lifts
the effective score to the duplicate floor whatever the external model
said.

Bands (lower bound inclusive):
  low < 50 <= medium < 75 <= high < 90 <= critical
"""

from datetime import timedelta
from decimal import Decimal

from claims_engine.config import settings
from claims_engine.domain import ClaimRecord, FraudAssessment, RuleSpec
from claims_engine.enums import Recommendation, RiskLevel, RuleType
from claims_engine.errors import ValidationError

DUPLICATE_REASON = "duplicate claim detected"

# (lower bound, level), checked highest first
RISK_BANDS = (
    (90.0, RiskLevel.CRITICAL),
    (75.0, RiskLevel.HIGH),
    (50.0, RiskLevel.MEDIUM),
    (0.0, RiskLevel.LOW),
)


def classify_risk(score: float) -> RiskLevel:
    for lower, level in RISK_BANDS:
        if score >= lower:
            return level
    return RiskLevel.LOW


def duplicate_window_days(active_rules: list[RuleSpec], default: int | None = None) -> int:
    """Largest `duplicate_window_days` among active fraud rules, else the configured default."""
    windows = [
        int(r.parameters["duplicate_window_days"])
        for r in active_rules
        if r.active and r.rule_type == RuleType.FRAUD and r.parameters.get("duplicate_window_days")
    ]
    if windows:
        return max(windows)
    return default if default is not None else settings.duplicate_window_days


class FraudScorer:
    """Classifies fraud risk for a single claim."""

    def __init__(
        self,
        amount_tolerance: float | None = None,
        duplicate_floor: float | None = None,
    ):
        self.amount_tolerance = Decimal(str(
            amount_tolerance if amount_tolerance is not None else settings.duplicate_amount_tolerance
        ))
        self.duplicate_floor = duplicate_floor if duplicate_floor is not None else settings.duplicate_score_floor

    def find_duplicates(
        self, claim: ClaimRecord, prior_claims: list[ClaimRecord], window_days: int,
    ) -> list[ClaimRecord]:
        """
        Earlier claims for the same policy and claimant, filed inside the
        window, whose amount this claim is within tolerance of.

        Tolerance is relative to the earlier claim's amount. Claims filed
        after this one never count, so re-evaluating an old claim does not
        flag it against its own resubmissions.
        """
        since = claim.created_at - timedelta(days=window_days)
        return [
            other for other in prior_claims
            if other.claim_id != claim.claim_id
            and other.policy_id == claim.policy_id
            and other.claimant_name.lower() == claim.claimant_name.lower()
            and since <= other.created_at <= claim.created_at
            and abs(other.claimed_amount - claim.claimed_amount) <= other.claimed_amount * self.amount_tolerance
        ]

    def assess(
        self,
        claim: ClaimRecord,
        external_risk_score: float,
        prior_claims: list[ClaimRecord],
        window_days: int | None = None,
    ) -> FraudAssessment:
        if isinstance(external_risk_score, bool) or not isinstance(external_risk_score, (int, float, Decimal)):
            raise ValidationError("External risk score must be a number", {"risk_score": "must be a number"})
        external = float(external_risk_score)
        if not 0.0 <= external <= 100.0:
            raise ValidationError(
                f"External risk score {external} outside 0-100", {"risk_score": "must be between 0 and 100"},
            )

        window = window_days if window_days is not None else settings.duplicate_window_days
        duplicates = self.find_duplicates(claim, prior_claims, window)

        reasons: list[str] = []
        score = external
        if duplicates:
            reasons.append(DUPLICATE_REASON)
            score = max(score, self.duplicate_floor)

        level = classify_risk(score)
        if external >= 75.0:
            reasons.append(f"external risk score {external:g}")

        recommendation = None
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            recommendation = Recommendation.MANUAL_REVIEW

        return FraudAssessment(
            claim_id=claim.claim_id,
            external_score=round(external, 2),
            risk_score=round(score, 2),
            risk_level=level,
            reasons=tuple(reasons),
            recommendation=recommendation,
            duplicate_claim_ids=tuple(d.claim_id for d in duplicates),
        )
