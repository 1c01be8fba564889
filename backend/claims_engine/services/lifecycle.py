"""
Lifecycle Controller

The claim state machine: pending -> approved | rejected, both terminal.

Submission creates the claim, evaluates it against the active rules,
scores it for fraud and applies the combined decision in a single
compare-and-swap write, so the evaluation, the assessment, the status
change and its audit entry commit together or not at all. System writes
retry a bounded number of times on version conflicts; admin decisions
never retry on the admin's behalf.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from claims_engine.config import settings
from claims_engine.domain import (
    AttachmentRef, ClaimDraft, ClaimHistory, ClaimRecord, EvaluationResult, FraudAssessment,
)
from claims_engine.enums import Actor, ClaimStatus, Recommendation
from claims_engine.errors import DependencyTimeout, IllegalTransition, ValidationError, VersionConflict
from claims_engine.middleware.metrics import claim_submissions_total, claim_transitions_total
from claims_engine.models import AssessmentRecord, EvaluationRecord
from claims_engine.services.aggregator import Aggregator
from claims_engine.services.audit_service import AuditService
from claims_engine.services.claim_store import ClaimStore, validate_draft
from claims_engine.services.risk_client import RiskScoreProvider, lookup_risk_score
from claims_engine.services.rule_catalog import RuleCatalog
from claims_engine.services.rule_engine import RuleEvaluator
from claims_engine.services.scoring_engine import FraudScorer, duplicate_window_days

logger = logging.getLogger(__name__)

DECISION_STATUS = {
    Recommendation.AUTO_APPROVE: ClaimStatus.APPROVED,
    Recommendation.AUTO_REJECT: ClaimStatus.REJECTED,
    Recommendation.MANUAL_REVIEW: ClaimStatus.PENDING,
}


@dataclass(frozen=True)
class SubmissionResult:
    claim: ClaimRecord
    evaluation: EvaluationResult
    assessment: FraudAssessment
    recommendation: Recommendation
    transitioned: bool


def combine(evaluation: EvaluationResult, assessment: FraudAssessment) -> Recommendation:
    """
    Rules rejecting wins outright; otherwise either side asking for review
    keeps the claim pending; otherwise approve.
    """
    if evaluation.recommendation == Recommendation.AUTO_REJECT:
        return Recommendation.AUTO_REJECT
    if Recommendation.MANUAL_REVIEW in (evaluation.recommendation, assessment.recommendation):
        return Recommendation.MANUAL_REVIEW
    return Recommendation.AUTO_APPROVE


def admin_actor(name: str | None) -> str:
    name = (name or "").strip()
    if not name or name == Actor.ADMIN.value or name.startswith(f"{Actor.ADMIN.value}:"):
        return name or Actor.ADMIN.value
    return f"{Actor.ADMIN.value}:{name}"


class LifecycleController:
    def __init__(
        self,
        store: ClaimStore,
        catalog: RuleCatalog,
        evaluator: RuleEvaluator,
        scorer: FraudScorer,
        risk_provider: RiskScoreProvider,
        aggregator: Aggregator,
        max_retries: int | None = None,
        risk_timeout: float | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.evaluator = evaluator
        self.scorer = scorer
        self.risk_provider = risk_provider
        self.aggregator = aggregator
        self.max_retries = max_retries if max_retries is not None else settings.cas_max_retries
        self.risk_timeout = risk_timeout if risk_timeout is not None else settings.risk_score_timeout_seconds

    # ── Submission ────────────────────────────────────────────────────────

    async def submit(
        self,
        draft: ClaimDraft,
        attachments: list[AttachmentRef] | None = None,
        risk_timeout: float | None = None,
    ) -> SubmissionResult:
        attachments = tuple(attachments if attachments is not None else draft.attachments)

        errors: dict[str, str] = {}
        try:
            validate_draft(draft)
        except ValidationError as e:
            errors.update(e.field_errors)
        if not attachments:
            errors["attachments"] = "At least one bill receipt is required"
        if errors:
            claim_submissions_total.labels(outcome="invalid").inc()
            raise ValidationError("Claim submission is invalid", errors)

        draft = ClaimDraft(
            policy_id=draft.policy_id,
            claimant_name=draft.claimant_name,
            claimed_amount=draft.claimed_amount,
            claimant_age=draft.claimant_age,
            attachments=attachments,
        )

        async def audit_created(claim, session):
            await AuditService(session).log_claim_submitted(
                claim.claim_id, str(claim.claimed_amount), len(claim.attachments),
            )

        claim = await self.store.create(draft, on_created=audit_created)
        await self.aggregator.record_created(ClaimStatus.PENDING)

        try:
            result = await self._evaluate_and_apply(claim, risk_timeout)
        except DependencyTimeout as e:
            claim_submissions_total.labels(outcome="dependency_timeout").inc()
            e.details["claim_id"] = claim.claim_id
            logger.warning("Claim %s left pending: %s", claim.claim_id, e.message,
                           extra={"claim_id": claim.claim_id})
            raise

        outcome = {
            ClaimStatus.APPROVED: "approved",
            ClaimStatus.REJECTED: "rejected",
        }.get(result.claim.status, "manual_review")
        claim_submissions_total.labels(outcome=outcome).inc()
        return result

    async def reevaluate(self, claim_id: str, risk_timeout: float | None = None) -> SubmissionResult:
        """Run evaluation and scoring again for a pending claim (e.g. after a dependency timeout)."""
        claim = await self.store.get(claim_id)
        if claim.status != ClaimStatus.PENDING:
            raise IllegalTransition(claim_id, claim.status.value, "reevaluate")
        return await self._evaluate_and_apply(claim, risk_timeout)

    async def _evaluate_and_apply(self, claim: ClaimRecord, risk_timeout: float | None) -> SubmissionResult:
        rules = await self.catalog.list_active()
        evaluation = await self.evaluator.evaluate(claim, rules)

        external = await lookup_risk_score(
            self.risk_provider, claim, risk_timeout if risk_timeout is not None else self.risk_timeout,
        )
        window = duplicate_window_days(rules)
        priors = await self.store.find_similar(
            claim.policy_id, claim.claimant_name,
            since=claim.created_at - timedelta(days=window),
            exclude=claim.claim_id,
            until=claim.created_at,
        )
        assessment = self.scorer.assess(claim, external, priors, window)
        recommendation = combine(evaluation, assessment)
        target = DECISION_STATUS[recommendation]

        evaluation_id = str(uuid4())
        assessment_id = str(uuid4())
        applied: dict = {}

        async def attach(row, session):
            session.add(EvaluationRecord(
                evaluation_id=evaluation_id,
                claim_pk=row.id,
                recommendation=evaluation.recommendation.value,
                verdicts=[v.to_dict() for v in evaluation.verdicts],
                rule_snapshot=[{"rule_id": rid, "version": ver} for rid, ver in evaluation.rule_snapshot],
            ))
            session.add(AssessmentRecord(
                assessment_id=assessment_id,
                claim_pk=row.id,
                external_score=Decimal(str(assessment.external_score)),
                risk_score=Decimal(str(assessment.risk_score)),
                risk_level=assessment.risk_level.value,
                reasons=list(assessment.reasons),
                duplicate_claim_ids=list(assessment.duplicate_claim_ids),
                recommendation=assessment.recommendation.value if assessment.recommendation else None,
            ))
            row.risk_score = Decimal(str(assessment.risk_score))
            row.risk_level = assessment.risk_level.value
            row.risk_reasons = list(assessment.reasons)
            row.validated = True

            audit = AuditService(session)
            await audit.log_claim_evaluated(
                row.claim_id, evaluation_id, assessment_id,
                recommendation.value, assessment.risk_level.value,
            )
            # An admin may have decided the claim while we were evaluating
            prior = ClaimStatus(row.status)
            applied.clear()
            if prior == ClaimStatus.PENDING and target != ClaimStatus.PENDING:
                row.status = target.value
                await audit.log_claim_transitioned(
                    row.claim_id, prior.value, target.value, Actor.SYSTEM.value,
                    evaluation_id=evaluation_id, assessment_id=assessment_id,
                )
                applied["prior"] = prior

        updated = await self._write_with_retry(claim, attach)

        if applied:
            await self.aggregator.record_transition(applied["prior"], updated.status)
            claim_transitions_total.labels(
                from_status=applied["prior"].value, to_status=updated.status.value, actor=Actor.SYSTEM.value,
            ).inc()

        logger.info(
            "Claim %s evaluated: rules=%s risk=%s (%.1f) -> %s",
            updated.claim_id, evaluation.recommendation.value, assessment.risk_level.value,
            assessment.risk_score, updated.status.value, extra={"claim_id": updated.claim_id},
        )
        return SubmissionResult(
            claim=updated,
            evaluation=EvaluationResult(
                claim_id=evaluation.claim_id,
                verdicts=evaluation.verdicts,
                recommendation=evaluation.recommendation,
                rule_snapshot=evaluation.rule_snapshot,
                evaluation_id=evaluation_id,
                created_at=updated.updated_at,
            ),
            assessment=FraudAssessment(
                claim_id=assessment.claim_id,
                external_score=assessment.external_score,
                risk_score=assessment.risk_score,
                risk_level=assessment.risk_level,
                reasons=assessment.reasons,
                recommendation=assessment.recommendation,
                duplicate_claim_ids=assessment.duplicate_claim_ids,
                assessment_id=assessment_id,
                created_at=updated.updated_at,
            ),
            recommendation=recommendation,
            transitioned=bool(applied),
        )

    async def _write_with_retry(self, claim: ClaimRecord, mutator) -> ClaimRecord:
        """System-side CAS loop: re-read and retry on conflict, up to max_retries attempts."""
        current = claim
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self.store.update(current.claim_id, current.version, mutator)
            except VersionConflict:
                logger.info("Version conflict on %s (attempt %d/%d)", current.claim_id, attempt, self.max_retries,
                            extra={"claim_id": current.claim_id})
                if attempt == self.max_retries:
                    raise
                current = await self.store.get(current.claim_id)
        raise VersionConflict(claim.claim_id, claim.version)

    # ── Admin decisions ───────────────────────────────────────────────────

    async def decide(self, claim_id: str, expected_version: int, decision: ClaimStatus | str, actor: str) -> ClaimRecord:
        """Admin approve/reject from pending. Stale versions fail immediately."""
        try:
            target = ClaimStatus(decision)
        except ValueError:
            raise ValidationError("Invalid decision", {"status": "must be approved or rejected"}) from None
        if target == ClaimStatus.PENDING:
            raise ValidationError("Invalid decision", {"status": "must be approved or rejected"})
        actor = admin_actor(actor)

        current = await self.store.get(claim_id)
        if current.status != ClaimStatus.PENDING:
            raise IllegalTransition(claim_id, current.status.value, target.value)

        async def transition(row, session):
            prior = row.status
            row.status = target.value  # raises IllegalTransition if no longer pending
            await AuditService(session).log_claim_transitioned(row.claim_id, prior, target.value, actor)

        updated = await self.store.update(claim_id, expected_version, transition)

        await self.aggregator.record_transition(ClaimStatus.PENDING, updated.status)
        claim_transitions_total.labels(
            from_status=ClaimStatus.PENDING.value, to_status=updated.status.value, actor=Actor.ADMIN.value,
        ).inc()
        logger.info("Claim %s %s by %s", claim_id, updated.status.value, actor, extra={"claim_id": claim_id})
        return updated

    # ── Reads ─────────────────────────────────────────────────────────────

    async def history(self, claim_id: str) -> ClaimHistory:
        claim = await self.store.get(claim_id)
        evaluations = await self.store.evaluations(claim_id)
        assessments = await self.store.assessments(claim_id)
        async with self.store.sessionmaker() as session:
            audit = await AuditService(session).entries_for("claim", claim_id)
        return ClaimHistory(
            claim=claim,
            evaluations=tuple(evaluations),
            assessments=tuple(assessments),
            audit=tuple(audit),
        )

    async def verify_audit(self, claim_id: str) -> dict:
        await self.store.get(claim_id)
        async with self.store.sessionmaker() as session:
            return await AuditService(session).verify_chain("claim", claim_id)
