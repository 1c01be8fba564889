"""
Pydantic schemas for API request/response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from claims_engine.domain import (
    AuditEntry, ClaimRecord, EvaluationResult, FraudAssessment, RuleSpec,
)


# ── Claims ──

class AttachmentOut(BaseModel):
    filename: str
    content_type: str
    storage_handle: str
    document_type: str
    size_bytes: int


class ClaimSummary(BaseModel):
    """Row of the claims table."""
    id: str
    claimant_name: str
    policy_id: str
    claimed_amount: float
    status: str
    updated_at: datetime
    validated: bool
    risk_level: str | None = None
    version: int

    @classmethod
    def from_record(cls, c: ClaimRecord) -> "ClaimSummary":
        return cls(
            id=c.claim_id,
            claimant_name=c.claimant_name,
            policy_id=c.policy_id,
            claimed_amount=float(c.claimed_amount),
            status=c.status.value,
            updated_at=c.updated_at,
            validated=c.validated,
            risk_level=c.risk_level.value if c.risk_level else None,
            version=c.version,
        )


class ClaimDetail(ClaimSummary):
    claimant_age: int | None = None
    risk_score: float | None = None
    risk_reasons: list[str] = []
    created_at: datetime
    attachments: list[AttachmentOut] = []

    @classmethod
    def from_record(cls, c: ClaimRecord) -> "ClaimDetail":
        base = ClaimSummary.from_record(c).model_dump()
        return cls(
            **base,
            claimant_age=c.claimant_age,
            risk_score=float(c.risk_score) if c.risk_score is not None else None,
            risk_reasons=list(c.risk_reasons),
            created_at=c.created_at,
            attachments=[
                AttachmentOut(
                    filename=a.filename,
                    content_type=a.content_type,
                    storage_handle=a.storage_handle,
                    document_type=a.document_type,
                    size_bytes=a.size_bytes,
                )
                for a in c.attachments
            ],
        )


class ClaimListResponse(BaseModel):
    items: list[ClaimSummary]
    total: int
    limit: int
    offset: int


class SubmissionResponse(BaseModel):
    id: str
    status: str
    version: int
    recommendation: str
    risk_level: str


class StatusUpdate(BaseModel):
    id: str
    status: str = Field(..., description="approved | rejected")
    version: int = Field(..., ge=1)


class StatusCountsResponse(BaseModel):
    approved: int
    pending: int
    rejected: int
    total: int


class VerdictOut(BaseModel):
    rule_id: str
    rule_type: str
    priority: str
    outcome: str
    message: str


class EvaluationOut(BaseModel):
    evaluation_id: str | None
    recommendation: str
    verdicts: list[VerdictOut]
    rule_snapshot: list[dict]
    created_at: datetime | None

    @classmethod
    def from_result(cls, e: EvaluationResult) -> "EvaluationOut":
        return cls(
            evaluation_id=e.evaluation_id,
            recommendation=e.recommendation.value,
            verdicts=[VerdictOut(**v.to_dict()) for v in e.verdicts],
            rule_snapshot=[{"rule_id": rid, "version": ver} for rid, ver in e.rule_snapshot],
            created_at=e.created_at,
        )


class AssessmentOut(BaseModel):
    assessment_id: str | None
    external_score: float
    risk_score: float
    risk_level: str
    reasons: list[str]
    recommendation: str | None
    duplicate_claim_ids: list[str]
    created_at: datetime | None

    @classmethod
    def from_assessment(cls, a: FraudAssessment) -> "AssessmentOut":
        return cls(
            assessment_id=a.assessment_id,
            external_score=a.external_score,
            risk_score=a.risk_score,
            risk_level=a.risk_level.value,
            reasons=list(a.reasons),
            recommendation=a.recommendation.value if a.recommendation else None,
            duplicate_claim_ids=list(a.duplicate_claim_ids),
            created_at=a.created_at,
        )


class AuditEntryOut(BaseModel):
    event_id: str
    event_type: str
    actor: str
    action: str
    prior_status: str | None
    new_status: str | None
    evaluation_id: str | None
    assessment_id: str | None
    details: dict
    previous_hash: str | None
    current_hash: str
    created_at: datetime

    @classmethod
    def from_entry(cls, e: AuditEntry) -> "AuditEntryOut":
        return cls(
            event_id=e.event_id,
            event_type=e.event_type,
            actor=e.actor,
            action=e.action,
            prior_status=e.prior_status,
            new_status=e.new_status,
            evaluation_id=e.evaluation_id,
            assessment_id=e.assessment_id,
            details=e.details,
            previous_hash=e.previous_hash,
            current_hash=e.current_hash,
            created_at=e.created_at,
        )


class ClaimHistoryResponse(BaseModel):
    claim: ClaimDetail
    evaluations: list[EvaluationOut]
    assessments: list[AssessmentOut]
    audit: list[AuditEntryOut]


class ReevaluationResponse(BaseModel):
    claim: ClaimDetail
    evaluation: EvaluationOut
    assessment: AssessmentOut
    recommendation: str


# ── Rules ──

class RuleOut(BaseModel):
    rule_id: str
    name: str
    description: str
    rule_type: str
    priority: str
    active: bool
    parameters: dict
    version: int

    @classmethod
    def from_spec(cls, r: RuleSpec) -> "RuleOut":
        return cls(
            rule_id=r.rule_id,
            name=r.name,
            description=r.description,
            rule_type=r.rule_type.value,
            priority=r.priority.value,
            active=r.active,
            parameters=r.parameters,
            version=r.version,
        )


class RuleListResponse(BaseModel):
    rules: list[RuleOut]
    total: int


class RuleUpsert(BaseModel):
    name: str
    description: str = ""
    rule_type: str
    priority: str
    parameters: dict = {}
    active: bool = True


class RuleActiveUpdate(BaseModel):
    active: bool


class ActivationOut(BaseModel):
    active: bool
    actor: str
    changed_at: datetime


class RuleDetail(RuleOut):
    activation_history: list[ActivationOut] = []


class TypeCount(BaseModel):
    total: int
    active: int


class RuleStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_type: dict[str, TypeCount]
    by_priority: dict[str, TypeCount]


# ── Audit ──

class ChainVerification(BaseModel):
    claim_id: str
    valid: bool
    entries_checked: int
    first_invalid: str | None = None
    reason: str | None = None
