"""
Claims API

Intake (multipart, as posted by the claim form), admin status decisions,
listing, counts and per-claim history.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from claims_engine.api.deps import Services, get_actor, get_aggregator, get_lifecycle, get_services
from claims_engine.domain import ClaimDraft
from claims_engine.enums import ClaimStatus, DocumentType, RiskLevel
from claims_engine.errors import ValidationError
from claims_engine.schemas.schemas import (
    AssessmentOut,
    AuditEntryOut,
    ClaimDetail,
    ClaimHistoryResponse,
    ClaimListResponse,
    ClaimSummary,
    EvaluationOut,
    ReevaluationResponse,
    StatusCountsResponse,
    StatusUpdate,
    SubmissionResponse,
)
from claims_engine.services.aggregator import Aggregator
from claims_engine.services.blob_store import check_upload
from claims_engine.services.claim_store import validate_draft
from claims_engine.services.lifecycle import LifecycleController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/claims", tags=["claims"])

# Internal field name -> form field name
FORM_FIELDS = {
    "policy_id": "policyId",
    "claimant_name": "username",
    "claimed_amount": "claimedAmt",
    "claimant_age": "claimantAge",
    "attachments": "billReceipts",
}


def _form_errors(errors: dict[str, str]) -> dict[str, str]:
    return {FORM_FIELDS.get(k, k): v for k, v in errors.items()}


# ── POST /api/claims — submit a claim ───────────────────────────────────────

@router.post("", response_model=SubmissionResponse, status_code=201)
async def submit_claim(
    policyId: str | None = Form(None),
    username: str | None = Form(None),
    claimedAmt: str | None = Form(None),
    claimantAge: str | None = Form(None),
    billReceipts: list[UploadFile] | None = File(None),
    preAuthorization: list[UploadFile] | None = File(None),
    services: Services = Depends(get_services),
):
    """Validate the form, store the uploads, then run the submission lifecycle."""
    errors: dict[str, str] = {}

    age = None
    if claimantAge not in (None, ""):
        try:
            age = int(claimantAge)
        except ValueError:
            errors["claimant_age"] = "Claimant age must be a whole number"

    draft = ClaimDraft(policy_id=policyId, claimant_name=username, claimed_amount=claimedAmt, claimant_age=age)
    try:
        validate_draft(draft)
    except ValidationError as e:
        for field, message in e.field_errors.items():
            errors.setdefault(field, message)

    uploads: list[tuple[UploadFile, bytes, str]] = []
    for field, files, document_type in (
        ("attachments", billReceipts or [], DocumentType.BILL_RECEIPT.value),
        ("preAuthorization", preAuthorization or [], DocumentType.PRE_AUTHORIZATION.value),
    ):
        for upload in files:
            data = await upload.read()
            file_errors = check_upload(field, upload.filename, upload.content_type, data)
            if file_errors:
                errors.setdefault(field, file_errors[field])
            uploads.append((upload, data, document_type))

    if not billReceipts:
        errors["attachments"] = "At least one bill receipt is required"
    if errors:
        raise ValidationError("Claim submission is invalid", _form_errors(errors))

    attachments = [
        await services.blob_store.put(u.filename or "upload", u.content_type, data, document_type)
        for u, data, document_type in uploads
    ]

    try:
        result = await services.lifecycle.submit(draft, attachments)
    except ValidationError as e:
        raise ValidationError(e.message, _form_errors(e.field_errors)) from None

    return SubmissionResponse(
        id=result.claim.claim_id,
        status=result.claim.status.value,
        version=result.claim.version,
        recommendation=result.recommendation.value,
        risk_level=result.assessment.risk_level.value,
    )


# ── PATCH /api/claims/status — admin decision ───────────────────────────────

@router.patch("/status", response_model=ClaimDetail)
async def update_status(
    body: StatusUpdate,
    actor: str = Depends(get_actor),
    lifecycle: LifecycleController = Depends(get_lifecycle),
):
    """Approve or reject a pending claim. `version` must be the version the admin saw."""
    claim = await lifecycle.decide(body.id, body.version, body.status, actor)
    return ClaimDetail.from_record(claim)


# ── GET /api/claims/counts — status totals ──────────────────────────────────

@router.get("/counts", response_model=StatusCountsResponse)
async def status_counts(aggregator: Aggregator = Depends(get_aggregator)):
    return StatusCountsResponse(**aggregator.counts().as_dict())


# ── GET /api/claims — list ──────────────────────────────────────────────────

@router.get("", response_model=ClaimListResponse)
async def list_claims(
    status: ClaimStatus | None = Query(None),
    risk_level: RiskLevel | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    claims = await services.store.list_claims(status=status, risk_level=risk_level, limit=limit, offset=offset)
    total = await services.store.count(status=status, risk_level=risk_level)
    return ClaimListResponse(
        items=[ClaimSummary.from_record(c) for c in claims],
        total=total,
        limit=limit,
        offset=offset,
    )


# ── GET /api/claims/{claim_id} ──────────────────────────────────────────────

@router.get("/{claim_id}", response_model=ClaimDetail)
async def get_claim(claim_id: str, services: Services = Depends(get_services)):
    return ClaimDetail.from_record(await services.store.get(claim_id))


@router.get("/{claim_id}/history", response_model=ClaimHistoryResponse)
async def claim_history(claim_id: str, lifecycle: LifecycleController = Depends(get_lifecycle)):
    """Evaluations, fraud assessments and audit entries, oldest first."""
    history = await lifecycle.history(claim_id)
    return ClaimHistoryResponse(
        claim=ClaimDetail.from_record(history.claim),
        evaluations=[EvaluationOut.from_result(e) for e in history.evaluations],
        assessments=[AssessmentOut.from_assessment(a) for a in history.assessments],
        audit=[AuditEntryOut.from_entry(a) for a in history.audit],
    )


@router.post("/{claim_id}/reevaluate", response_model=ReevaluationResponse)
async def reevaluate_claim(claim_id: str, lifecycle: LifecycleController = Depends(get_lifecycle)):
    """Re-run rules and scoring on a pending claim, e.g. after the risk service timed out."""
    result = await lifecycle.reevaluate(claim_id)
    return ReevaluationResponse(
        claim=ClaimDetail.from_record(result.claim),
        evaluation=EvaluationOut.from_result(result.evaluation),
        assessment=AssessmentOut.from_assessment(result.assessment),
        recommendation=result.recommendation.value,
    )
