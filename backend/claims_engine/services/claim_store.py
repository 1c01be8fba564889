"""
Claim Store

Durable record of claims. Every operation runs in its own short
transaction and returns frozen ClaimRecord snapshots, never live rows.

Writes go through `update`, which is a compare-and-swap on the version
column: SQLAlchemy's version_id_col turns the flush into
UPDATE ... WHERE id = :id AND version = :loaded_version, so two writers
holding the same version cannot both commit.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from claims_engine.database import utcnow
from claims_engine.domain import (
    AttachmentRef, ClaimDraft, ClaimRecord, EvaluationResult, FraudAssessment, RuleVerdict, StatusCounts,
)
from claims_engine.enums import ClaimStatus, Outcome, Recommendation, RiskLevel, RulePriority, RuleType
from claims_engine.errors import NotFound, ValidationError, VersionConflict
from claims_engine.models import AssessmentRecord, Claim, ClaimAttachment, EvaluationRecord

logger = logging.getLogger(__name__)

# Numeric(12, 2)
MAX_CLAIM_AMOUNT = Decimal("9999999999.99")
MAX_CLAIMANT_AGE = 150

Mutator = Callable[[Claim, AsyncSession], Awaitable[None]]


def new_claim_id() -> str:
    return f"CLM-{uuid4().hex[:12].upper()}"


def validate_draft(draft: ClaimDraft) -> tuple[str, str, Decimal, int | None]:
    """Normalize a draft or raise ValidationError listing every bad field."""
    errors: dict[str, str] = {}

    policy_id = (draft.policy_id or "").strip()
    if not policy_id:
        errors["policy_id"] = "Policy ID is required"
    elif len(policy_id) > 64:
        errors["policy_id"] = "Policy ID must be at most 64 characters"

    claimant = (draft.claimant_name or "").strip()
    if not claimant:
        errors["claimant_name"] = "Claimant name is required"
    elif len(claimant) > 200:
        errors["claimant_name"] = "Claimant name must be at most 200 characters"

    amount = None
    raw_amount = draft.claimed_amount
    if raw_amount is None or (isinstance(raw_amount, str) and not raw_amount.strip()):
        errors["claimed_amount"] = "Claimed amount is required"
    elif isinstance(raw_amount, bool):
        errors["claimed_amount"] = "Claimed amount must be a decimal number"
    else:
        try:
            amount = Decimal(str(raw_amount).strip())
        except (InvalidOperation, ValueError):
            errors["claimed_amount"] = "Claimed amount must be a decimal number"
        else:
            if not amount.is_finite():
                errors["claimed_amount"] = "Claimed amount must be a decimal number"
            elif amount <= 0:
                errors["claimed_amount"] = "Claimed amount must be greater than 0"
            elif amount.as_tuple().exponent < -2:
                errors["claimed_amount"] = "Claimed amount must have at most 2 decimal places"
            elif amount > MAX_CLAIM_AMOUNT:
                errors["claimed_amount"] = "Claimed amount is too large"

    age = draft.claimant_age
    if age is not None and (isinstance(age, bool) or not isinstance(age, int) or not 0 <= age <= MAX_CLAIMANT_AGE):
        errors["claimant_age"] = f"Claimant age must be a whole number between 0 and {MAX_CLAIMANT_AGE}"

    if errors:
        raise ValidationError("Claim draft is invalid", errors)
    return policy_id, claimant, amount.quantize(Decimal("0.01")), age


def to_record(claim: Claim) -> ClaimRecord:
    return ClaimRecord(
        pk=claim.id,
        claim_id=claim.claim_id,
        policy_id=claim.policy_id,
        claimant_name=claim.claimant_name,
        claimant_age=claim.claimant_age,
        claimed_amount=Decimal(str(claim.claimed_amount)),
        status=ClaimStatus(claim.status),
        attachments=tuple(
            AttachmentRef(
                filename=a.filename,
                content_type=a.content_type,
                storage_handle=a.storage_handle,
                document_type=a.document_type,
                size_bytes=a.size_bytes,
            )
            for a in claim.attachments
        ),
        risk_score=Decimal(str(claim.risk_score)) if claim.risk_score is not None else None,
        risk_level=RiskLevel(claim.risk_level) if claim.risk_level else None,
        risk_reasons=tuple(claim.risk_reasons or ()),
        validated=claim.validated,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
        version=claim.version,
    )


def to_evaluation(row: EvaluationRecord, claim_id: str) -> EvaluationResult:
    return EvaluationResult(
        claim_id=claim_id,
        verdicts=tuple(
            RuleVerdict(
                rule_id=v["rule_id"],
                rule_type=RuleType(v["rule_type"]),
                priority=RulePriority(v["priority"]),
                outcome=Outcome(v["outcome"]),
                message=v["message"],
            )
            for v in row.verdicts
        ),
        recommendation=Recommendation(row.recommendation),
        rule_snapshot=tuple((s["rule_id"], s["version"]) for s in row.rule_snapshot),
        evaluation_id=row.evaluation_id,
        created_at=row.created_at,
    )


def to_assessment(row: AssessmentRecord, claim_id: str) -> FraudAssessment:
    return FraudAssessment(
        claim_id=claim_id,
        external_score=float(row.external_score),
        risk_score=float(row.risk_score),
        risk_level=RiskLevel(row.risk_level),
        reasons=tuple(row.reasons or ()),
        recommendation=Recommendation(row.recommendation) if row.recommendation else None,
        duplicate_claim_ids=tuple(row.duplicate_claim_ids or ()),
        assessment_id=row.assessment_id,
        created_at=row.created_at,
    )


class ClaimStore:
    """Single source of truth for claim state."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def _load(self, session: AsyncSession, claim_id: str) -> Claim:
        result = await session.execute(select(Claim).where(Claim.claim_id == claim_id))
        claim = result.scalar_one_or_none()
        if claim is None:
            raise NotFound("claim", claim_id)
        return claim

    async def create(self, draft: ClaimDraft, on_created: Mutator | None = None) -> ClaimRecord:
        """
        Persist a new pending claim at version 1.

        `on_created` runs in the same transaction after the insert is flushed
        (the lifecycle uses it to write the submission audit entry).
        """
        policy_id, claimant, amount, age = validate_draft(draft)
        now = utcnow()
        claim = Claim(
            claim_id=new_claim_id(),
            policy_id=policy_id,
            claimant_name=claimant,
            claimant_age=age,
            claimed_amount=amount,
            status=ClaimStatus.PENDING.value,
            risk_reasons=[],
            validated=False,
            created_at=now,
            updated_at=now,
            attachments=[
                ClaimAttachment(
                    filename=a.filename,
                    content_type=a.content_type,
                    storage_handle=a.storage_handle,
                    document_type=a.document_type,
                    size_bytes=a.size_bytes,
                    uploaded_at=now,
                )
                for a in draft.attachments
            ],
        )
        async with self.sessionmaker() as session:
            async with session.begin():
                session.add(claim)
                await session.flush()
                if on_created is not None:
                    await on_created(claim, session)
        logger.info("Created claim %s (policy %s, amount %s)", claim.claim_id, policy_id, amount)
        return to_record(claim)

    async def get(self, claim_id: str) -> ClaimRecord:
        async with self.sessionmaker() as session:
            return to_record(await self._load(session, claim_id))

    async def update(self, claim_id: str, expected_version: int, mutator: Mutator) -> ClaimRecord:
        """
        Apply `mutator` only if the stored version equals `expected_version`.

        The mutator receives the live row and the session, and may add
        related rows; everything commits together or not at all. Raises
        VersionConflict if another writer got there first.
        """
        async with self.sessionmaker() as session:
            async with session.begin():
                claim = await self._load(session, claim_id)
                if claim.version != expected_version:
                    raise VersionConflict(claim_id, expected_version, claim.version)
                # The mutator may flush on its own, so the conflict can surface from either call
                try:
                    await mutator(claim, session)
                    # Always touch the row so the version advances on every write
                    claim.updated_at = utcnow()
                    await session.flush()
                except StaleDataError:
                    raise VersionConflict(claim_id, expected_version) from None
        return to_record(claim)

    @staticmethod
    def _filtered(query, status: ClaimStatus | None, risk_level: RiskLevel | None):
        if status is not None:
            query = query.where(Claim.status == ClaimStatus(status).value)
        if risk_level is not None:
            query = query.where(Claim.risk_level == RiskLevel(risk_level).value)
        return query

    async def list_claims(
        self,
        status: ClaimStatus | None = None,
        risk_level: RiskLevel | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ClaimRecord]:
        """Claims in id (creation) order."""
        query = self._filtered(select(Claim), status, risk_level)
        query = query.order_by(Claim.id.asc()).offset(offset).limit(limit)

        async with self.sessionmaker() as session:
            result = await session.execute(query)
            return [to_record(c) for c in result.scalars()]

    async def count(self, status: ClaimStatus | None = None, risk_level: RiskLevel | None = None) -> int:
        """Number of claims matching the same filters as `list_claims`, ignoring pagination."""
        query = self._filtered(select(func.count(Claim.id)), status, risk_level)
        async with self.sessionmaker() as session:
            return (await session.execute(query)).scalar() or 0

    async def find_similar(
        self,
        policy_id: str,
        claimant_name: str,
        since: datetime,
        exclude: str | None = None,
        until: datetime | None = None,
    ) -> list[ClaimRecord]:
        """Claims for the same policy and claimant created in [since, until]."""
        query = (
            select(Claim)
            .where(
                Claim.policy_id == policy_id,
                func.lower(Claim.claimant_name) == claimant_name.lower(),
                Claim.created_at >= since,
            )
            .order_by(Claim.id.asc())
        )
        if until is not None:
            query = query.where(Claim.created_at <= until)
        if exclude is not None:
            query = query.where(Claim.claim_id != exclude)

        async with self.sessionmaker() as session:
            result = await session.execute(query)
            return [to_record(c) for c in result.scalars()]

    async def recount(self) -> StatusCounts:
        """Full scan of claim statuses."""
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(Claim.status, func.count(Claim.id)).group_by(Claim.status)
            )
            rows = dict(result.all())

        counts = StatusCounts()
        for status, count in rows.items():
            if status in {s.value for s in ClaimStatus}:
                setattr(counts, status, count)
            else:
                counts.extra[status] = count
        return counts

    async def evaluations(self, claim_id: str) -> list[EvaluationResult]:
        async with self.sessionmaker() as session:
            claim = await self._load(session, claim_id)
            result = await session.execute(
                select(EvaluationRecord)
                .where(EvaluationRecord.claim_pk == claim.id)
                .order_by(EvaluationRecord.id.asc())
            )
            return [to_evaluation(row, claim_id) for row in result.scalars()]

    async def assessments(self, claim_id: str) -> list[FraudAssessment]:
        async with self.sessionmaker() as session:
            claim = await self._load(session, claim_id)
            result = await session.execute(
                select(AssessmentRecord)
                .where(AssessmentRecord.claim_pk == claim.id)
                .order_by(AssessmentRecord.id.asc())
            )
            return [to_assessment(row, claim_id) for row in result.scalars()]
