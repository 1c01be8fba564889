from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from claims_engine.database import Base, utcnow


class EvaluationRecord(Base):
    """Persisted rule evaluation. Written once, never recomputed."""

    __tablename__ = "evaluation_results"

    id: Mapped[int] = mapped_column(primary_key=True)
    evaluation_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    claim_pk: Mapped[int] = mapped_column(ForeignKey("claims.id"), index=True)
    recommendation: Mapped[str] = mapped_column(String(20))  # auto_approve | auto_reject | manual_review
    verdicts: Mapped[list] = mapped_column(JSON, default=list)
    rule_snapshot: Mapped[list] = mapped_column(JSON, default=list)  # [{rule_id, version}]
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class AssessmentRecord(Base):
    """Persisted fraud assessment. Written once, never recomputed."""

    __tablename__ = "fraud_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)
    assessment_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    claim_pk: Mapped[int] = mapped_column(ForeignKey("claims.id"), index=True)
    external_score: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    risk_score: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    risk_level: Mapped[str] = mapped_column(String(10), index=True)  # low | medium | high | critical
    reasons: Mapped[list] = mapped_column(JSON, default=list)
    duplicate_claim_ids: Mapped[list] = mapped_column(JSON, default=list)
    recommendation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
