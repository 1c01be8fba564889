"""
Immutable snapshots passed between services.

The store and catalog hand these out instead of live ORM rows so the
evaluator and scorer work on a fixed point-in-time view.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from claims_engine.enums import (
    ClaimStatus, Outcome, Recommendation, RiskLevel, RulePriority, RuleType,
)


@dataclass(frozen=True)
class AttachmentRef:
    filename: str
    content_type: str
    storage_handle: str
    document_type: str = "bill_receipt"
    size_bytes: int = 0


@dataclass(frozen=True)
class ClaimDraft:
    """Caller-supplied fields for a new claim, before validation."""
    policy_id: str | None
    claimant_name: str | None
    claimed_amount: Any
    claimant_age: int | None = None
    attachments: tuple[AttachmentRef, ...] = ()


@dataclass(frozen=True)
class ClaimRecord:
    pk: int
    claim_id: str
    policy_id: str
    claimant_name: str
    claimant_age: int | None
    claimed_amount: Decimal
    status: ClaimStatus
    attachments: tuple[AttachmentRef, ...]
    risk_score: Decimal | None
    risk_level: RiskLevel | None
    risk_reasons: tuple[str, ...]
    validated: bool
    created_at: datetime
    updated_at: datetime
    version: int

    @property
    def is_terminal(self) -> bool:
        return self.status != ClaimStatus.PENDING


@dataclass(frozen=True)
class RuleSpec:
    rule_id: str
    name: str
    description: str
    rule_type: RuleType
    priority: RulePriority
    active: bool
    parameters: dict
    version: int

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority.rank, self.rule_id)


@dataclass(frozen=True)
class RuleVerdict:
    rule_id: str
    rule_type: RuleType
    priority: RulePriority
    outcome: Outcome
    message: str

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_type": self.rule_type.value,
            "priority": self.priority.value,
            "outcome": self.outcome.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class EvaluationResult:
    claim_id: str
    verdicts: tuple[RuleVerdict, ...]
    recommendation: Recommendation
    rule_snapshot: tuple[tuple[str, int], ...] = ()
    evaluation_id: str | None = None
    created_at: datetime | None = None

    @property
    def failures(self) -> list[RuleVerdict]:
        return [v for v in self.verdicts if v.outcome == Outcome.FAIL]

    @property
    def warnings(self) -> list[RuleVerdict]:
        return [v for v in self.verdicts if v.outcome == Outcome.WARN]


@dataclass(frozen=True)
class FraudAssessment:
    claim_id: str
    external_score: float
    risk_score: float
    risk_level: RiskLevel
    reasons: tuple[str, ...]
    recommendation: Recommendation | None  # None defers to the rule evaluation
    duplicate_claim_ids: tuple[str, ...] = ()
    assessment_id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AuditEntry:
    event_id: str
    event_type: str
    actor: str
    action: str
    resource_type: str
    resource_id: str
    prior_status: str | None
    new_status: str | None
    evaluation_id: str | None
    assessment_id: str | None
    details: dict
    previous_hash: str | None
    current_hash: str
    created_at: datetime


@dataclass(frozen=True)
class ClaimHistory:
    claim: ClaimRecord
    evaluations: tuple[EvaluationResult, ...]
    assessments: tuple[FraudAssessment, ...]
    audit: tuple[AuditEntry, ...]


@dataclass
class StatusCounts:
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    extra: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.pending + self.approved + self.rejected

    def as_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "total": self.total,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatusCounts):
            return NotImplemented
        return self.as_dict() == other.as_dict()


@dataclass(frozen=True)
class RuleDraft:
    """Admin input for creating or replacing a rule."""
    rule_id: str
    name: str
    rule_type: str
    priority: str
    parameters: dict = field(default_factory=dict)
    description: str = ""
    active: bool = True
