"""Enumerations shared by models, services and API schemas."""

from enum import Enum


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# pending is the only state with exits
VALID_TRANSITIONS: dict[ClaimStatus, set[ClaimStatus]] = {
    ClaimStatus.PENDING: {ClaimStatus.APPROVED, ClaimStatus.REJECTED},
    ClaimStatus.APPROVED: set(),
    ClaimStatus.REJECTED: set(),
}


class RuleType(str, Enum):
    THRESHOLD = "threshold"
    FRAUD = "fraud"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    ELIGIBILITY = "eligibility"


class RulePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort key: critical first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    RulePriority.CRITICAL: 0,
    RulePriority.HIGH: 1,
    RulePriority.MEDIUM: 2,
    RulePriority.LOW: 3,
}


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class Recommendation(str, Enum):
    AUTO_APPROVE = "auto_approve"
    AUTO_REJECT = "auto_reject"
    MANUAL_REVIEW = "manual_review"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Actor(str, Enum):
    SYSTEM = "system"
    ADMIN = "admin"


class DocumentType(str, Enum):
    BILL_RECEIPT = "bill_receipt"
    PRE_AUTHORIZATION = "pre_authorization"
    SUPPORTING = "supporting"
