from claims_engine.models.claim import Claim, ClaimAttachment  # noqa: F401
from claims_engine.models.rule import Rule, RuleActivation  # noqa: F401
from claims_engine.models.scoring import EvaluationRecord, AssessmentRecord  # noqa: F401
from claims_engine.models.audit import AuditLog  # noqa: F401
