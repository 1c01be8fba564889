"""
Error taxonomy for the claims engine.

Every failure that crosses the lifecycle boundary is one of these types.
Each carries a stable `code`, a human-readable message, optional details,
and the HTTP status the API layer maps it to.

    ValidationError     malformed or missing input (never retried)
    NotFound            unknown claim or rule id
    IllegalTransition   state machine violation
    VersionConflict     optimistic concurrency race
    DependencyTimeout   external risk-score lookup failed or timed out
    InvariantViolation  aggregate counts diverged from the claim store
"""

from typing import Any


class ClaimsEngineError(Exception):
    """Base class for all engine errors."""

    code: str = "internal_error"
    http_status: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "detail": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(ClaimsEngineError):
    """Input failed validation. `field_errors` maps field name to message."""

    code = "validation_error"
    http_status = 422

    def __init__(self, message: str, field_errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field_errors:
            result["errors"] = self.field_errors
        return result


class NotFound(ClaimsEngineError):
    code = "not_found"
    http_status = 404

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} {resource_id} not found", {"resource": resource, "id": resource_id})
        self.resource = resource
        self.resource_id = resource_id


class IllegalTransition(ClaimsEngineError):
    code = "illegal_transition"
    http_status = 409

    def __init__(self, claim_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Claim {claim_id} cannot move from {current} to {requested}",
            {"claim_id": claim_id, "current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class VersionConflict(ClaimsEngineError):
    code = "version_conflict"
    http_status = 409

    def __init__(self, resource_id: str, expected: int | None, actual: int | None = None) -> None:
        message = f"{resource_id} was modified concurrently (expected version {expected}"
        message += f", found {actual})" if actual is not None else ")"
        super().__init__(message, {"id": resource_id, "expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class DependencyTimeout(ClaimsEngineError):
    code = "dependency_timeout"
    http_status = 504

    def __init__(self, dependency: str, reason: str) -> None:
        super().__init__(f"{dependency} unavailable: {reason}", {"dependency": dependency})
        self.dependency = dependency


class InvariantViolation(ClaimsEngineError):
    code = "invariant_violation"
    http_status = 500
