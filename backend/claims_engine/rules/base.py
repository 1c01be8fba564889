"""
Base class for claim rule types.

Every catalog rule has a `rule_type`; exactly one RuleType subclass handles
each type. A handler validates the rule's parameters on upsert and turns a
claim snapshot plus those parameters into a RuleVerdict.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

from claims_engine.domain import ClaimRecord, RuleSpec, RuleVerdict
from claims_engine.enums import Outcome, RuleType
from claims_engine.errors import ValidationError


class BaseRule(ABC):
    """Abstract base class for all rule type handlers."""

    rule_type: RuleType
    default_parameters: dict = {}

    @abstractmethod
    async def evaluate(self, claim: ClaimRecord, rule: RuleSpec) -> RuleVerdict:
        """
        Evaluate one claim snapshot against one catalog rule.

        Args:
            claim: ClaimRecord snapshot
            rule: RuleSpec whose parameters were validated by `validate_parameters`

        Returns:
            RuleVerdict with outcome pass, fail or warn and a short message
        """

    @abstractmethod
    def validate_parameters(self, parameters: dict) -> dict:
        """Return normalized parameters or raise ValidationError."""

    def params(self, rule: RuleSpec) -> dict:
        return {**self.default_parameters, **(rule.parameters or {})}

    def _verdict(self, rule: RuleSpec, outcome: Outcome, message: str) -> RuleVerdict:
        return RuleVerdict(
            rule_id=rule.rule_id,
            rule_type=rule.rule_type,
            priority=rule.priority,
            outcome=outcome,
            message=message,
        )

    def _pass(self, rule: RuleSpec, message: str = "ok") -> RuleVerdict:
        return self._verdict(rule, Outcome.PASS, message)

    def _fail(self, rule: RuleSpec, message: str) -> RuleVerdict:
        return self._verdict(rule, Outcome.FAIL, message)

    def _warn(self, rule: RuleSpec, message: str) -> RuleVerdict:
        return self._verdict(rule, Outcome.WARN, message)

    @staticmethod
    def _raise_if(errors: dict[str, str], rule_type: RuleType) -> None:
        if errors:
            raise ValidationError(f"Invalid parameters for {rule_type.value} rule", errors)

    @staticmethod
    def number(
        parameters: dict,
        key: str,
        errors: dict[str, str],
        *,
        required: bool = False,
        minimum: Decimal | int | None = None,
        exclusive: bool = False,
        integer: bool = False,
    ) -> Decimal | int | None:
        """
        Read a numeric parameter, recording a message in `errors` on failure.

        Booleans are rejected even though they are ints in Python.
        """
        if key not in parameters or parameters[key] is None:
            if required:
                errors[key] = "is required"
            return None

        raw = parameters[key]
        if isinstance(raw, bool):
            errors[key] = "must be a number"
            return None
        try:
            value = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            errors[key] = "must be a number"
            return None
        if not value.is_finite():
            errors[key] = "must be a finite number"
            return None
        if integer and value != value.to_integral_value():
            errors[key] = "must be a whole number"
            return None

        if minimum is not None:
            if exclusive and value <= minimum:
                errors[key] = f"must be greater than {minimum}"
                return None
            if not exclusive and value < minimum:
                errors[key] = f"must be at least {minimum}"
                return None
        return int(value) if integer else value

    @staticmethod
    def money(value: Decimal) -> str:
        return f"${value:,.2f}"

    @staticmethod
    def json_number(value: Decimal) -> int | float:
        """Parameters are stored in a JSON column; keep whole numbers as ints."""
        if value == value.to_integral_value():
            return int(value)
        return float(value)
