"""
Default rule set installed into an empty catalog.

These mirror the rules the portal's Rules page ships with. They are
ordinary catalog rows once seeded and can be edited or deactivated.
"""

from claims_engine.domain import RuleDraft

DEFAULT_RULES: list[RuleDraft] = [
    RuleDraft(
        rule_id="RULE-001",
        name="Maximum Claim Amount",
        description="Claims above $50,000 are rejected automatically",
        rule_type="threshold",
        priority="high",
        parameters={"max_amount": 50000},
    ),
    RuleDraft(
        rule_id="RULE-002",
        name="Duplicate Detection",
        description="Flag round claimed amounts; duplicates within 30 days are scored by the fraud scorer",
        rule_type="fraud",
        priority="critical",
        parameters={"round_amount_multiple": 1000, "round_amount_min": 5000, "duplicate_window_days": 30},
    ),
    RuleDraft(
        rule_id="RULE-003",
        name="Pre-Authorization Required",
        description="Claims above $10,000 need a pre-authorization document",
        rule_type="authorization",
        priority="medium",
        parameters={"preauth_floor": 10000, "marker_document_type": "pre_authorization"},
    ),
    RuleDraft(
        rule_id="RULE-004",
        name="Network Provider Check",
        description="Claims must carry a bill receipt and policy reference",
        rule_type="validation",
        priority="medium",
        parameters={"required_fields": ["attachments", "policy_id"]},
        active=False,
    ),
    RuleDraft(
        rule_id="RULE-005",
        name="Age-Based Restrictions",
        description="Claimant must be between 18 and 100 when age is known",
        rule_type="eligibility",
        priority="low",
        parameters={"min_age": 18, "max_age": 100},
    ),
]
