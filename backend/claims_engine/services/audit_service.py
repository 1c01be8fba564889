"""
Audit Service

Append-only, hash-chained audit trail. Each resource (a claim or a rule)
has its own chain: an entry's previous_hash is the current_hash of the
latest entry for the same resource. Entries are written inside the
caller's transaction, so a rolled-back claim write leaves no audit entry
behind and a version conflict can never fork a chain.
"""

import hashlib
import json
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from claims_engine.database import utcnow
from claims_engine.domain import AuditEntry
from claims_engine.models import AuditLog


class AuditService:
    """Hash-chained audit trail bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _calculate_hash(content: dict, previous_hash: str | None) -> str:
        """SHA-256 hash of entry contents + previous hash."""
        payload = {
            "content": content,
            "previous_hash": previous_hash or "",
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(raw.encode()).hexdigest()

    @staticmethod
    def _content(entry: AuditLog) -> dict:
        return {
            "event_type": entry.event_type,
            "actor": entry.actor,
            "action": entry.action,
            "resource_type": entry.resource_type,
            "resource_id": entry.resource_id,
            "prior_status": entry.prior_status,
            "new_status": entry.new_status,
            "evaluation_id": entry.evaluation_id,
            "assessment_id": entry.assessment_id,
            "details": entry.details,
        }

    async def _get_latest_hash(self, resource_type: str, resource_id: str) -> str | None:
        result = await self.session.execute(
            select(AuditLog.current_hash)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.id.desc())
            .limit(1)
        )
        return result.scalar()

    async def log_event(
        self,
        event_type: str,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: str,
        prior_status: str | None = None,
        new_status: str | None = None,
        evaluation_id: str | None = None,
        assessment_id: str | None = None,
        details: dict | None = None,
    ) -> AuditLog:
        """
        Write an immutable audit entry.

        Args:
            event_type: e.g. "claim_submitted", "claim_transitioned", "rule_upserted"
            actor: "system" or "admin:<name>"
            action: Human-readable description
            resource_type: "claim" or "rule"
            resource_id: claim_id or rule_id
            prior_status / new_status: set for claim transitions
            evaluation_id / assessment_id: the results that triggered the entry
            details: Free-form event details
        """
        entry = AuditLog(
            event_id=str(uuid4()),
            event_type=event_type,
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            prior_status=prior_status,
            new_status=new_status,
            evaluation_id=evaluation_id,
            assessment_id=assessment_id,
            details=details or {},
            created_at=utcnow(),
        )
        entry.previous_hash = await self._get_latest_hash(resource_type, resource_id)
        entry.current_hash = self._calculate_hash(self._content(entry), entry.previous_hash)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def log_claim_submitted(self, claim_id: str, amount: str, attachments: int) -> AuditLog:
        return await self.log_event(
            event_type="claim_submitted",
            actor="system",
            action=f"Claim {claim_id} submitted for {amount}",
            resource_type="claim",
            resource_id=claim_id,
            new_status="pending",
            details={"claimed_amount": amount, "attachments": attachments},
        )

    async def log_claim_evaluated(
        self, claim_id: str, evaluation_id: str, assessment_id: str, recommendation: str, risk_level: str,
    ) -> AuditLog:
        return await self.log_event(
            event_type="claim_evaluated",
            actor="system",
            action=f"Claim {claim_id} evaluated: {recommendation}, risk {risk_level}",
            resource_type="claim",
            resource_id=claim_id,
            evaluation_id=evaluation_id,
            assessment_id=assessment_id,
            details={"recommendation": recommendation, "risk_level": risk_level},
        )

    async def log_claim_transitioned(
        self,
        claim_id: str,
        prior_status: str,
        new_status: str,
        actor: str,
        evaluation_id: str | None = None,
        assessment_id: str | None = None,
    ) -> AuditLog:
        return await self.log_event(
            event_type="claim_transitioned",
            actor=actor,
            action=f"Claim {claim_id} status: {prior_status} -> {new_status}",
            resource_type="claim",
            resource_id=claim_id,
            prior_status=prior_status,
            new_status=new_status,
            evaluation_id=evaluation_id,
            assessment_id=assessment_id,
        )

    async def log_rule_upserted(self, rule_id: str, version: int, changes: dict, actor: str) -> AuditLog:
        return await self.log_event(
            event_type="rule_upserted",
            actor=actor,
            action=f"Rule {rule_id} saved at version {version}",
            resource_type="rule",
            resource_id=rule_id,
            details=changes,
        )

    async def log_rule_activation(self, rule_id: str, active: bool, actor: str) -> AuditLog:
        return await self.log_event(
            event_type="rule_activation_changed",
            actor=actor,
            action=f"Rule {rule_id} {'activated' if active else 'deactivated'}",
            resource_type="rule",
            resource_id=rule_id,
            details={"active": active},
        )

    async def entries_for(self, resource_type: str, resource_id: str) -> list[AuditEntry]:
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.id.asc())
        )
        return [to_entry(row) for row in result.scalars()]

    async def verify_chain(self, resource_type: str, resource_id: str) -> dict:
        """Walk one resource's chain and verify each entry's hash."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.id.asc())
        )
        entries = list(result.scalars())

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].current_hash if i > 0 else None
            if entry.previous_hash != expected_prev:
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "previous_hash mismatch",
                }
            if entry.current_hash != self._calculate_hash(self._content(entry), entry.previous_hash):
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "current_hash mismatch (data tampered)",
                }

        return {"valid": True, "entries_checked": len(entries), "first_invalid": None}


def to_entry(row: AuditLog) -> AuditEntry:
    return AuditEntry(
        event_id=row.event_id,
        event_type=row.event_type,
        actor=row.actor,
        action=row.action,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        prior_status=row.prior_status,
        new_status=row.new_status,
        evaluation_id=row.evaluation_id,
        assessment_id=row.assessment_id,
        details=dict(row.details or {}),
        previous_hash=row.previous_hash,
        current_hash=row.current_hash,
        created_at=row.created_at,
    )
