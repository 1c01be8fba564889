"""
Rule Catalog

Admin-editable rule definitions. Reads return frozen RuleSpec snapshots
and take no locks; writes are serialized per rule id with an asyncio.Lock
and recorded in the audit trail. Rules are never deleted, only
deactivated.
"""

import asyncio
import copy
import logging
import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from claims_engine.database import utcnow
from claims_engine.domain import RuleDraft, RuleSpec
from claims_engine.enums import RulePriority, RuleType
from claims_engine.errors import NotFound, ValidationError
from claims_engine.models import Rule, RuleActivation
from claims_engine.rules.base import BaseRule
from claims_engine.services.audit_service import AuditService
from claims_engine.services.rule_engine import load_rule_handlers

logger = logging.getLogger(__name__)

RULE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,39}$")


def to_spec(rule: Rule) -> RuleSpec:
    return RuleSpec(
        rule_id=rule.rule_id,
        name=rule.name,
        description=rule.description or "",
        rule_type=RuleType(rule.rule_type),
        priority=RulePriority(rule.priority),
        active=rule.active,
        parameters=copy.deepcopy(rule.parameters or {}),
        version=rule.version,
    )


class RuleCatalog:
    """Versioned store of rule definitions."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        handlers: dict[RuleType, BaseRule] | None = None,
    ):
        self.sessionmaker = sessionmaker
        self.handlers = handlers if handlers is not None else load_rule_handlers()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, rule_id: str) -> asyncio.Lock:
        return self._locks.setdefault(rule_id, asyncio.Lock())

    async def _load(self, session: AsyncSession, rule_id: str) -> Rule | None:
        result = await session.execute(select(Rule).where(Rule.rule_id == rule_id))
        return result.scalar_one_or_none()

    # ── Reads ──────────────────────────────────────────────────────────────

    async def list_all(self) -> list[RuleSpec]:
        async with self.sessionmaker() as session:
            result = await session.execute(select(Rule))
            specs = [to_spec(r) for r in result.scalars()]
        return sorted(specs, key=lambda s: s.sort_key)

    async def list_active(self) -> list[RuleSpec]:
        """Active rules ordered critical > high > medium > low, ties by rule_id."""
        async with self.sessionmaker() as session:
            result = await session.execute(select(Rule).where(Rule.active.is_(True)))
            specs = [to_spec(r) for r in result.scalars()]
        return sorted(specs, key=lambda s: s.sort_key)

    async def get(self, rule_id: str) -> RuleSpec:
        async with self.sessionmaker() as session:
            rule = await self._load(session, rule_id)
            if rule is None:
                raise NotFound("rule", rule_id)
            return to_spec(rule)

    async def activation_history(self, rule_id: str) -> list[dict]:
        async with self.sessionmaker() as session:
            rule = await self._load(session, rule_id)
            if rule is None:
                raise NotFound("rule", rule_id)
            result = await session.execute(
                select(RuleActivation)
                .where(RuleActivation.rule_pk == rule.id)
                .order_by(RuleActivation.id.asc())
            )
            return [
                {"active": row.active, "actor": row.actor, "changed_at": row.changed_at}
                for row in result.scalars()
            ]

    async def stats(self) -> dict:
        """Totals for the rules summary: overall, by type and by priority."""
        by_type = {t.value: {"total": 0, "active": 0} for t in RuleType}
        by_priority = {p.value: {"total": 0, "active": 0} for p in RulePriority}

        async with self.sessionmaker() as session:
            result = await session.execute(
                select(Rule.rule_type, Rule.priority, Rule.active, func.count(Rule.id))
                .group_by(Rule.rule_type, Rule.priority, Rule.active)
            )
            rows = result.all()

        total = active = 0
        for rule_type, priority, is_active, count in rows:
            total += count
            by_type[rule_type]["total"] += count
            by_priority[priority]["total"] += count
            if is_active:
                active += count
                by_type[rule_type]["active"] += count
                by_priority[priority]["active"] += count

        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "by_type": by_type,
            "by_priority": by_priority,
        }

    # ── Writes ─────────────────────────────────────────────────────────────

    def validate(self, draft: RuleDraft) -> tuple[RuleType, RulePriority, dict]:
        errors: dict[str, str] = {}
        if not isinstance(draft.rule_id, str) or not RULE_ID_PATTERN.match(draft.rule_id):
            errors["rule_id"] = "must be 1-40 letters, digits, '.', '_' or '-'"
        if not isinstance(draft.name, str) or not draft.name.strip():
            errors["name"] = "is required"
        elif len(draft.name) > 120:
            errors["name"] = "must be at most 120 characters"
        if draft.description and len(draft.description) > 500:
            errors["description"] = "must be at most 500 characters"

        rule_type = priority = None
        try:
            rule_type = RuleType(draft.rule_type)
        except ValueError:
            errors["rule_type"] = f"must be one of {[t.value for t in RuleType]}"
        try:
            priority = RulePriority(draft.priority)
        except ValueError:
            errors["priority"] = f"must be one of {[p.value for p in RulePriority]}"
        if not isinstance(draft.parameters, dict):
            errors["parameters"] = "must be an object"

        if errors:
            raise ValidationError(f"Invalid rule {draft.rule_id}", errors)

        try:
            parameters = self.handlers[rule_type].validate_parameters(draft.parameters)
        except ValidationError as e:
            raise ValidationError(
                e.message, {f"parameters.{k}": v for k, v in e.field_errors.items()},
            ) from None
        return rule_type, priority, parameters

    async def upsert(self, draft: RuleDraft, actor: str) -> RuleSpec:
        """Create or replace a rule. Every successful call bumps the version."""
        rule_type, priority, parameters = self.validate(draft)

        async with self._lock(draft.rule_id):
            async with self.sessionmaker() as session:
                async with session.begin():
                    rule = await self._load(session, draft.rule_id)
                    now = utcnow()
                    created = rule is None
                    previous = None if created else to_spec(rule)

                    if created:
                        rule = Rule(rule_id=draft.rule_id, created_at=now)
                        session.add(rule)
                    rule.name = draft.name.strip()
                    rule.description = draft.description or ""
                    rule.rule_type = rule_type.value
                    rule.priority = priority.value
                    rule.parameters = parameters
                    rule.active = draft.active
                    rule.last_modified_by = actor
                    rule.updated_at = now
                    await session.flush()

                    if created or previous.active != draft.active:
                        session.add(RuleActivation(rule_pk=rule.id, active=draft.active, actor=actor, changed_at=now))

                    changes = {"created": created, "parameters": parameters, "active": draft.active}
                    if previous is not None:
                        changes["previous_version"] = previous.version
                        changes["previous_parameters"] = previous.parameters
                    await AuditService(session).log_rule_upserted(rule.rule_id, rule.version, changes, actor)
                    spec = to_spec(rule)

        logger.info(
            "Rule %s %s at version %d by %s", spec.rule_id, "created" if created else "updated",
            spec.version, actor, extra={"rule_id": spec.rule_id},
        )
        return spec

    async def set_active(self, rule_id: str, active: bool, actor: str) -> RuleSpec:
        """Toggle a rule. Setting the current value is a no-op: no version bump, no history."""
        async with self._lock(rule_id):
            async with self.sessionmaker() as session:
                async with session.begin():
                    rule = await self._load(session, rule_id)
                    if rule is None:
                        raise NotFound("rule", rule_id)
                    if rule.active == active:
                        return to_spec(rule)

                    now = utcnow()
                    rule.active = active
                    rule.last_modified_by = actor
                    rule.updated_at = now
                    session.add(RuleActivation(rule_pk=rule.id, active=active, actor=actor, changed_at=now))
                    await session.flush()
                    await AuditService(session).log_rule_activation(rule_id, active, actor)
                    spec = to_spec(rule)

        logger.info("Rule %s %s by %s", rule_id, "activated" if active else "deactivated", actor,
                    extra={"rule_id": rule_id})
        return spec

    async def seed_defaults(self, drafts: list[RuleDraft] | None = None) -> int:
        """Install the default rule set if the catalog is empty. Returns rules created."""
        if drafts is None:
            from claims_engine.seed.rules import DEFAULT_RULES
            drafts = DEFAULT_RULES

        async with self.sessionmaker() as session:
            existing = (await session.execute(select(func.count(Rule.id)))).scalar() or 0
        if existing:
            return 0

        for draft in drafts:
            await self.upsert(draft, actor="system")
        logger.info("Seeded %d default rules", len(drafts))
        return len(drafts)
