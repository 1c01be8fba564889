"""
Rules API

Read, upsert and toggle catalog rules. Rules are never deleted.
"""

from fastapi import APIRouter, Depends

from claims_engine.api.deps import get_actor, get_catalog
from claims_engine.domain import RuleDraft
from claims_engine.schemas.schemas import (
    ActivationOut,
    RuleActiveUpdate,
    RuleDetail,
    RuleListResponse,
    RuleOut,
    RuleStats,
    RuleUpsert,
)
from claims_engine.services.rule_catalog import RuleCatalog

router = APIRouter(prefix="/api/rules", tags=["rules"])


# ── GET /api/rules — every rule, priority order ─────────────────────────────

@router.get("", response_model=RuleListResponse)
async def list_rules(catalog: RuleCatalog = Depends(get_catalog)):
    rules = [RuleOut.from_spec(r) for r in await catalog.list_all()]
    return RuleListResponse(rules=rules, total=len(rules))


@router.get("/active", response_model=RuleListResponse)
async def list_active_rules(catalog: RuleCatalog = Depends(get_catalog)):
    """The rule set a submission made now would be evaluated against."""
    rules = [RuleOut.from_spec(r) for r in await catalog.list_active()]
    return RuleListResponse(rules=rules, total=len(rules))


@router.get("/stats", response_model=RuleStats)
async def rule_stats(catalog: RuleCatalog = Depends(get_catalog)):
    return RuleStats(**await catalog.stats())


# ── GET /api/rules/{rule_id} ────────────────────────────────────────────────

@router.get("/{rule_id}", response_model=RuleDetail)
async def get_rule(rule_id: str, catalog: RuleCatalog = Depends(get_catalog)):
    spec = await catalog.get(rule_id)
    history = await catalog.activation_history(rule_id)
    return RuleDetail(
        **RuleOut.from_spec(spec).model_dump(),
        activation_history=[ActivationOut(**h) for h in history],
    )


# ── PUT /api/rules/{rule_id} — create or replace ────────────────────────────

@router.put("/{rule_id}", response_model=RuleOut)
async def upsert_rule(
    rule_id: str,
    body: RuleUpsert,
    actor: str = Depends(get_actor),
    catalog: RuleCatalog = Depends(get_catalog),
):
    draft = RuleDraft(
        rule_id=rule_id,
        name=body.name,
        description=body.description,
        rule_type=body.rule_type,
        priority=body.priority,
        parameters=body.parameters,
        active=body.active,
    )
    return RuleOut.from_spec(await catalog.upsert(draft, actor))


# ── PATCH /api/rules/{rule_id}/active — toggle ──────────────────────────────

@router.patch("/{rule_id}/active", response_model=RuleOut)
async def set_rule_active(
    rule_id: str,
    body: RuleActiveUpdate,
    actor: str = Depends(get_actor),
    catalog: RuleCatalog = Depends(get_catalog),
):
    """Idempotent: setting the current value changes nothing."""
    return RuleOut.from_spec(await catalog.set_active(rule_id, body.active, actor))
