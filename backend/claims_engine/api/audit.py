"""
Audit API: per-claim hash-chain verification.
"""

from fastapi import APIRouter, Depends

from claims_engine.api.deps import get_lifecycle
from claims_engine.schemas.schemas import ChainVerification
from claims_engine.services.lifecycle import LifecycleController

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/verify/{claim_id}", response_model=ChainVerification)
async def verify_claim_chain(claim_id: str, lifecycle: LifecycleController = Depends(get_lifecycle)):
    """Recompute every hash in the claim's audit chain."""
    result = await lifecycle.verify_audit(claim_id)
    return ChainVerification(claim_id=claim_id, **result)
