"""
External risk score lookup.

The scoring model lives outside this service and is consumed as a single
0-100 number per claim. `lookup_risk_score` is the only place the
lifecycle suspends on I/O; it is bounded by a timeout and every failure
comes back as DependencyTimeout.
"""

import asyncio
import logging
import time
from typing import Protocol

import httpx

from claims_engine.config import settings
from claims_engine.domain import ClaimRecord
from claims_engine.errors import DependencyTimeout
from claims_engine.middleware.metrics import risk_lookup_duration_seconds

logger = logging.getLogger(__name__)

DEPENDENCY_NAME = "risk-score service"


class RiskScoreProvider(Protocol):
    async def fetch(self, claim: ClaimRecord) -> float: ...


class StaticRiskScoreProvider:
    """Returns the same score for every claim (no scoring service configured)."""

    def __init__(self, score: float = 0.0):
        self.score = score

    async def fetch(self, claim: ClaimRecord) -> float:
        return self.score


class HttpRiskScoreProvider:
    """
    POST {base_url}/score with the claim summary; expects {"risk_score": <0-100>}.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def fetch(self, claim: ClaimRecord) -> float:
        payload = {
            "claim_id": claim.claim_id,
            "policy_id": claim.policy_id,
            "claimant_name": claim.claimant_name,
            "claimant_age": claim.claimant_age,
            "claimed_amount": str(claim.claimed_amount),
            "attachments": len(claim.attachments),
        }
        if self._client is not None:
            resp = await self._client.post(f"{self.base_url}/score", json=payload)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(f"{self.base_url}/score", json=payload)
        resp.raise_for_status()
        return resp.json()["risk_score"]


def build_risk_provider() -> RiskScoreProvider:
    if settings.risk_service_url:
        return HttpRiskScoreProvider(settings.risk_service_url)
    return StaticRiskScoreProvider(settings.default_risk_score)


async def lookup_risk_score(
    provider: RiskScoreProvider, claim: ClaimRecord, timeout: float | None = None,
) -> float:
    """
    Fetch and range-check the external score.

    Raises DependencyTimeout on timeout, transport or protocol failure, or
    when the service answers with a non-numeric score or one outside 0-100.
    """
    timeout = timeout if timeout is not None else settings.risk_score_timeout_seconds
    start = time.perf_counter()
    try:
        raw = await asyncio.wait_for(provider.fetch(claim), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Risk score lookup for %s timed out after %.2fs", claim.claim_id, timeout,
                       extra={"claim_id": claim.claim_id})
        raise DependencyTimeout(DEPENDENCY_NAME, f"timed out after {timeout}s") from None
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.warning("Risk score lookup for %s failed: %s", claim.claim_id, e,
                       extra={"claim_id": claim.claim_id})
        raise DependencyTimeout(DEPENDENCY_NAME, str(e)[:200]) from e
    finally:
        risk_lookup_duration_seconds.observe(time.perf_counter() - start)

    if isinstance(raw, bool):
        raise DependencyTimeout(DEPENDENCY_NAME, f"non-numeric risk score {raw!r}")
    try:
        score = float(raw)
    except (TypeError, ValueError):
        raise DependencyTimeout(DEPENDENCY_NAME, f"non-numeric risk score {str(raw)[:50]!r}") from None
    if not 0.0 <= score <= 100.0:
        logger.warning("Risk score %s for %s outside 0-100", score, claim.claim_id, extra={"claim_id": claim.claim_id})
        raise DependencyTimeout(DEPENDENCY_NAME, f"risk score {score:g} outside 0-100")
    return score
