"""
Aggregator

Running status counts, updated by the lifecycle right after each committed
create or transition. The claim store stays the source of truth: a crash
between commit and counter update is healed by `reconcile()`, which runs
at startup.
"""

import asyncio
import logging

from claims_engine.domain import StatusCounts
from claims_engine.enums import ClaimStatus
from claims_engine.errors import InvariantViolation
from claims_engine.middleware.metrics import status_count_divergence_total
from claims_engine.services.claim_store import ClaimStore

logger = logging.getLogger(__name__)


class Aggregator:
    def __init__(self, store: ClaimStore):
        self.store = store
        self._counts = StatusCounts()
        # Held by every counter update and by reconcile, so a recount never
        # interleaves with an increment
        self._lock = asyncio.Lock()

    def counts(self) -> StatusCounts:
        c = self._counts
        return StatusCounts(pending=c.pending, approved=c.approved, rejected=c.rejected)

    async def record_created(self, status: ClaimStatus = ClaimStatus.PENDING) -> None:
        async with self._lock:
            self._bump(status, 1)

    async def record_transition(self, prior: ClaimStatus, new: ClaimStatus) -> None:
        if prior == new:
            return
        async with self._lock:
            self._bump(prior, -1)
            self._bump(new, 1)

    def _bump(self, status: ClaimStatus, delta: int) -> None:
        attr = ClaimStatus(status).value
        setattr(self._counts, attr, getattr(self._counts, attr) + delta)

    async def recount(self) -> StatusCounts:
        return await self.store.recount()

    async def reconcile(self) -> StatusCounts:
        """Replace the counters with a full recount. Never raises on mismatch."""
        async with self._lock:
            fresh = await self.store.recount()
            if fresh != self._counts:
                logger.warning("Reconciled status counts %s -> %s", self._counts.as_dict(), fresh.as_dict())
            self._counts = StatusCounts(pending=fresh.pending, approved=fresh.approved, rejected=fresh.rejected)
            return self.counts()

    async def check_consistency(self) -> StatusCounts:
        """
        Compare counters with a recount.

        Only meaningful at a quiescent point. On mismatch the divergence is
        logged at CRITICAL, counters are reconciled, and InvariantViolation
        is raised so the caller cannot miss it.
        """
        async with self._lock:
            fresh = await self.store.recount()
            if fresh == self._counts:
                return self.counts()
            observed = self._counts.as_dict()
            self._counts = StatusCounts(pending=fresh.pending, approved=fresh.approved, rejected=fresh.rejected)

        status_count_divergence_total.inc()
        logger.critical("Status counts diverged from claim store: counted %s, store %s", observed, fresh.as_dict())
        raise InvariantViolation(
            "Status counts diverged from claim store",
            {"counted": observed, "store": fresh.as_dict()},
        )
