"""
Prometheus scrape endpoint. Status gauges are refreshed from the
aggregator on every scrape.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from claims_engine.api.deps import get_aggregator
from claims_engine.middleware.metrics import claims_by_status
from claims_engine.services.aggregator import Aggregator

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def prometheus_metrics(aggregator: Aggregator = Depends(get_aggregator)):
    counts = aggregator.counts()
    for status in ("pending", "approved", "rejected"):
        claims_by_status.labels(status=status).set(getattr(counts, status))
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
