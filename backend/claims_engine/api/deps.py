"""
API dependencies: the service graph and the acting admin.

Services are built once at startup and hung off `app.state.services`;
routes receive them through Depends so tests can swap in their own.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from claims_engine.services.aggregator import Aggregator
from claims_engine.services.blob_store import BlobStore, LocalBlobStore
from claims_engine.services.claim_store import ClaimStore
from claims_engine.services.lifecycle import LifecycleController, admin_actor
from claims_engine.services.risk_client import RiskScoreProvider, build_risk_provider
from claims_engine.services.rule_catalog import RuleCatalog
from claims_engine.services.rule_engine import RuleEvaluator
from claims_engine.services.scoring_engine import FraudScorer


@dataclass
class Services:
    store: ClaimStore
    catalog: RuleCatalog
    aggregator: Aggregator
    lifecycle: LifecycleController
    blob_store: BlobStore


def build_services(
    sessionmaker: async_sessionmaker[AsyncSession],
    risk_provider: RiskScoreProvider | None = None,
    blob_store: BlobStore | None = None,
) -> Services:
    store = ClaimStore(sessionmaker)
    catalog = RuleCatalog(sessionmaker)
    aggregator = Aggregator(store)
    lifecycle = LifecycleController(
        store=store,
        catalog=catalog,
        evaluator=RuleEvaluator(),
        scorer=FraudScorer(),
        risk_provider=risk_provider or build_risk_provider(),
        aggregator=aggregator,
    )
    return Services(
        store=store,
        catalog=catalog,
        aggregator=aggregator,
        lifecycle=lifecycle,
        blob_store=blob_store or LocalBlobStore(),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_lifecycle(services: Services = Depends(get_services)) -> LifecycleController:
    return services.lifecycle


def get_catalog(services: Services = Depends(get_services)) -> RuleCatalog:
    return services.catalog


def get_aggregator(services: Services = Depends(get_services)) -> Aggregator:
    return services.aggregator


def get_actor(x_actor: str | None = Header(None)) -> str:
    """Admin identity from X-Actor; authentication happens upstream."""
    return admin_actor(x_actor)
