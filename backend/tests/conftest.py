"""Shared test fixtures: a throwaway SQLite database per test and the service graph on top of it."""

import asyncio
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from claims_engine.api.deps import Services, build_services
from claims_engine.database import create_schema
from claims_engine.domain import AttachmentRef, ClaimDraft, RuleDraft
from claims_engine.main import app
from claims_engine.services.blob_store import LocalBlobStore


class FakeRiskProvider:
    """Risk service double: fixed score per claimant, optional delay or failure."""

    def __init__(self, default: float = 10.0):
        self.default = default
        self.scores: dict[str, float] = {}
        self.delay: float = 0.0
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def fetch(self, claim) -> float:
        self.calls.append(claim.claim_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.scores.get(claim.claimant_name, self.default)


def bill(name: str = "receipt.pdf", document_type: str = "bill_receipt") -> AttachmentRef:
    return AttachmentRef(
        filename=name,
        content_type="application/pdf",
        storage_handle=f"test/{name}",
        document_type=document_type,
        size_bytes=1024,
    )


def make_draft(
    amount="500.00",
    policy_id: str = "POL-1001",
    claimant: str = "Jane Doe",
    age: int | None = 42,
    attachments: tuple[AttachmentRef, ...] | None = None,
) -> ClaimDraft:
    return ClaimDraft(
        policy_id=policy_id,
        claimant_name=claimant,
        claimed_amount=amount,
        claimant_age=age,
        attachments=attachments if attachments is not None else (bill(),),
    )


def threshold_rule(max_amount=50000, rule_id: str = "T-1", active: bool = True) -> RuleDraft:
    return RuleDraft(
        rule_id=rule_id,
        name="Maximum Claim Amount",
        rule_type="threshold",
        priority="high",
        parameters={"max_amount": max_amount},
        active=active,
    )


@pytest_asyncio.fixture
async def sessionmaker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite file per test; NullPool gives every transaction its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'claims-test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    await create_schema(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def risk_provider() -> FakeRiskProvider:
    return FakeRiskProvider()


@pytest_asyncio.fixture
async def services(sessionmaker, risk_provider, tmp_path) -> Services:
    """Service graph with an empty rule catalog."""
    return build_services(sessionmaker, risk_provider=risk_provider, blob_store=LocalBlobStore(tmp_path / "blobs"))


@pytest_asyncio.fixture
async def seeded_services(services) -> Services:
    """Service graph with the default rule set installed."""
    await services.catalog.seed_defaults()
    return services


@pytest_asyncio.fixture
async def client(seeded_services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app wired to the per-test database."""
    app.state.services = seeded_services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.services = None
