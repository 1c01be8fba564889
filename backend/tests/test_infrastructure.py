"""Tests for the supporting pieces: attachment storage, risk service client, logging and settings."""

import asyncio
import json
import logging

import httpx
import pytest
from pydantic import ValidationError as SettingsError

from claims_engine.config import Settings
from claims_engine.errors import DependencyTimeout, ValidationError
from claims_engine.middleware.logging_config import JSONFormatter
from claims_engine.services.blob_store import LocalBlobStore, check_upload
from claims_engine.services.risk_client import HttpRiskScoreProvider, StaticRiskScoreProvider, lookup_risk_score
from tests.test_rule_engine import record


# ── Attachments ──────────────────────────────────────────────────────────────

class TestCheckUpload:
    def test_accepts_pdf(self):
        assert check_upload("attachments", "r.pdf", "application/pdf", b"%PDF") == {}

    def test_rejects_type_and_empty(self):
        assert "unsupported" in check_upload("attachments", "r.exe", "application/x-msdownload", b"MZ")["attachments"]
        assert "empty" in check_upload("attachments", "r.pdf", "application/pdf", b"")["attachments"]


@pytest.mark.asyncio
class TestLocalBlobStore:
    async def test_put_then_get(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        ref = await store.put("../../etc/receipt.PDF", "application/pdf", b"%PDF-1.4", "bill_receipt")
        assert ref.filename == "receipt.PDF"
        assert ref.size_bytes == 8
        assert ".." not in ref.storage_handle
        assert await store.get(ref.storage_handle) == b"%PDF-1.4"

    async def test_get_outside_root_is_refused(self, tmp_path):
        store = LocalBlobStore(tmp_path / "blobs")
        with pytest.raises(ValidationError):
            await store.get("../outside.pdf")


# ── Risk score client ────────────────────────────────────────────────────────

def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestRiskClient:
    async def test_http_provider_posts_claim_summary(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"risk_score": 42.5})

        async with mock_client(handler) as client:
            provider = HttpRiskScoreProvider("http://risk.local/", client=client)
            assert await lookup_risk_score(provider, record("1200.00")) == 42.5
        assert seen["path"] == "/score"
        assert seen["body"]["claimed_amount"] == "1200.00"

    async def test_server_error_is_dependency_timeout(self):
        async with mock_client(lambda r: httpx.Response(503)) as client:
            provider = HttpRiskScoreProvider("http://risk.local", client=client)
            with pytest.raises(DependencyTimeout):
                await lookup_risk_score(provider, record())

    async def test_malformed_body_is_dependency_timeout(self):
        async with mock_client(lambda r: httpx.Response(200, json={"score": 1})) as client:
            provider = HttpRiskScoreProvider("http://risk.local", client=client)
            with pytest.raises(DependencyTimeout):
                await lookup_risk_score(provider, record())

    async def test_slow_provider_times_out(self):
        class Slow:
            async def fetch(self, claim):
                await asyncio.sleep(1)
                return 10

        with pytest.raises(DependencyTimeout) as exc:
            await lookup_risk_score(Slow(), record(), timeout=0.01)
        assert exc.value.details["dependency"] == "risk-score service"

    @pytest.mark.parametrize("score", [-0.5, 101, True, "n/a"])
    async def test_bad_score_is_dependency_failure(self, score):
        with pytest.raises(DependencyTimeout):
            await lookup_risk_score(StaticRiskScoreProvider(score), record())


# ── Logging ──────────────────────────────────────────────────────────────────

class TestJSONFormatter:
    def test_one_json_object_with_extras(self):
        record_ = logging.LogRecord("claims_engine.test", logging.INFO, __file__, 1, "claim %s done", ("CLM-1",), None)
        record_.claim_id = "CLM-1"
        payload = json.loads(JSONFormatter().format(record_))
        assert payload["message"] == "claim CLM-1 done"
        assert payload["level"] == "INFO"
        assert payload["claim_id"] == "CLM-1"
        assert payload["request_id"] == ""


# ── Settings ─────────────────────────────────────────────────────────────────

class TestSettings:
    def test_production_rejects_sqlite(self):
        with pytest.raises(SettingsError):
            Settings(environment="production", database_url="sqlite+aiosqlite:///./x.db")

    def test_retries_must_be_positive(self):
        with pytest.raises(SettingsError):
            Settings(cas_max_retries=0)

    def test_attachment_types_parsed(self):
        s = Settings(allowed_attachment_types="application/pdf, image/png ,")
        assert s.attachment_types == {"application/pdf", "image/png"}
