"""HTTP-level tests: claim intake form, admin decisions, rules catalog and audit endpoints."""

import pytest

PDF = b"%PDF-1.4 test receipt"


def form(amount="500.00", policy="POL-1001", name="Jane Doe", age="42"):
    return {"policyId": policy, "username": name, "claimedAmt": amount, "claimantAge": age}


def receipts(*files):
    return [("billReceipts", f) for f in (files or [("receipt.pdf", PDF, "application/pdf")])]


async def submit(client, **kwargs):
    files = kwargs.pop("files", None)
    return await client.post("/api/claims", data=form(**kwargs), files=files if files is not None else receipts())


# ── Intake ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSubmit:
    async def test_clean_claim_is_approved(self, client):
        resp = await submit(client)
        assert resp.status_code == 201
        data = resp.json()
        assert data["id"].startswith("CLM-")
        assert data["status"] == "approved"
        assert data["recommendation"] == "auto_approve"
        assert data["risk_level"] == "low"
        assert data["version"] == 2

        detail = (await client.get(f"/api/claims/{data['id']}")).json()
        assert detail["claimed_amount"] == 500.0
        assert detail["validated"] is True
        assert detail["attachments"][0]["filename"] == "receipt.pdf"
        assert detail["attachments"][0]["document_type"] == "bill_receipt"

    async def test_over_threshold_is_rejected(self, client):
        resp = await submit(client, amount="60000")
        assert resp.status_code == 201
        assert resp.json()["status"] == "rejected"

    async def test_preauthorization_upload_satisfies_authorization_rule(self, client):
        without = await submit(client, amount="12500.50", policy="POL-A")
        assert without.json()["status"] == "pending"

        files = receipts() + [("preAuthorization", ("preauth.pdf", PDF, "application/pdf"))]
        with_preauth = await submit(client, amount="12500.50", policy="POL-B", files=files)
        assert with_preauth.json()["status"] == "approved"

    async def test_field_errors_use_form_names(self, client):
        resp = await submit(client, amount="-3", policy="", name="", age="abc")
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "validation_error"
        assert set(body["errors"]) == {"policyId", "username", "claimedAmt", "claimantAge"}

    async def test_bill_receipt_required(self, client):
        resp = await client.post("/api/claims", data=form())
        assert resp.status_code == 422
        assert "billReceipts" in resp.json()["errors"]

    async def test_unsupported_and_empty_files(self, client):
        resp = await submit(client, files=receipts(("notes.txt", b"hello", "text/plain")))
        assert resp.status_code == 422
        assert "unsupported file type" in resp.json()["errors"]["billReceipts"]

        resp = await submit(client, files=receipts(("empty.pdf", b"", "application/pdf")))
        assert resp.status_code == 422
        assert "empty" in resp.json()["errors"]["billReceipts"]

    async def test_invalid_submission_stores_nothing(self, client):
        await submit(client, amount="abc")
        assert (await client.get("/api/claims")).json()["total"] == 0
        assert (await client.get("/api/claims/counts")).json()["total"] == 0

    async def test_risk_service_timeout_returns_504(self, client, seeded_services, risk_provider):
        risk_provider.delay = 0.3
        seeded_services.lifecycle.risk_timeout = 0.05
        resp = await submit(client)
        assert resp.status_code == 504
        body = resp.json()
        assert body["code"] == "dependency_timeout"
        claim_id = body["details"]["claim_id"]

        pending = (await client.get(f"/api/claims/{claim_id}")).json()
        assert pending["status"] == "pending"
        assert pending["validated"] is False

        risk_provider.delay = 0
        retried = await client.post(f"/api/claims/{claim_id}/reevaluate")
        assert retried.status_code == 200
        assert retried.json()["claim"]["status"] == "approved"


# ── Admin decisions ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestStatusUpdate:
    async def _pending_claim(self, client, risk_provider):
        risk_provider.default = 92
        data = (await submit(client, amount="750")).json()
        risk_provider.default = 10
        assert data["status"] == "pending"
        return data

    async def test_approve_pending(self, client, risk_provider):
        claim = await self._pending_claim(client, risk_provider)
        resp = await client.patch(
            "/api/claims/status",
            json={"id": claim["id"], "status": "approved", "version": claim["version"]},
            headers={"X-Actor": "alice"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert resp.json()["version"] == claim["version"] + 1

        history = (await client.get(f"/api/claims/{claim['id']}/history")).json()
        assert history["audit"][-1]["actor"] == "admin:alice"

    async def test_stale_version_is_409(self, client, risk_provider):
        claim = await self._pending_claim(client, risk_provider)
        resp = await client.patch(
            "/api/claims/status", json={"id": claim["id"], "status": "rejected", "version": 1},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "version_conflict"

    async def test_decided_claim_is_409(self, client):
        claim = (await submit(client)).json()
        resp = await client.patch(
            "/api/claims/status", json={"id": claim["id"], "status": "rejected", "version": claim["version"]},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "illegal_transition"

    async def test_unknown_claim_is_404(self, client):
        resp = await client.patch("/api/claims/status", json={"id": "CLM-NOPE", "status": "approved", "version": 1})
        assert resp.status_code == 404

    async def test_bad_decision_is_422(self, client, risk_provider):
        claim = await self._pending_claim(client, risk_provider)
        resp = await client.patch(
            "/api/claims/status", json={"id": claim["id"], "status": "maybe", "version": claim["version"]},
        )
        assert resp.status_code == 422


# ── Reads ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestReads:
    async def test_counts_and_filters(self, client, risk_provider):
        await submit(client, policy="P-1")
        await submit(client, policy="P-2", amount="99999")
        risk_provider.default = 80
        await submit(client, policy="P-3")

        counts = (await client.get("/api/claims/counts")).json()
        assert counts == {"pending": 1, "approved": 1, "rejected": 1, "total": 3}

        pending = (await client.get("/api/claims", params={"status": "pending"})).json()
        assert [c["policy_id"] for c in pending["items"]] == ["P-3"]
        high = (await client.get("/api/claims", params={"risk_level": "high"})).json()
        assert high["total"] == 1

        page = (await client.get("/api/claims", params={"limit": 2})).json()
        assert [c["policy_id"] for c in page["items"]] == ["P-1", "P-2"]
        assert page["total"] == 3

        first_pending = (await client.get("/api/claims", params={"status": "pending", "limit": 1})).json()
        assert len(first_pending["items"]) == 1 and first_pending["total"] == 1
        one = (await client.get("/api/claims", params={"limit": 1, "offset": 1})).json()
        assert [c["policy_id"] for c in one["items"]] == ["P-2"]
        assert one["total"] == 3

    async def test_bad_filter_is_422(self, client):
        assert (await client.get("/api/claims", params={"status": "lost"})).status_code == 422

    async def test_history_and_audit_verification(self, client):
        claim = (await submit(client, amount="60000")).json()
        history = (await client.get(f"/api/claims/{claim['id']}/history")).json()
        assert [e["event_type"] for e in history["audit"]] == [
            "claim_submitted", "claim_evaluated", "claim_transitioned",
        ]
        assert history["evaluations"][0]["recommendation"] == "auto_reject"
        failed = [v["rule_id"] for v in history["evaluations"][0]["verdicts"] if v["outcome"] == "fail"]
        assert failed == ["RULE-001"]

        verification = (await client.get(f"/api/audit/verify/{claim['id']}")).json()
        assert verification["valid"] is True
        assert verification["entries_checked"] == 3

    async def test_reevaluate_decided_claim_is_409(self, client):
        claim = (await submit(client)).json()
        resp = await client.post(f"/api/claims/{claim['id']}/reevaluate")
        assert resp.status_code == 409

    async def test_unknown_claim_is_404(self, client):
        assert (await client.get("/api/claims/CLM-MISSING")).status_code == 404
        assert (await client.get("/api/audit/verify/CLM-MISSING")).status_code == 404


# ── Rules ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRulesApi:
    async def test_list_and_active(self, client):
        rules = (await client.get("/api/rules")).json()
        assert rules["total"] == 5
        active = (await client.get("/api/rules/active")).json()
        assert [r["rule_id"] for r in active["rules"]] == ["RULE-002", "RULE-001", "RULE-003", "RULE-005"]

    async def test_upsert_changes_next_evaluation(self, client):
        resp = await client.put("/api/rules/RULE-001", json={
            "name": "Maximum Claim Amount",
            "rule_type": "threshold",
            "priority": "high",
            "parameters": {"max_amount": 100000},
        }, headers={"X-Actor": "bob"})
        assert resp.status_code == 200
        assert resp.json()["version"] == 2

        assert (await submit(client, amount="60000.50")).json()["status"] != "rejected"

    async def test_negative_threshold_is_422(self, client):
        resp = await client.put("/api/rules/RULE-001", json={
            "name": "Maximum Claim Amount",
            "rule_type": "threshold",
            "priority": "high",
            "parameters": {"max_amount": -1},
        })
        assert resp.status_code == 422
        assert "parameters.max_amount" in resp.json()["errors"]
        assert (await client.get("/api/rules/RULE-001")).json()["parameters"] == {"max_amount": 50000}

    async def test_toggle_active(self, client):
        resp = await client.patch("/api/rules/RULE-004/active", json={"active": True}, headers={"X-Actor": "carol"})
        assert resp.status_code == 200
        assert resp.json()["active"] is True

        detail = (await client.get("/api/rules/RULE-004")).json()
        assert detail["activation_history"][-1] == {
            "active": True, "actor": "admin:carol", "changed_at": detail["activation_history"][-1]["changed_at"],
        }

    async def test_stats(self, client):
        stats = (await client.get("/api/rules/stats")).json()
        assert stats["total"] == 5
        assert stats["active"] == 4
        assert stats["by_type"]["threshold"] == {"total": 1, "active": 1}

    async def test_unknown_rule_is_404(self, client):
        assert (await client.get("/api/rules/RULE-999")).status_code == 404


# ── Ops ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestOps:
    async def test_health(self, client):
        data = (await client.get("/api/health")).json()
        assert data["status"] == "healthy"
        assert data["components"]["database"]["status"] == "connected"

    async def test_metrics_exposes_claim_counters(self, client):
        await submit(client)
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "claim_submissions_total" in resp.text
        assert "claim_transitions_total" in resp.text
        assert 'claims_by_status{status="approved"} 1.0' in resp.text

    async def test_request_id_is_echoed(self, client):
        resp = await client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"
