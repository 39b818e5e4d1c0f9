"""Tests for the FastAPI layer."""

import json
from types import SimpleNamespace
from typing import Optional

import httpx
from fastapi.testclient import TestClient

from trustgate.config import GatewaySettings
from trustgate.gateway import TrustGateway
from trustgate.identity import Identity, RemoteIdentityProvider
from trustgate.metrics import Metrics
from trustgate.moderation.classifier import ClassificationAdapter
from trustgate.moderation.scorer import ModerationScorer
from trustgate.policy import QUOTA_POLICIES, QuotaPolicy
from trustgate.quota.gate import QuotaGate
from trustgate.quota.memory import InMemoryQuotaBackend
from trustgate.quota.store import QuotaStore
from web.backend.app.main import create_app


class _FakeIdentityProvider:
    def __init__(self):
        self.identities = {
            "alice-token": Identity("alice"),
            "bob-token": Identity("bob"),
            "banned-token": Identity("mallory", is_banned=True),
        }

    async def resolve(self, token: str) -> Optional[Identity]:
        return self.identities.get(token)


class _FakeMessages:
    def __init__(self, reply: dict):
        self.reply = reply

    async def create(self, **kwargs):
        return SimpleNamespace(content=[SimpleNamespace(text=json.dumps(self.reply))])


def _client(classifier_reply=None, flags=None, identity_provider=None, **policy_overrides) -> TestClient:
    metrics = Metrics()
    policies = dict(QUOTA_POLICIES)
    policies.update(policy_overrides)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"results": [{"categories": flags or {}, "category_scores": {"hate": 0.01}}]},
        )

    gateway = TrustGateway(
        gate=QuotaGate(
            QuotaStore(InMemoryQuotaBackend(sweep_interval=None), metrics=metrics),
            policies=policies,
        ),
        classifier=ClassificationAdapter(
            client=SimpleNamespace(messages=_FakeMessages(classifier_reply or {"sentiment": "positive"})),
            metrics=metrics,
        ),
        scorer=ModerationScorer(
            api_key="sk-test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            metrics=metrics,
        ),
        max_content_length=200,
        metrics=metrics,
    )
    app = create_app(
        GatewaySettings(),
        gateway=gateway,
        identity_provider=identity_provider or _FakeIdentityProvider(),
    )
    return TestClient(app)


ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------


def test_health():
    with _client() as client:
        resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_metrics_endpoint_reports_decisions():
    with _client() as client:
        client.post("/api/submissions/post", json={"content": "Tofu tacos"}, headers=ALICE)
        resp = client.get("/api/gateway/metrics")
    assert resp.status_code == 200
    assert resp.json()["counters"]["decision.allow"] == 1


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def test_missing_or_invalid_token_is_401():
    with _client() as client:
        assert client.post("/api/submissions/post", json={"content": "hi"}).status_code == 401
        resp = client.post(
            "/api/submissions/post",
            json={"content": "hi"},
            headers={"Authorization": "Bearer nope"},
        )
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_banned_user_is_403():
    with _client() as client:
        resp = client.post(
            "/api/submissions/post",
            json={"content": "hi"},
            headers={"Authorization": "Bearer banned-token"},
        )
    assert resp.status_code == 403


def test_unreadable_auth_response_is_503():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway error</html>")

    provider = RemoteIdentityProvider(
        "https://auth.example", "service-key", transport=httpx.MockTransport(handler)
    )
    with _client(identity_provider=provider) as client:
        resp = client.post("/api/submissions/post", json={"content": "hi"}, headers=ALICE)
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


def test_submission_allowed():
    with _client() as client:
        resp = client.post("/api/submissions/post", json={"content": "Tofu tacos"}, headers=ALICE)
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed"] is True
    assert body["decision"] == "allow"
    assert body["warnings"] == []
    assert body["quota"]["limit"] == 10
    assert body["quota"]["remaining"] == 9
    assert 0 < body["quota"]["resetIn"] <= 3_600_000
    assert "degraded" not in body


def test_submission_quota_exceeded_is_429():
    with _client(post_creation=QuotaPolicy(1, 60)) as client:
        assert client.post("/api/submissions/post", json={"content": "one"}, headers=ALICE).status_code == 200
        resp = client.post("/api/submissions/post", json={"content": "two"}, headers=ALICE)
    assert resp.status_code == 429
    assert 1 <= int(resp.headers["retry-after"]) <= 60
    detail = resp.json()["detail"]
    assert detail["limit"] == 1
    assert detail["remaining"] == 0


def test_ip_quota_applies_across_users():
    with _client(comment_creation_ip=QuotaPolicy(1, 60)) as client:
        headers = {"x-forwarded-for": "198.51.100.4, 10.0.0.1"}
        first = client.post("/api/submissions/comment", json={"content": "a"}, headers={**ALICE, **headers})
        second = client.post("/api/submissions/comment", json={"content": "b"}, headers={**BOB, **headers})
        other_ip = client.post(
            "/api/submissions/comment",
            json={"content": "c"},
            headers={**BOB, "x-forwarded-for": "198.51.100.5"},
        )
    assert first.status_code == 200
    assert second.status_code == 429
    assert other_ip.status_code == 200


def test_submission_blocked_is_422():
    with _client(flags={"violence/graphic": True}) as client:
        resp = client.post("/api/submissions/post", json={"content": "gore"}, headers=ALICE)
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert "community guidelines" in detail["error"]
    assert detail["warnings"] == ["graphic violence"]


def test_submission_domain_promotion_is_blocked():
    with _client() as client:
        resp = client.post("/api/submissions/post", json={"content": "I love bacon"}, headers=ALICE)
    assert resp.status_code == 422


def test_submission_content_warning():
    with _client(flags={"violence": True, "hate": True}) as client:
        resp = client.post("/api/submissions/comment", json={"content": "heated"}, headers=ALICE)
    assert resp.status_code == 200
    body = resp.json()
    assert body["decision"] == "content_warning"
    assert body["warnings"] == ["hate speech", "violence"]
    assert body["message"] == "This content may contain hate speech and violence."


def test_submission_invalid_content_uses_error_envelope():
    with _client() as client:
        blank = client.post("/api/submissions/post", json={"content": "   "}, headers=ALICE)
        long = client.post("/api/submissions/post", json={"content": "x" * 201}, headers=ALICE)
    assert blank.status_code == 422
    assert blank.json()["code"] == "INVALID_INPUT"
    assert blank.json()["retryable"] is False
    assert long.status_code == 422
    assert long.json()["details"]["max_length"] == 200


def test_unknown_operation_is_404():
    with _client() as client:
        resp = client.post("/api/submissions/nuke", json={"content": "hi"}, headers=ALICE)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Quota check
# ---------------------------------------------------------------------------


def test_quota_check_endpoint():
    payload = {"identifier": "alice", "action": "contact_form", "limit": 1, "windowSeconds": 60}
    with _client() as client:
        first = client.post("/api/quota/check", json=payload, headers=ALICE)
        second = client.post("/api/quota/check", json=payload, headers=ALICE)
    assert first.status_code == 200
    body = first.json()
    assert (body["allowed"], body["limit"], body["current"], body["remaining"]) == (True, 1, 1, 0)
    assert 59_000 <= body["resetIn"] <= 60_000
    assert second.status_code == 429
    assert "retry-after" in second.headers


def test_quota_check_validates_payload():
    with _client() as client:
        resp = client.post(
            "/api/quota/check",
            json={"identifier": "a", "action": "b", "limit": 0, "windowSeconds": 60},
            headers=ALICE,
        )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Content analysis
# ---------------------------------------------------------------------------


def test_analyze_returns_classification():
    reply = {"sentiment": "negative", "promotes_disfavored": True, "tags": ["bbq"]}
    with _client(classifier_reply=reply) as client:
        resp = client.post("/api/content/analyze", json={"content": "Ribs tonight"}, headers=ALICE)
    assert resp.status_code == 200
    body = resp.json()
    assert body["sentiment"] == "negative"
    assert body["recommendedBlock"] is True
    assert body["isFlaggedDomain"] is True
    assert body["flaggedReason"] == "Promotes animal products"
    assert body["tags"] == ["bbq"]
    assert body["degraded"] is False


def test_analyze_has_its_own_quota():
    with _client(content_analysis=QuotaPolicy(1, 60)) as client:
        assert client.post("/api/content/analyze", json={"content": "a"}, headers=ALICE).status_code == 200
        resp = client.post("/api/content/analyze", json={"content": "b"}, headers=ALICE)
        post = client.post("/api/submissions/post", json={"content": "c"}, headers=ALICE)
    assert resp.status_code == 429
    assert post.status_code == 200


# ---------------------------------------------------------------------------
# Moderation check
# ---------------------------------------------------------------------------


def test_moderation_check_with_caller_domain_detection():
    payload = {
        "content": "just some words",
        "domainDetection": {"detected": True, "severity": "low", "matches": ["miss meet"]},
    }
    with _client() as client:
        resp = client.post("/api/moderation/check", json=payload, headers=ALICE)
    assert resp.status_code == 200
    body = resp.json()
    assert body["flagged"] is True
    assert body["recommendation"] == "content_warning"
    assert body["warnings"] == ["anti-vegan content"]
    assert body["categoryScores"]["hate"] == 0.01


def test_moderation_check_blocks_blocking_category():
    with _client(flags={"self-harm": True}) as client:
        resp = client.post("/api/moderation/check", json={"content": "text"}, headers=ALICE)
    body = resp.json()
    assert body["recommendation"] == "block"
    assert body["categories"]["self_harm"] is True


def test_moderation_check_runs_detector_when_not_supplied():
    with _client() as client:
        resp = client.post("/api/moderation/check", json={"content": "vegans are annoying"}, headers=ALICE)
    assert resp.json()["recommendation"] == "block"
