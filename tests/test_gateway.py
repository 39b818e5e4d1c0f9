"""Tests for the gateway orchestrator."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from trustgate.config import GatewaySettings
from trustgate.errors import InvalidInputError
from trustgate.gateway import TrustGateway, validate_content
from trustgate.metrics import Metrics
from trustgate.moderation.classifier import ClassificationAdapter
from trustgate.moderation.domain import detect_domain_content
from trustgate.moderation.models import DecisionAction, Sentiment
from trustgate.moderation.scorer import ModerationScorer
from trustgate.policy import QuotaPolicy
from trustgate.quota.gate import QuotaGate
from trustgate.quota.memory import InMemoryQuotaBackend
from trustgate.quota.store import QuotaStore


class _FakeMessages:
    def __init__(self, reply: dict):
        self.reply = json.dumps(reply)
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        return SimpleNamespace(content=[SimpleNamespace(text=self.reply)])


def _gateway(classifier_reply=None, flags=None, metrics=None) -> TrustGateway:
    metrics = metrics or Metrics()
    messages = _FakeMessages(classifier_reply or {"sentiment": "positive"})

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"results": [{"categories": flags or {}, "category_scores": {}}]}
        )

    store = QuotaStore(InMemoryQuotaBackend(sweep_interval=None), metrics=metrics)
    gate = QuotaGate(
        store,
        policies={"post_creation_ip": QuotaPolicy(10, 3600), "post_creation": QuotaPolicy(2, 3600)},
        operations={"post": [("ip", "post_creation_ip"), ("user", "post_creation")]},
    )
    return TrustGateway(
        gate=gate,
        classifier=ClassificationAdapter(client=SimpleNamespace(messages=messages), metrics=metrics),
        scorer=ModerationScorer(
            api_key="sk-test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            metrics=metrics,
        ),
        max_content_length=100,
        metrics=metrics,
    )


IDS = {"ip": "203.0.113.7", "user": "alice"}


def test_validate_content():
    assert validate_content("hello", 10) == "hello"
    with pytest.raises(InvalidInputError):
        validate_content("   ", 10)
    with pytest.raises(InvalidInputError):
        validate_content(None, 10)
    with pytest.raises(InvalidInputError) as exc_info:
        validate_content("x" * 11, 10)
    assert exc_info.value.details == {"length": 11, "max_length": 10}
    assert exc_info.value.status_code == 422


def test_evaluate_allows_clean_content():
    metrics = Metrics()
    gateway = _gateway(metrics=metrics)

    result = asyncio.run(gateway.evaluate("Look at this tofu!", "post", IDS))

    assert result.allowed
    assert result.decision.action is DecisionAction.allow
    assert result.classification.sentiment is Sentiment.positive
    assert result.quota.remaining == 1
    assert not result.degraded
    assert metrics.get("decision.allow") == 1


def test_evaluate_quota_denial_skips_moderation():
    gateway = _gateway()
    messages = gateway.classifier._client.messages

    for _ in range(2):
        assert asyncio.run(gateway.evaluate("hi", "post", IDS)).allowed
    denied = asyncio.run(gateway.evaluate("hi", "post", IDS))

    assert not denied.allowed
    assert not denied.quota.allowed
    assert denied.decision is None
    assert denied.classification is None
    assert messages.calls == 2


def test_evaluate_rejects_invalid_content_before_quota():
    gateway = _gateway()
    with pytest.raises(InvalidInputError):
        asyncio.run(gateway.evaluate("x" * 101, "post", IDS))
    assert len(gateway.store.backend) == 0


def test_evaluate_blocks_on_blocking_category():
    gateway = _gateway(flags={"sexual/minors": True})
    result = asyncio.run(gateway.evaluate("text", "post", IDS))
    assert result.decision.blocked
    assert not result.allowed


def test_evaluate_uses_domain_detection():
    gateway = _gateway()
    text = "I love bacon"
    result = asyncio.run(gateway.evaluate(text, "post", IDS, domain=detect_domain_content(text)))
    assert result.decision.blocked


def test_evaluate_transformation_narrative_is_allowed():
    gateway = _gateway({"sentiment": "negative", "promotes_disfavored": True})
    text = "I used to eat meat, now I love tofu, vegan"
    result = asyncio.run(gateway.evaluate(text, "post", IDS, domain=detect_domain_content(text)))
    assert result.allowed
    assert result.decision.action is DecisionAction.allow


def test_evaluate_recommended_block_warns():
    gateway = _gateway({"sentiment": "negative", "promotes_disfavored": True})
    result = asyncio.run(gateway.evaluate("Brisket season is here", "post", IDS))
    assert result.allowed
    assert result.decision.action is DecisionAction.content_warning


def test_evaluate_unknown_operation():
    with pytest.raises(ValueError):
        asyncio.run(_gateway().evaluate("hi", "delete_account", IDS))


def test_gateway_from_settings_runs_degraded():
    metrics = Metrics()
    gateway = TrustGateway.from_settings(GatewaySettings(sweep_interval=3600), metrics=metrics)
    try:
        assert not gateway.classifier.configured
        assert not gateway.scorer.configured

        result = asyncio.run(
            gateway.evaluate("What should I cook tonight?", "post", {"ip": "198.51.100.1", "user": "u"})
        )

        assert result.allowed
        assert result.degraded
        assert result.classification.sentiment is Sentiment.question
        assert metrics.get("classifier.degraded") == 1
        assert metrics.get("scorer.degraded") == 1
    finally:
        gateway.close()


def test_gateway_from_settings_with_unreachable_quota_database_fails_open():
    metrics = Metrics()
    settings = GatewaySettings(
        quota_backend="sql",
        quota_database_url="sqlite:////nonexistent-trustgate-dir/nested/quota.db",
        sweep_interval=3600,
    )
    gateway = TrustGateway.from_settings(settings, metrics=metrics)
    try:
        result = asyncio.run(
            gateway.evaluate("Lentil soup tonight", "post", {"ip": "198.51.100.1", "user": "u"})
        )
        assert result.allowed
        assert metrics.get("quota.storage_errors") == 2
    finally:
        gateway.close()


def test_evaluate_blocks_reversed_narrative():
    gateway = _gateway({"sentiment": "positive", "promotes_disfavored": True})
    text = "I used to be vegan, but now I eat steak every day. Steak is the best."
    result = asyncio.run(gateway.evaluate(text, "post", IDS, domain=detect_domain_content(text)))
    assert result.decision.blocked
    assert result.classification.recommended_block


def test_evaluate_blocks_hostility_after_narrative_markers():
    gateway = _gateway({"sentiment": "negative", "present_hostility": True})
    text = "I used to think vegans were annoying. Now I know vegans are stupid."
    result = asyncio.run(gateway.evaluate(text, "post", IDS, domain=detect_domain_content(text)))
    assert result.decision.blocked
    assert result.classification.recommended_block
