"""Durable, concurrency-safe fixed-window rate limiting."""

from trustgate.quota.backends import QuotaBackend, RPCQuotaBackend, SQLQuotaBackend, build_backend
from trustgate.quota.gate import QuotaCheck, QuotaGate
from trustgate.quota.memory import InMemoryQuotaBackend
from trustgate.quota.models import QuotaCounter, QuotaDecision, QuotaKey
from trustgate.quota.store import QuotaStore

__all__ = [
    "QuotaBackend",
    "QuotaCheck",
    "QuotaCounter",
    "QuotaDecision",
    "QuotaGate",
    "QuotaKey",
    "QuotaStore",
    "InMemoryQuotaBackend",
    "RPCQuotaBackend",
    "SQLQuotaBackend",
    "build_backend",
]
