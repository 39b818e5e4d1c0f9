"""Durable quota backends.

Every backend performs the read-increment-compare as one atomic operation
against its store and reports failures as :class:`StorageError`.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional, Protocol

import httpx
from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    case,
    create_engine,
    delete,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from trustgate.config import GatewaySettings
from trustgate.errors import StorageError
from trustgate.quota.memory import InMemoryQuotaBackend
from trustgate.quota.models import QuotaCounter, QuotaKey

log = logging.getLogger(__name__)


class QuotaBackend(Protocol):
    """Atomic fixed-window counter primitive."""

    def increment(
        self,
        identifier: str,
        action: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> QuotaCounter:
        """Count one request and return the counter state after it.

        Starts a new window (count 1) when none exists or the current one
        has elapsed; otherwise increments, saturating at ``limit + 1``.
        """
        ...

    def reset(self, identifier: str, action: str) -> None:
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# SQL (SQLite / PostgreSQL)
# ---------------------------------------------------------------------------

metadata = MetaData()

quota_counters = Table(
    "quota_counters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identifier", String(255), nullable=False),
    Column("action", String(100), nullable=False),
    Column("request_count", Integer, nullable=False, default=0),
    Column("window_expires_at", Float, nullable=False),
    UniqueConstraint("identifier", "action", name="uq_quota_counters_key"),
)


class SQLQuotaBackend:
    """Counters in a relational table, one upsert per check.

    The whole check is a single ``INSERT ... ON CONFLICT DO UPDATE ...
    RETURNING`` statement, so concurrent callers can never both observe the
    same pre-increment count.  The table is created on first use, so an
    unreachable database surfaces as a :class:`StorageError` from the
    operation itself instead of failing construction.
    """

    def __init__(self, url_or_engine: str | Engine) -> None:
        if isinstance(url_or_engine, Engine):
            self._engine = url_or_engine
        else:
            self._engine = create_engine(url_or_engine, pool_pre_ping=True)
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            self._insert = postgresql.insert
        elif dialect == "sqlite":
            self._insert = sqlite.insert
        else:
            raise ValueError(f"Unsupported quota database dialect: {dialect}")
        self._table_ready = False
        self._table_lock = threading.Lock()

    def _ensure_table(self) -> None:
        if self._table_ready:
            return
        with self._table_lock:
            if not self._table_ready:
                metadata.create_all(self._engine)
                self._table_ready = True

    def increment(
        self,
        identifier: str,
        action: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> QuotaCounter:
        c = quota_counters.c
        stmt = self._insert(quota_counters).values(
            identifier=identifier,
            action=action,
            request_count=1,
            window_expires_at=now + window_seconds,
        )
        expired = c.window_expires_at <= now
        stmt = stmt.on_conflict_do_update(
            index_elements=[c.identifier, c.action],
            set_={
                "request_count": case(
                    (expired, 1),
                    (c.request_count > limit, limit + 1),
                    else_=c.request_count + 1,
                ),
                "window_expires_at": case(
                    (expired, stmt.excluded.window_expires_at),
                    else_=c.window_expires_at,
                ),
            },
        ).returning(c.request_count, c.window_expires_at)

        try:
            self._ensure_table()
            with self._engine.begin() as conn:
                count, expires_at = conn.execute(stmt).one()
        except SQLAlchemyError as exc:
            raise StorageError("Quota upsert failed", {"error": str(exc)}) from exc
        return QuotaCounter(
            key=QuotaKey(identifier, action),
            count=count,
            window_expires_at=expires_at,
        )

    def reset(self, identifier: str, action: str) -> None:
        c = quota_counters.c
        try:
            self._ensure_table()
            with self._engine.begin() as conn:
                conn.execute(
                    delete(quota_counters).where(c.identifier == identifier, c.action == action)
                )
        except SQLAlchemyError as exc:
            raise StorageError("Quota reset failed", {"error": str(exc)}) from exc

    def purge_expired(self, now: float) -> int:
        """Delete rows whose window has elapsed; return the number removed."""
        try:
            self._ensure_table()
            with self._engine.begin() as conn:
                result = conn.execute(
                    delete(quota_counters).where(quota_counters.c.window_expires_at <= now)
                )
        except SQLAlchemyError as exc:
            raise StorageError("Quota purge failed", {"error": str(exc)}) from exc
        return result.rowcount or 0

    def close(self) -> None:
        self._engine.dispose()


# ---------------------------------------------------------------------------
# Datastore RPC (PostgREST)
# ---------------------------------------------------------------------------


class RPCQuotaBackend:
    """Counters behind the datastore's ``check_rate_limit`` function.

    The server-side function performs the conditional upsert and answers
    ``{allowed, current, limit, remaining, reset_at}``; this backend treats
    it as an opaque atomic primitive.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 5.0,
        function: str = "check_rate_limit",
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.function = function
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
        )

    def increment(
        self,
        identifier: str,
        action: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> QuotaCounter:
        payload = {
            "p_identifier": identifier,
            "p_action": action,
            "p_max_requests": limit,
            "p_window_seconds": window_seconds,
        }
        try:
            resp = self._client.post(f"/rest/v1/rpc/{self.function}", json=payload)
            resp.raise_for_status()
            data = resp.json()
            allowed = bool(data["allowed"])
            current = int(data.get("current", 0))
            reset_at = datetime.fromisoformat(str(data["reset_at"]).replace("Z", "+00:00"))
        except httpx.HTTPError as exc:
            raise StorageError("Quota RPC failed", {"error": str(exc)}) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError("Malformed quota RPC response", {"error": str(exc)}) from exc

        count = min(current, limit) if allowed else limit + 1
        return QuotaCounter(
            key=QuotaKey(identifier, action),
            count=max(count, 1),
            window_expires_at=reset_at.timestamp(),
        )

    def reset(self, identifier: str, action: str) -> None:
        try:
            resp = self._client.delete(
                "/rest/v1/rate_limits",
                params={"identifier": f"eq.{identifier}", "action": f"eq.{action}"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError("Quota reset failed", {"error": str(exc)}) from exc

    def close(self) -> None:
        self._client.close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_backend(settings: GatewaySettings) -> QuotaBackend:
    """Construct the backend named by ``settings.quota_backend``.

    A durable backend without its connection settings degrades to the
    in-memory backend rather than refusing to start.
    """
    kind = settings.quota_backend
    if kind == "sql":
        if settings.quota_database_url:
            return SQLQuotaBackend(settings.quota_database_url)
        log.warning("TRUSTGATE_QUOTA_DATABASE_URL not set; using in-memory quota backend")
    elif kind == "rpc":
        if settings.supabase_url and settings.supabase_service_key:
            return RPCQuotaBackend(
                settings.supabase_url,
                settings.supabase_service_key,
                timeout=settings.service_timeout,
            )
        log.warning("SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY not set; using in-memory quota backend")
    elif kind != "memory":
        log.warning("Unknown quota backend %r; using in-memory quota backend", kind)
    return InMemoryQuotaBackend(sweep_interval=settings.sweep_interval)
