"""Identity collaborator: resolves a bearer token to a user and ban status.

Sessions are issued elsewhere; the gateway only looks them up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""

    user_id: str
    is_banned: bool = False


class IdentityProvider(Protocol):
    async def resolve(self, token: str) -> Optional[Identity]:
        """Return the identity for *token*, or *None* if it is not valid."""
        ...


class RemoteIdentityProvider:
    """Supabase-style auth lookup.

    ``GET /auth/v1/user`` with the caller's token yields the user id; the
    ban flag is read from ``/rest/v1/users`` with the service key.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"apikey": self.service_key},
        )

    async def resolve(self, token: str) -> Optional[Identity]:
        async with self._client() as client:
            resp = await client.get("/auth/v1/user", headers={"Authorization": f"Bearer {token}"})
            if resp.status_code in (401, 403):
                return None
            resp.raise_for_status()
            user = resp.json()
            if not isinstance(user, dict):
                raise ValueError(f"Unexpected auth response: {type(user).__name__}")
            user_id = user.get("id")
            if not user_id:
                return None

            ban = await client.get(
                "/rest/v1/users",
                params={"id": f"eq.{user_id}", "select": "is_banned"},
                headers={"Authorization": f"Bearer {self.service_key}"},
            )
            ban.raise_for_status()
            rows = ban.json()
        is_banned = bool(rows and rows[0].get("is_banned"))
        if is_banned:
            log.info("Banned user %s attempted a write", user_id)
        return Identity(user_id=str(user_id), is_banned=is_banned)
