"""Tests for the remote identity provider and client IP resolution."""

import asyncio

import httpx
import pytest
from starlette.requests import Request

from trustgate.identity import Identity, RemoteIdentityProvider
from web.backend.app.middleware.auth import get_client_ip


def _provider(banned: bool = False) -> RemoteIdentityProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            if request.headers["authorization"] == "Bearer good-token":
                return httpx.Response(200, json={"id": "user-42", "email": "a@example.com"})
            return httpx.Response(401, json={"msg": "invalid JWT"})
        if request.url.path == "/rest/v1/users":
            assert request.url.params["id"] == "eq.user-42"
            assert request.headers["authorization"] == "Bearer service-key"
            return httpx.Response(200, json=[{"is_banned": banned}])
        return httpx.Response(404)

    return RemoteIdentityProvider(
        "https://auth.example/", "service-key", transport=httpx.MockTransport(handler)
    )


def test_resolve_valid_token():
    identity = asyncio.run(_provider().resolve("good-token"))
    assert identity == Identity("user-42", is_banned=False)


def test_resolve_banned_user():
    identity = asyncio.run(_provider(banned=True).resolve("good-token"))
    assert identity.is_banned


def test_resolve_invalid_token():
    assert asyncio.run(_provider().resolve("bad-token")) is None


def test_resolve_unreadable_response_raises_value_error():
    for body in ("not json", "[1, 2]"):

        def handler(request: httpx.Request, body=body) -> httpx.Response:
            return httpx.Response(200, text=body)

        provider = RemoteIdentityProvider(
            "https://auth.example", "service-key", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ValueError):
            asyncio.run(provider.resolve("good-token"))


def _request(headers: dict, client=("10.0.0.9", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_precedence():
    assert get_client_ip(_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "X-Real-IP": "3.3.3.3"})) == "1.1.1.1"
    assert get_client_ip(_request({"X-Real-IP": "3.3.3.3", "CF-Connecting-IP": "4.4.4.4"})) == "3.3.3.3"
    assert get_client_ip(_request({"CF-Connecting-IP": "4.4.4.4"})) == "4.4.4.4"
    assert get_client_ip(_request({})) == "10.0.0.9"
    assert get_client_ip(_request({}, client=None)) == "unknown"
