from __future__ import annotations

import asyncio

import httpx
from httpx_retries import Retry, RetryTransport

from nudl.adapters.http_resilience import (
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
    _build_transport,  # type: ignore[reportPrivateUsage]
)


def test_retry_policy_builds_retry() -> None:
    assert isinstance(RetryPolicy().build(), Retry)


def test_transport_wraps_retries_unless_disabled() -> None:
    assert isinstance(_build_transport(ResilienceConfig(name="k")), RetryTransport)
    assert isinstance(
        _build_transport(ResilienceConfig(name="k", retry=None)), httpx.AsyncHTTPTransport
    )


def test_client_applies_base_url_and_default_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    config = ResilienceConfig(
        name="kubernetes",
        base_url="https://api:6443",
        default_headers={"Accept": "application/json"},
    )

    async def scenario() -> int:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            response = await client.request("PATCH", "/api/v1/nodes/n", json={"a": 1})
            return response.status_code

    assert asyncio.run(scenario()) == 204
    [request] = seen
    assert str(request.url) == "https://api:6443/api/v1/nodes/n"
    assert request.headers["Accept"] == "application/json"
