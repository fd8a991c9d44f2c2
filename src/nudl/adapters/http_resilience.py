"""Async HTTP client shared by the registry adapters."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from httpx_retries import RetryTransport

from nudl.config.http_resilience import ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import HeaderTypes, QueryParamTypes, URLTypes

__all__ = ["ResilienceConfig", "ResilientClient", "RetryPolicy"]

log = getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None


def _build_transport(config: ResilienceConfig) -> httpx.AsyncBaseTransport:
    inner = httpx.AsyncHTTPTransport(verify=config.verify)
    if config.retry is None:
        return inner
    return RetryTransport(transport=inner, retry=config.retry.build())


class ResilientClient:
    """Long-lived async HTTP client with timeouts and transport retries.

    ``transport`` replaces the network transport entirely (retries included) and
    is meant for tests using :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.default_headers or {}),
            auth=config.auth,
            transport=transport or _build_transport(config),
            event_hooks={"response": [self._log_response]},
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        return await self._client.request(method, url, **kwargs)

    async def _log_response(self, response: httpx.Response) -> None:
        request = response.request
        log.debug(
            "%s: %s %s -> %s",
            self.config.name,
            request.method,
            request.url.path,
            response.status_code,
        )
