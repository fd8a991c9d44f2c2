"""Node registry backed by the Kubernetes REST API."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from nudl.adapters.http_resilience import ResilientClient
from nudl.domain.errors import Conflict, RecordNotFound, TransportFailure
from nudl.domain.types import NodeRecord

from .schema import NodePayload, StatusPayload

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from nudl.config.http_resilience import ResilienceConfig
    from nudl.config.kubernetes import KubernetesConnection
    from nudl.domain.patching import LabelPatch

log = getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _node_path(name: str) -> str:
    return f"/api/v1/nodes/{quote(name, safe='')}"


def _status_message(response: httpx.Response) -> str:
    try:
        status = StatusPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        return response.text.strip() or response.reason_phrase
    return status.message or status.reason or response.reason_phrase


def _to_record(response: httpx.Response) -> NodeRecord:
    try:
        payload = NodePayload.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise TransportFailure(f"unexpected node payload: {exc}") from exc
    metadata = payload.metadata
    return NodeRecord(
        name=metadata.name,
        resource_version=metadata.resource_version,
        labels=metadata.labels,
    )


@dataclass(slots=True)
class KubernetesNodeRegistry:
    """Reads nodes and applies conditional JSON merge patches to their labels.

    The patch body carries ``metadata.resourceVersion``, so the API server
    rejects it with 409 when the node changed after it was read.
    """

    connection: KubernetesConnection
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> KubernetesNodeRegistry:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_node(self, name: str) -> NodeRecord:
        response = await self._send("GET", name)
        return _to_record(response)

    async def patch_labels(
        self,
        name: str,
        patch: LabelPatch,
        *,
        resource_version: str | None,
    ) -> NodeRecord:
        metadata: dict[str, object] = {"labels": patch.as_merge_patch()}
        if resource_version is not None:
            metadata["resourceVersion"] = resource_version
        response = await self._send(
            "PATCH",
            name,
            json={"metadata": metadata},
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
        )
        return _to_record(response)

    async def _send(
        self,
        method: str,
        name: str,
        *,
        json: object = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._ensure_client()
        try:
            response = await client.request(method, _node_path(name), json=json, headers=headers)
        except (httpx.HTTPError, OSError) as exc:
            # OSError covers an unreadable service account token file
            raise TransportFailure(f"{method} node {name!r} failed: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise RecordNotFound(f"node {name!r} not found: {_status_message(response)}")
        if response.status_code == httpx.codes.CONFLICT:
            raise Conflict(f"node {name!r} was modified concurrently: {_status_message(response)}")
        if response.is_error:
            log.debug("Kubernetes API answered %s to %s %s", response.status_code, method, name)
            raise TransportFailure(
                f"{method} node {name!r} failed with {response.status_code}: "
                f"{_status_message(response)}"
            )
        return response

    def _ensure_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.connection.resilience())
        return self._client

