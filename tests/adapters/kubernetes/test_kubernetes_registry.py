from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable  # noqa: TC003

import httpx
import pytest

from nudl.adapters.http_resilience import ResilienceConfig, ResilientClient
from nudl.adapters.kubernetes import MERGE_PATCH_CONTENT_TYPE, KubernetesNodeRegistry
from nudl.config.kubernetes import KubernetesConnection
from nudl.domain.errors import Conflict, RecordNotFound, TransportFailure
from nudl.domain.patching import LabelPatch
from nudl.domain.ports import NodeRegistry

type Handler = Callable[[httpx.Request], httpx.Response]

CONNECTION = KubernetesConnection(server="https://k8s.example:6443", token="s3cret")


def _node(labels: dict[str, str] | None, version: str = "42") -> dict[str, object]:
    return {
        "kind": "Node",
        "apiVersion": "v1",
        "metadata": {"name": "worker-1", "resourceVersion": version, "labels": labels},
        "status": {"capacity": {"cpu": "4"}},
    }


def _status(code: int, reason: str, message: str) -> httpx.Response:
    body = {
        "kind": "Status",
        "status": "Failure",
        "reason": reason,
        "message": message,
        "code": code,
    }
    return httpx.Response(code, json=body)


def _registry(handler: Handler) -> KubernetesNodeRegistry:
    def factory(config: ResilienceConfig) -> ResilientClient:
        return ResilientClient(config, transport=httpx.MockTransport(handler))

    return KubernetesNodeRegistry(CONNECTION, client_factory=factory)


def _run[T](
    registry: KubernetesNodeRegistry,
    call: Callable[[KubernetesNodeRegistry], Awaitable[T]],
) -> T:
    async def scenario() -> T:
        async with registry:
            return await call(registry)

    return asyncio.run(scenario())


def test_get_node() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_node({"kubernetes.io/os": "linux"}))

    node = _run(_registry(handler), lambda registry: registry.get_node("worker-1"))

    assert node.name == "worker-1"
    assert node.resource_version == "42"
    assert dict(node.labels) == {"kubernetes.io/os": "linux"}
    [request] = seen
    assert request.method == "GET"
    assert request.url == "https://k8s.example:6443/api/v1/nodes/worker-1"
    assert request.headers["Authorization"] == "Bearer s3cret"
    assert request.headers["Accept"] == "application/json"


def test_node_without_labels() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_node(None))

    node = _run(_registry(handler), lambda registry: registry.get_node("worker-1"))

    assert dict(node.labels) == {}


def test_patch_labels_sends_conditional_merge_patch() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_node({"nudl.squat.ai/8086_0044": "true"}, version="43"))

    patch = LabelPatch(
        changed={"nudl.squat.ai/8086_0044": "true"},
        removed=frozenset({"nudl.squat.ai/046d_c077"}),
    )
    node = _run(
        _registry(handler),
        lambda registry: registry.patch_labels("worker-1", patch, resource_version="42"),
    )

    assert node.resource_version == "43"
    [request] = seen
    assert request.method == "PATCH"
    assert request.headers["Content-Type"] == MERGE_PATCH_CONTENT_TYPE
    assert json.loads(request.content) == {
        "metadata": {
            "labels": {"nudl.squat.ai/046d_c077": None, "nudl.squat.ai/8086_0044": "true"},
            "resourceVersion": "42",
        }
    }


def test_unconditional_patch_omits_resource_version() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_node({}))

    _run(
        _registry(handler),
        lambda registry: registry.patch_labels(
            "worker-1", LabelPatch(removed=frozenset({"a"})), resource_version=None
        ),
    )

    assert bodies == [{"metadata": {"labels": {"a": None}}}]


def test_conflict() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return _status(409, "Conflict", "the object has been modified")

    with pytest.raises(Conflict, match="the object has been modified"):
        _run(
            _registry(handler),
            lambda registry: registry.patch_labels(
                "worker-1", LabelPatch(changed={"a": "b"}), resource_version="1"
            ),
        )


def test_not_found() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return _status(404, "NotFound", 'nodes "worker-9" not found')

    with pytest.raises(RecordNotFound, match="worker-9"):
        _run(_registry(handler), lambda registry: registry.get_node("worker-9"))


@pytest.mark.parametrize("status", [401, 403, 500])
def test_other_errors_are_transport_failures(status: int) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope")

    with pytest.raises(TransportFailure, match=str(status)):
        _run(_registry(handler), lambda registry: registry.get_node("worker-1"))


def test_network_errors_are_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportFailure, match="connection refused"):
        _run(_registry(handler), lambda registry: registry.get_node("worker-1"))


def test_malformed_payload_is_a_transport_failure() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"kind": "Node"})

    with pytest.raises(TransportFailure, match="unexpected node payload"):
        _run(_registry(handler), lambda registry: registry.get_node("worker-1"))


def test_node_names_are_quoted() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json=_node({}))

    _run(_registry(handler), lambda registry: registry.get_node("a/b"))

    assert paths == ["/api/v1/nodes/a%2Fb"]


def test_registry_satisfies_port() -> None:
    assert isinstance(KubernetesNodeRegistry(CONNECTION), NodeRegistry)
