"""Connection settings for the Kubernetes API server.

Two sources are supported: the pod's service account (in-cluster) and a
kubeconfig file. Only the fields needed to reach the API with a bearer token or
a client certificate are read from kubeconfig files.
"""

from __future__ import annotations

import base64
import binascii
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import httpx
import yaml

from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Generator, Mapping

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
KUBERNETES_TIMEOUT_SECONDS = 10.0


class BearerTokenAuth(httpx.Auth):
    """Bearer token auth; a token file is re-read per request to pick up rotation."""

    def __init__(self, *, token: str | None = None, token_file: Path | None = None) -> None:
        if token is None and token_file is None:
            raise ValueError("BearerTokenAuth needs a token or a token file")
        self._token = token
        self._token_file = token_file

    def current_token(self) -> str:
        if self._token_file is not None:
            return self._token_file.read_text(encoding="utf-8").strip()
        return cast(str, self._token)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.current_token()}"
        yield request


@dataclass(frozen=True)
class KubernetesConnection:
    """Where the API server lives and how to authenticate against it.

    Embedded client certificate and key data stay in memory; they only touch
    disk inside a private temporary directory while the TLS context loads them.
    """

    server: str
    token: str | None = field(default=None, repr=False)
    token_file: Path | None = None
    ca_file: Path | None = None
    ca_data: str | None = None
    client_cert_file: Path | None = None
    client_key_file: Path | None = None
    client_cert_data: bytes | None = field(default=None, repr=False)
    client_key_data: bytes | None = field(default=None, repr=False)
    insecure_skip_tls_verify: bool = False

    def ssl_context(self) -> ssl.SSLContext:
        if self.insecure_skip_tls_verify:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        else:
            context = ssl.create_default_context(
                cafile=str(self.ca_file) if self.ca_file else None,
                cadata=self.ca_data,
            )
        self._load_client_certificate(context)
        return context

    def _load_client_certificate(self, context: ssl.SSLContext) -> None:
        if self.client_cert_file is None and self.client_cert_data is None:
            return
        with tempfile.TemporaryDirectory(prefix="nudl-") as scratch:
            certfile = self.client_cert_file or _write_secret(
                Path(scratch) / "client.crt", self.client_cert_data
            )
            keyfile = self.client_key_file or _write_secret(
                Path(scratch) / "client.key", self.client_key_data
            )
            # load_cert_chain only accepts file paths
            context.load_cert_chain(str(certfile), str(keyfile) if keyfile else None)

    def auth(self) -> httpx.Auth | None:
        if self.token is None and self.token_file is None:
            return None
        return BearerTokenAuth(token=self.token, token_file=self.token_file)

    def resilience(self, *, retry: RetryPolicy | None = None) -> ResilienceConfig:
        try:
            verify = self.ssl_context()
        except (OSError, ssl.SSLError) as exc:
            raise ConfigurationError(f"Invalid TLS material for {self.server}: {exc}") from exc
        return ResilienceConfig(
            name="kubernetes",
            base_url=self.server.rstrip("/"),
            timeout_seconds=KUBERNETES_TIMEOUT_SECONDS,
            retry=retry or RetryPolicy(),
            verify=verify,
            auth=self.auth(),
            default_headers={"Accept": "application/json"},
        )


def in_cluster_connection(
    *,
    environ: Mapping[str, str] | None = None,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> KubernetesConnection:
    env = os.environ if environ is None else environ
    host = env.get("KUBERNETES_SERVICE_HOST", "").strip()
    port = env.get("KUBERNETES_SERVICE_PORT", "").strip()
    if not host or not port:
        raise MissingConfigurationError(
            "not in cluster: KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT must be set"
        )
    token_file = service_account_dir / "token"
    if not token_file.is_file():
        raise ConfigurationError(f"not in cluster: service account token {token_file} missing")
    if ":" in host:
        host = f"[{host}]"
    ca_file = service_account_dir / "ca.crt"
    return KubernetesConnection(
        server=f"https://{host}:{port}",
        token_file=token_file,
        ca_file=ca_file if ca_file.is_file() else None,
    )


def _named(entries: object, name: str, kind: str) -> dict[str, Any]:
    if isinstance(entries, list):
        for entry in cast(list[Any], entries):
            if isinstance(entry, dict) and entry.get("name") == name:
                body = cast(dict[str, Any], entry).get(kind)
                if isinstance(body, dict):
                    return cast(dict[str, Any], body)
    raise ConfigurationError(f"kubeconfig has no {kind} named {name!r}")


def _decode(value: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError(f"kubeconfig field {field_name} is not valid base64") from exc


def _write_secret(path: Path, data: bytes | None) -> Path | None:
    if data is None:
        return None
    path.write_bytes(data)
    path.chmod(0o600)
    return path


def _resolve(base: Path, value: object) -> Path | None:
    if not isinstance(value, str) or not value:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def kubeconfig_connection(path: Path, *, context: str | None = None) -> KubernetesConnection:
    """Build a connection from ``path`` using ``context`` or the current context."""

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"could not read kubeconfig {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"could not parse kubeconfig {path}: {exc}") from exc
    if not isinstance(document, dict):
        raise ConfigurationError(f"kubeconfig {path} is empty or malformed")
    config = cast(dict[str, Any], document)

    context_name = context or config.get("current-context")
    if not context_name:
        raise ConfigurationError(f"kubeconfig {path} has no current-context")
    ctx = _named(config.get("contexts"), context_name, "context")
    cluster = _named(config.get("clusters"), ctx.get("cluster", ""), "cluster")
    user: dict[str, Any] = (
        _named(config.get("users"), ctx["user"], "user") if ctx.get("user") else {}
    )

    server = cluster.get("server")
    if not isinstance(server, str) or not server:
        raise ConfigurationError(f"kubeconfig cluster {ctx.get('cluster')!r} has no server")

    base = path.parent
    ca_data = cluster.get("certificate-authority-data")
    cert_data = user.get("client-certificate-data")
    key_data = user.get("client-key-data")

    return KubernetesConnection(
        server=server,
        token=user.get("token") or None,
        token_file=_resolve(base, user.get("tokenFile")),
        ca_file=_resolve(base, cluster.get("certificate-authority")),
        ca_data=(
            _decode(ca_data, "certificate-authority-data").decode("ascii", errors="replace")
            if ca_data
            else None
        ),
        client_cert_file=None if cert_data else _resolve(base, user.get("client-certificate")),
        client_key_file=None if key_data else _resolve(base, user.get("client-key")),
        client_cert_data=_decode(cert_data, "client-certificate-data") if cert_data else None,
        client_key_data=_decode(key_data, "client-key-data") if key_data else None,
        insecure_skip_tls_verify=bool(cluster.get("insecure-skip-tls-verify", False)),
    )


def load_connection(kubeconfig: str | Path | None) -> KubernetesConnection:
    if kubeconfig:
        return kubeconfig_connection(Path(kubeconfig).expanduser())
    return in_cluster_connection()
