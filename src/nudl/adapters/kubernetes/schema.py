"""Pydantic models for the parts of Kubernetes API payloads we read."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KubernetesBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObjectMeta(KubernetesBaseModel):
    name: str
    resource_version: str | None = Field(default=None, alias="resourceVersion")
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("labels", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return {} if value is None else value


class NodePayload(KubernetesBaseModel):
    kind: str | None = None
    metadata: ObjectMeta


class StatusPayload(KubernetesBaseModel):
    """``kind: Status`` error body returned by the API server."""

    status: str | None = None
    message: str | None = None
    reason: str | None = None
    code: int | None = None
