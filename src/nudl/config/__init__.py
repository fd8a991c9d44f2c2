"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy
from .kubernetes import (
    BearerTokenAuth,
    KubernetesConnection,
    in_cluster_connection,
    kubeconfig_connection,
    load_connection,
)
from .labeler import LabelerConfig, parse_duration, split_list
from .logging import LOG_LEVELS, configure_logging, parse_log_level

__all__ = [
    "LOG_LEVELS",
    "BearerTokenAuth",
    "ConfigurationError",
    "KubernetesConnection",
    "LabelerConfig",
    "MissingConfigurationError",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "in_cluster_connection",
    "kubeconfig_connection",
    "load_connection",
    "optional_env_var",
    "parse_duration",
    "parse_log_level",
    "split_list",
]
