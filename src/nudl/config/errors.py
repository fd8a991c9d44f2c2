"""Errors raised while assembling the process configuration."""

from __future__ import annotations

from nudl.domain.errors import NudlError


class ConfigurationError(NudlError):
    """Invalid option, environment value or kubeconfig; exits with status 2."""


class MissingConfigurationError(ConfigurationError):
    """Neither a kubeconfig nor an in-cluster service account is available."""
