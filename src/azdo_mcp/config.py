"""Credential and server configuration sourced from the process environment.

Precedence for the backend credential is: explicit per-request credential
(``connect_azure_devops`` tool or ``POST /auth``) > environment > none.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from azdo_mcp.types.api import CredentialSummary

logger = logging.getLogger(__name__)

ENV_ORG_URL = "AZURE_DEVOPS_ORG_URL"
ENV_PAT = "AZURE_DEVOPS_PAT"
ENV_TOKEN_FALLBACK = "AZURE_DEVOPS_TOKEN"
ENV_PROJECT = "AZURE_DEVOPS_PROJECT"

ENV_HOST = "AZDO_MCP_HOST"
ENV_PORT = "AZDO_MCP_PORT"
ENV_LOG_FILE = "AZDO_MCP_LOG_FILE"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9832

REDACTED = "***"


@dataclass(frozen=True)
class SessionCredential:
    """Everything needed to open a backend session.

    The secret token never appears in ``repr()``; use :meth:`summary` for
    anything that leaves the process.
    """

    endpoint_url: str
    secret_token: str = field(repr=False)
    default_scope: str | None = None

    def __post_init__(self) -> None:
        # Normalise so "https://dev.azure.com/org/" and ".../org" compare equal.
        object.__setattr__(self, "endpoint_url", self.endpoint_url.strip().rstrip("/"))
        if self.default_scope is not None:
            scope = self.default_scope.strip()
            object.__setattr__(self, "default_scope", scope or None)

    def __repr__(self) -> str:
        return (
            f"SessionCredential(endpoint_url={self.endpoint_url!r}, "
            f"secret_token={REDACTED!r}, default_scope={self.default_scope!r})"
        )

    def summary(self) -> CredentialSummary:
        return CredentialSummary(endpointUrl=self.endpoint_url, defaultScope=self.default_scope)


def credential_from_env(environ: Mapping[str, str] | None = None) -> SessionCredential | None:
    """Build a credential from environment variables.

    Returns ``None`` when the organization URL or the token is missing.
    ``AZURE_DEVOPS_TOKEN`` is accepted when ``AZURE_DEVOPS_PAT`` is unset.
    """
    env = os.environ if environ is None else environ
    org_url = env.get(ENV_ORG_URL, "").strip()
    token = env.get(ENV_PAT, "").strip() or env.get(ENV_TOKEN_FALLBACK, "").strip()
    if not org_url or not token:
        return None
    return SessionCredential(
        endpoint_url=org_url,
        secret_token=token,
        default_scope=env.get(ENV_PROJECT) or None,
    )


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_file: Path | None = None


def read_server_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """Read HTTP server settings. Invalid values are logged and replaced by defaults."""
    env = os.environ if environ is None else environ

    raw_port = env.get(ENV_PORT, DEFAULT_PORT)
    try:
        port = int(raw_port)
    except (TypeError, ValueError):
        logger.warning("Invalid port value %r in %s; using default %d", raw_port, ENV_PORT, DEFAULT_PORT)
        port = DEFAULT_PORT
    if not (1 <= port <= 65535):
        logger.warning("Port %d out of range (1-65535) in %s; using default %d", port, ENV_PORT, DEFAULT_PORT)
        port = DEFAULT_PORT

    host = env.get(ENV_HOST, "").strip() or DEFAULT_HOST
    raw_log = env.get(ENV_LOG_FILE, "").strip()

    return ServerConfig(host=host, port=port, log_file=Path(raw_log) if raw_log else None)
