"""Credential resolution for bitbucket-mcp-server.

Credentials are supplied by the host (the MCP client settings file or the process
environment), never by the agent. The resolved secret must never be emitted to
agents, logs or audit events.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from .errors import configuration_error

logger = logging.getLogger(__name__)

SERVER_NAME = "bitbucket-mcp-server"

ENV_USERNAME = "BITBUCKET_USERNAME"
ENV_APP_PASSWORD = "BITBUCKET_APP_PASSWORD"
ENV_API_TOKEN = "BITBUCKET_API_TOKEN"
ENV_WORKSPACE = "BITBUCKET_WORKSPACE"

_SETTINGS_KEY_PREFIX = f"~/.claude/settings.json mcpServers.{SERVER_NAME}.env"

_EXAMPLE_SETTINGS = """{
  "mcpServers": {
    "bitbucket-mcp-server": {
      "env": {
        "BITBUCKET_USERNAME": "your-username",
        "BITBUCKET_WORKSPACE": "your-workspace",
        "BITBUCKET_API_TOKEN": "your-api-token"
      }
    }
  }
}"""


class SecretKind(str, Enum):
    """Which credential form was resolved."""

    API_TOKEN = "API Token"
    APP_PASSWORD = "App Password"


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    """The single identity all Bitbucket calls are made with."""

    username: str
    secret: str = field(repr=False)
    workspace: str
    secret_kind: SecretKind


@dataclass(frozen=True, slots=True)
class ClientLimits:
    """HTTP client timeouts. No retries are ever attempted."""

    total_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0


def default_settings_path() -> Path:
    """Location of the MCP host settings file."""
    return Path.home() / ".claude" / "settings.json"


def load_settings(path: Path) -> dict[str, Any]:
    """Read the settings file, returning {} when absent or unreadable."""
    if not path.exists():
        logger.warning("Settings file %s not found; using environment variables only", path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top-level JSON value is not an object", path)
        return {}
    return data


def _server_env_block(settings: Mapping[str, Any]) -> Mapping[str, Any]:
    servers = settings.get("mcpServers")
    if not isinstance(servers, dict):
        return {}
    server = servers.get(SERVER_NAME)
    if not isinstance(server, dict):
        return {}
    env = server.get("env")
    if not isinstance(env, dict):
        return {}
    return env


def _lookup(name: str, block: Mapping[str, Any], environ: Mapping[str, str]) -> str | None:
    value = block.get(name)
    if isinstance(value, str) and value:
        return value
    value = environ.get(name)
    if value:
        return value
    return None


def _missing_field_message(name: str) -> str:
    return f"{name} is required. Set it in {_SETTINGS_KEY_PREFIX}.{name} or as the {name} environment variable"


def resolve_identity(
    settings_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ResolvedIdentity:
    """Resolve the Bitbucket identity from the settings file, then the environment.

    Each field falls back to the environment independently. An API token is
    preferred over an app password when both are present.

    Raises:
        SafeError: (Configuration) if username, workspace or both secrets are missing.
    """
    path = settings_path if settings_path is not None else default_settings_path()
    env = environ if environ is not None else os.environ
    block = _server_env_block(load_settings(path))

    username = _lookup(ENV_USERNAME, block, env)
    app_password = _lookup(ENV_APP_PASSWORD, block, env)
    api_token = _lookup(ENV_API_TOKEN, block, env)
    workspace = _lookup(ENV_WORKSPACE, block, env)

    if not username:
        raise configuration_error(_missing_field_message(ENV_USERNAME))
    if not workspace:
        raise configuration_error(_missing_field_message(ENV_WORKSPACE))

    if api_token:
        secret, kind = api_token, SecretKind.API_TOKEN
    elif app_password:
        secret, kind = app_password, SecretKind.APP_PASSWORD
    else:
        raise configuration_error(
            f"Authentication required: provide either {ENV_API_TOKEN} or {ENV_APP_PASSWORD} "
            f"in {_SETTINGS_KEY_PREFIX} or as environment variables.\n"
            f"Example settings.json:\n{_EXAMPLE_SETTINGS}"
        )

    logger.info("Using Bitbucket %s authentication", kind.value)
    return ResolvedIdentity(username=username, secret=secret, workspace=workspace, secret_kind=kind)
