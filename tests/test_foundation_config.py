"""Credential resolution: settings file first, environment fallback per field."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest
from bitbucket_mcp.config import (ResolvedIdentity, SecretKind,
                                  default_settings_path, resolve_identity)
from bitbucket_mcp.errors import ErrorKind, SafeError


def _settings(tmp_path: Path, env: dict[str, Any]) -> Path:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"mcpServers": {"bitbucket-mcp-server": {"env": env}}}), encoding="utf-8")
    return path


def test_settings_file_only(tmp_path: Path) -> None:
    path = _settings(
        tmp_path,
        {
            "BITBUCKET_USERNAME": "alice",
            "BITBUCKET_WORKSPACE": "acme",
            "BITBUCKET_API_TOKEN": "file-token",
        },
    )

    identity = resolve_identity(settings_path=path, environ={})

    assert identity == ResolvedIdentity(
        username="alice", secret="file-token", workspace="acme", secret_kind=SecretKind.API_TOKEN
    )


def test_environment_only(tmp_path: Path) -> None:
    identity = resolve_identity(
        settings_path=tmp_path / "missing.json",
        environ={
            "BITBUCKET_USERNAME": "bob",
            "BITBUCKET_WORKSPACE": "envspace",
            "BITBUCKET_APP_PASSWORD": "env-password",
        },
    )

    assert identity.username == "bob"
    assert identity.workspace == "envspace"
    assert identity.secret == "env-password"
    assert identity.secret_kind is SecretKind.APP_PASSWORD


def test_settings_file_wins_per_field(tmp_path: Path) -> None:
    path = _settings(tmp_path, {"BITBUCKET_USERNAME": "alice", "BITBUCKET_WORKSPACE": "acme"})

    identity = resolve_identity(
        settings_path=path,
        environ={
            "BITBUCKET_USERNAME": "bob",
            "BITBUCKET_WORKSPACE": "other",
            "BITBUCKET_API_TOKEN": "env-token",
        },
    )

    assert identity.username == "alice"
    assert identity.workspace == "acme"
    assert identity.secret == "env-token"


def test_api_token_preferred_over_app_password(tmp_path: Path) -> None:
    path = _settings(
        tmp_path,
        {
            "BITBUCKET_USERNAME": "alice",
            "BITBUCKET_WORKSPACE": "acme",
            "BITBUCKET_APP_PASSWORD": "file-password",
        },
    )

    identity = resolve_identity(settings_path=path, environ={"BITBUCKET_API_TOKEN": "env-token"})

    assert identity.secret_kind is SecretKind.API_TOKEN
    assert identity.secret == "env-token"


def test_missing_both_secrets_names_both_options(tmp_path: Path) -> None:
    with pytest.raises(SafeError) as exc:
        _ = resolve_identity(
            settings_path=tmp_path / "missing.json",
            environ={"BITBUCKET_USERNAME": "alice", "BITBUCKET_WORKSPACE": "acme"},
        )

    assert exc.value.kind is ErrorKind.CONFIGURATION
    assert "BITBUCKET_API_TOKEN" in exc.value.message
    assert "BITBUCKET_APP_PASSWORD" in exc.value.message


@pytest.mark.parametrize(
    ("missing", "present"),
    [
        ("BITBUCKET_USERNAME", {"BITBUCKET_WORKSPACE": "acme"}),
        ("BITBUCKET_WORKSPACE", {"BITBUCKET_USERNAME": "alice"}),
    ],
)
def test_missing_username_or_workspace_names_field_and_both_paths(
    tmp_path: Path, missing: str, present: dict[str, str]
) -> None:
    env = dict(present, BITBUCKET_API_TOKEN="tok")

    with pytest.raises(SafeError) as exc:
        _ = resolve_identity(settings_path=tmp_path / "missing.json", environ=env)

    message = exc.value.message
    assert exc.value.kind is ErrorKind.CONFIGURATION
    assert message.startswith(f"{missing} is required")
    assert f"mcpServers.bitbucket-mcp-server.env.{missing}" in message
    assert "environment variable" in message


def test_unparsable_settings_warns_and_falls_back(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    caplog.set_level(logging.WARNING, logger="bitbucket_mcp.config")

    identity = resolve_identity(
        settings_path=path,
        environ={"BITBUCKET_USERNAME": "bob", "BITBUCKET_WORKSPACE": "w", "BITBUCKET_API_TOKEN": "t"},
    )

    assert identity.username == "bob"
    assert any("Could not read" in r.getMessage() for r in caplog.records)


def test_missing_settings_file_warns_and_uses_environment(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="bitbucket_mcp.config")

    identity = resolve_identity(
        settings_path=tmp_path / "absent.json",
        environ={"BITBUCKET_USERNAME": "bob", "BITBUCKET_WORKSPACE": "w", "BITBUCKET_APP_PASSWORD": "pw"},
    )

    assert identity.secret_kind is SecretKind.APP_PASSWORD
    assert any("not found" in r.getMessage() and r.levelno == logging.WARNING for r in caplog.records)


def test_malformed_server_block_is_treated_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"mcpServers": {"bitbucket-mcp-server": "oops"}}), encoding="utf-8")

    identity = resolve_identity(
        settings_path=path,
        environ={"BITBUCKET_USERNAME": "bob", "BITBUCKET_WORKSPACE": "w", "BITBUCKET_API_TOKEN": "t"},
    )

    assert identity.workspace == "w"


def test_logs_secret_kind_but_never_the_secret(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="bitbucket_mcp.config")

    identity = resolve_identity(
        settings_path=tmp_path / "missing.json",
        environ={"BITBUCKET_USERNAME": "bob", "BITBUCKET_WORKSPACE": "w", "BITBUCKET_API_TOKEN": "super-secret"},
    )

    assert "Using Bitbucket API Token authentication" in caplog.text
    assert "super-secret" not in caplog.text
    assert "super-secret" not in repr(identity)


def test_resolution_is_repeatable(tmp_path: Path) -> None:
    env = {"BITBUCKET_USERNAME": "bob", "BITBUCKET_WORKSPACE": "w", "BITBUCKET_APP_PASSWORD": "p"}
    path = tmp_path / "missing.json"
    assert resolve_identity(settings_path=path, environ=env) == resolve_identity(settings_path=path, environ=env)


def test_default_settings_path_is_under_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_settings_path() == tmp_path / ".claude" / "settings.json"


def test_reads_default_settings_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / ".claude").mkdir()
    _settings(
        tmp_path / ".claude",
        {"BITBUCKET_USERNAME": "alice", "BITBUCKET_WORKSPACE": "acme", "BITBUCKET_APP_PASSWORD": "pw"},
    )

    identity = resolve_identity(environ={})

    assert identity.username == "alice"
    assert identity.secret_kind is SecretKind.APP_PASSWORD
