"""Deployment operations.

The deployments endpoint has no reliable environment filter, so the optional
environment name is matched client-side against the fetched page. Deployments
reference their environment by UUID only, so names are resolved through the
environments endpoint first.
"""

from __future__ import annotations

from typing import Any

from ..bitbucket_client import path_segment
from . import (WorkspaceHandlers, dig, expect_dict, optional_str, page_params,
               pagination_summary, require_str, values_of)


def normalize_uuid(value: str) -> str:
    """Bitbucket UUIDs are addressed with surrounding braces."""
    value = value.strip()
    if not value.startswith("{"):
        value = "{" + value
    if not value.endswith("}"):
        value = value + "}"
    return value


def _describe_deployment(deployment: dict[str, Any], environment_names: dict[str, str]) -> list[str]:
    env_uuid = dig(deployment, "environment", "uuid")
    env_name = dig(deployment, "environment", "name") or environment_names.get(env_uuid or "")
    lines = [f"Deployment {deployment.get('uuid')}"]
    if env_name:
        lines.append(f"Environment: {env_name} ({env_uuid})")
    elif env_uuid:
        lines.append(f"Environment: {env_uuid}")
    state = dig(deployment, "state", "name")
    if state:
        status = dig(deployment, "state", "status", "name")
        lines.append(f"State: {state}" + (f" ({status})" if status else ""))
    release = deployment.get("release")
    if isinstance(release, dict):
        if release.get("name"):
            lines.append(f"Release: {release['name']}")
        commit_hash = dig(release, "commit", "hash")
        if commit_hash:
            lines.append(f"Commit: {commit_hash}")
        if release.get("created_on"):
            lines.append(f"Release created: {release['created_on']}")
    if deployment.get("last_update_time"):
        lines.append(f"Last updated: {deployment['last_update_time']}")
    started = dig(deployment, "state", "started_on")
    if started:
        lines.append(f"Started: {started}")
    completed = dig(deployment, "state", "completed_on")
    if completed:
        lines.append(f"Completed: {completed}")
    url = dig(deployment, "state", "url") or dig(release, "url")
    if url:
        lines.append(f"URL: {url}")
    return lines


class DeploymentHandlers(WorkspaceHandlers):
    """Read-only deployment operations."""

    async def _environment_names(self, repository: str) -> dict[str, str]:
        data = await self._get(self._repo_path(repository, "environments/"), params={"pagelen": 100})
        names: dict[str, str] = {}
        for env in values_of(data, "environments"):
            if isinstance(env.get("uuid"), str) and isinstance(env.get("name"), str):
                names[env["uuid"]] = env["name"]
        return names

    async def list_deployments(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        environment = optional_str(arguments, "environment")

        environment_names: dict[str, str] = {}
        if environment is not None:
            environment_names = await self._environment_names(repository)

        data = expect_dict(
            await self._get(self._repo_path(repository, "deployments/"), params=page_params(arguments)),
            "deployments",
        )
        deployments = values_of(data, "deployments")

        if environment is not None:
            wanted = {uuid for uuid, name in environment_names.items() if name == environment}
            deployments = [
                d
                for d in deployments
                if dig(d, "environment", "uuid") in wanted
                or dig(d, "environment", "uuid") == environment
                or dig(d, "environment", "name") == environment
            ]

        scope = f" in environment '{environment}'" if environment is not None else ""
        lines = [f"Deployments for {self._workspace}/{repository}{scope} ({len(deployments)} on this page):"]
        for deployment in deployments:
            lines.append("")
            described = _describe_deployment(deployment, environment_names)
            lines.append(f"- {described[0]}")
            lines += [f"  {line}" for line in described[1:]]
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def get_deployment(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        deployment_uuid = normalize_uuid(require_str(arguments, "deployment_uuid"))

        deployment = expect_dict(
            await self._get(self._repo_path(repository, "deployments", path_segment(deployment_uuid))),
            "deployment",
        )
        return "\n".join(_describe_deployment(deployment, {}))
