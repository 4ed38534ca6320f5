"""Repository, project, ref and clone operations."""

from __future__ import annotations

import shlex
from typing import Any

from ..bitbucket_client import path_segment
from ..errors import validation_error
from . import (WorkspaceHandlers, dig, expect_dict, first_line, html_link,
               optional_str, page_params, pagination_summary, require_str,
               values_of)

BITBUCKET_HOST = "bitbucket.org"


def clone_url(*, workspace: str, repository: str, protocol: str) -> str:
    """Derive the clone URL for a repository."""
    if protocol == "ssh":
        return f"git@{BITBUCKET_HOST}:{workspace}/{repository}.git"
    return f"https://{BITBUCKET_HOST}/{workspace}/{repository}.git"


def clone_command(*, url: str, branch: str | None = None, directory: str | None = None) -> str:
    parts = ["git", "clone"]
    if branch:
        parts += ["--branch", branch]
    parts.append(url)
    if directory:
        parts.append(directory)
    return shlex.join(parts)


_SSH_NOTES = """SSH setup notes:
- Make sure an SSH key is added to your Bitbucket account (Personal settings > SSH keys).
- Generate one if needed: ssh-keygen -t ed25519 -C "you@example.com"
- Test the connection: ssh -T git@bitbucket.org"""


class RepositoryHandlers(WorkspaceHandlers):
    """Read-only repository operations plus clone command generation."""

    async def list_repositories(self, arguments: dict[str, Any]) -> str:
        data = expect_dict(
            await self._get(f"/repositories/{path_segment(self._workspace)}", params=page_params(arguments)),
            "repositories",
        )
        repos = values_of(data, "repositories")

        lines = [f"Repositories in workspace '{self._workspace}' ({len(repos)} on this page):"]
        for repo in repos:
            visibility = "private" if repo.get("is_private") else "public"
            lines.append("")
            lines.append(f"- {repo.get('full_name') or repo.get('slug')} ({visibility})")
            if repo.get("description"):
                lines.append(f"  Description: {repo['description']}")
            if repo.get("language"):
                lines.append(f"  Language: {repo['language']}")
            main = dig(repo, "mainbranch", "name")
            if main:
                lines.append(f"  Main branch: {main}")
            if repo.get("updated_on"):
                lines.append(f"  Updated: {repo['updated_on']}")
            if html_link(repo):
                lines.append(f"  URL: {html_link(repo)}")
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def list_projects(self, arguments: dict[str, Any]) -> str:
        data = expect_dict(
            await self._get(f"/workspaces/{path_segment(self._workspace)}/projects", params=page_params(arguments)),
            "projects",
        )
        projects = values_of(data, "projects")

        lines = [f"Projects in workspace '{self._workspace}' ({len(projects)} on this page):"]
        for project in projects:
            visibility = "private" if project.get("is_private") else "public"
            lines.append("")
            lines.append(f"- [{project.get('key')}] {project.get('name')} ({visibility})")
            if project.get("description"):
                lines.append(f"  Description: {project['description']}")
            if project.get("uuid"):
                lines.append(f"  UUID: {project['uuid']}")
            if project.get("updated_on"):
                lines.append(f"  Updated: {project['updated_on']}")
            if html_link(project):
                lines.append(f"  URL: {html_link(project)}")
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def _list_refs(self, arguments: dict[str, Any], kind: str) -> str:
        repository = require_str(arguments, "repository")
        data = expect_dict(
            await self._get(self._repo_path(repository, "refs", kind), params=page_params(arguments)),
            kind,
        )
        refs = values_of(data, kind)

        label = "Branches" if kind == "branches" else "Tags"
        lines = [f"{label} in {self._workspace}/{repository} ({len(refs)} on this page):"]
        for ref in refs:
            lines.append("")
            lines.append(f"- {ref.get('name')}")
            commit_hash = dig(ref, "target", "hash")
            if commit_hash:
                lines.append(f"  Commit: {commit_hash}")
            date = dig(ref, "target", "date")
            if date:
                lines.append(f"  Date: {date}")
            author = dig(ref, "target", "author", "raw")
            if author:
                lines.append(f"  Author: {author}")
            message = first_line(ref.get("message")) or first_line(dig(ref, "target", "message"))
            if message:
                lines.append(f"  Message: {message}")
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def list_branches(self, arguments: dict[str, Any]) -> str:
        return await self._list_refs(arguments, "branches")

    async def list_tags(self, arguments: dict[str, Any]) -> str:
        return await self._list_refs(arguments, "tags")

    async def get_branch_commits(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        branch = require_str(arguments, "branch")
        data = expect_dict(
            await self._get(
                self._repo_path(repository, "commits", path_segment(branch, keep_slashes=True)),
                params=page_params(arguments),
            ),
            "commits",
        )
        commits = values_of(data, "commits")

        lines = [f"Commits on {self._workspace}/{repository}@{branch} ({len(commits)} on this page):"]
        for commit in commits:
            lines.append("")
            lines.append(f"- {commit.get('hash')}")
            author = dig(commit, "author", "raw") or dig(commit, "author", "user", "display_name")
            if author:
                lines.append(f"  Author: {author}")
            if commit.get("date"):
                lines.append(f"  Date: {commit['date']}")
            message = first_line(commit.get("message"))
            if message:
                lines.append(f"  Message: {message}")
            if html_link(commit):
                lines.append(f"  URL: {html_link(commit)}")
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def clone_repository(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        protocol = require_str(arguments, "protocol")
        if protocol not in ("ssh", "https"):
            raise validation_error("Field 'protocol' must be one of: ssh, https")
        branch = optional_str(arguments, "branch")
        directory = optional_str(arguments, "directory")

        # Only checks the repository exists and is visible to the identity.
        repo = expect_dict(await self._get(self._repo_path(repository)), "repository")

        url = clone_url(workspace=self._workspace, repository=repository, protocol=protocol)
        command = clone_command(url=url, branch=branch, directory=directory)

        full_name = repo.get("full_name") or f"{self._workspace}/{repository}"
        lines = [
            f"Repository: {full_name}",
            f"Protocol: {protocol}",
            f"Clone URL: {url}",
        ]
        main = dig(repo, "mainbranch", "name")
        if main:
            lines.append(f"Main branch: {main}")
        if branch:
            lines.append(f"Branch: {branch}")
        lines.append("")
        lines.append("Command:")
        lines.append(command)
        if protocol == "ssh":
            lines.append("")
            lines.append(_SSH_NOTES)
        return "\n".join(lines)
