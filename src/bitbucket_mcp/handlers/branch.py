"""Branch creation."""

from __future__ import annotations

from typing import Any

from ..bitbucket_client import path_segment
from ..errors import unexpected_error
from . import WorkspaceHandlers, dig, expect_dict, html_link, require_str


class BranchHandlers(WorkspaceHandlers):
    """Branch write operations."""

    async def _resolve_tip(self, repository: str, branch: str) -> str:
        ref = expect_dict(
            await self._get(self._repo_path(repository, "refs", "branches", path_segment(branch, keep_slashes=True))),
            "branch",
        )
        commit_hash = dig(ref, "target", "hash")
        if not isinstance(commit_hash, str) or not commit_hash:
            raise unexpected_error(f"Branch '{branch}' has no target commit")
        return commit_hash

    async def create_branch(self, arguments: dict[str, Any]) -> str:
        """Create `branch_name` at the current tip of `source_branch`.

        Lookup and create are two separate calls; if the create fails after the
        lookup succeeded nothing is rolled back.
        """
        repository = require_str(arguments, "repository")
        branch_name = require_str(arguments, "branch_name")
        source_branch = require_str(arguments, "source_branch")

        source_hash = await self._resolve_tip(repository, source_branch)
        data = expect_dict(
            await self._post(
                self._repo_path(repository, "refs", "branches"),
                json_body={"name": branch_name, "target": {"hash": source_hash}},
            ),
            "branch",
        )

        lines = [
            f"Created branch '{data.get('name') or branch_name}' in {self._workspace}/{repository}",
            f"Source branch: {source_branch}",
            f"Commit: {dig(data, 'target', 'hash') or source_hash}",
        ]
        if html_link(data):
            lines.append(f"URL: {html_link(data)}")
        return "\n".join(lines)
