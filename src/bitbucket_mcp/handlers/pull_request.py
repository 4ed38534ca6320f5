"""Pull request operations."""

from __future__ import annotations

from typing import Any

from ..errors import validation_error
from . import (JsonClient, WorkspaceHandlers, dig, expect_dict, html_link,
               optional_str, page_params, pagination_summary, require_int,
               require_str, values_of)


def _user_name(user: Any) -> str:
    return dig(user, "display_name") or dig(user, "nickname") or dig(user, "username") or "unknown"


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _describe_pull_request(pr: dict[str, Any]) -> list[str]:
    lines = [
        f"Pull request #{pr.get('id')}: {pr.get('title')}",
        f"State: {pr.get('state')}",
        f"Author: {_user_name(pr.get('author'))}",
        f"Source: {dig(pr, 'source', 'branch', 'name')}",
        f"Destination: {dig(pr, 'destination', 'branch', 'name')}",
    ]
    if pr.get("created_on"):
        lines.append(f"Created: {pr['created_on']}")
    if pr.get("updated_on"):
        lines.append(f"Updated: {pr['updated_on']}")
    if "comment_count" in pr:
        lines.append(f"Comments: {pr['comment_count']}")
    if "close_source_branch" in pr:
        lines.append(f"Close source branch: {pr['close_source_branch']}")
    if html_link(pr):
        lines.append(f"URL: {html_link(pr)}")
    return lines


class PullRequestHandlers(WorkspaceHandlers):
    """Pull request read and write operations."""

    def __init__(self, client: JsonClient, workspace: str, username: str) -> None:
        super().__init__(client, workspace)
        self._username = username

    def _pr_path(self, repository: str, pull_request_id: int, *parts: str) -> str:
        return self._repo_path(repository, "pullrequests", str(pull_request_id), *parts)

    async def create_pull_request(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        title = require_str(arguments, "title")
        source_branch = require_str(arguments, "source_branch")
        destination_branch = require_str(arguments, "destination_branch")
        description = optional_str(arguments, "description")
        reviewers = arguments.get("reviewers") or []
        if not isinstance(reviewers, list) or not all(isinstance(r, str) and r for r in reviewers):
            raise validation_error("Field 'reviewers' must be an array of usernames")
        close_source_branch = arguments.get("close_source_branch", False)

        payload: dict[str, Any] = {
            "title": title,
            "source": {"branch": {"name": source_branch}},
            "destination": {"branch": {"name": destination_branch}},
            "close_source_branch": bool(close_source_branch),
        }
        if description is not None:
            payload["description"] = description
        if reviewers:
            payload["reviewers"] = [{"username": r} for r in _unique(reviewers)]

        pr = expect_dict(
            await self._post(self._repo_path(repository, "pullrequests"), json_body=payload),
            "pull request",
        )
        lines = [f"Created pull request in {self._workspace}/{repository}", ""]
        lines += _describe_pull_request(pr)
        names = [_user_name(r) for r in pr.get("reviewers") or []]
        if names:
            lines.append(f"Reviewers: {', '.join(names)}")
        return "\n".join(lines)

    async def list_pull_requests(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        state = require_str(arguments, "state")
        params = page_params(arguments)
        params["state"] = state

        data = expect_dict(
            await self._get(self._repo_path(repository, "pullrequests"), params=params),
            "pull requests",
        )
        prs = values_of(data, "pull requests")

        lines = [f"{state} pull requests in {self._workspace}/{repository} ({len(prs)} on this page):"]
        for pr in prs:
            lines.append("")
            lines.append(f"- #{pr.get('id')}: {pr.get('title')}")
            lines.append(f"  Author: {_user_name(pr.get('author'))}")
            lines.append(
                f"  {dig(pr, 'source', 'branch', 'name')} -> {dig(pr, 'destination', 'branch', 'name')}"
            )
            if pr.get("updated_on"):
                lines.append(f"  Updated: {pr['updated_on']}")
            if html_link(pr):
                lines.append(f"  URL: {html_link(pr)}")
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def get_pull_request(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")

        pr = expect_dict(await self._get(self._pr_path(repository, pull_request_id)), "pull request")
        lines = _describe_pull_request(pr)

        participants = pr.get("participants") or []
        approvers = [_user_name(p.get("user")) for p in participants if isinstance(p, dict) and p.get("approved")]
        reviewers = [_user_name(r) for r in pr.get("reviewers") or []]
        if reviewers:
            lines.append(f"Reviewers: {', '.join(reviewers)}")
        if approvers:
            lines.append(f"Approved by: {', '.join(approvers)}")
        merge_hash = dig(pr, "merge_commit", "hash")
        if merge_hash:
            lines.append(f"Merge commit: {merge_hash}")
        description = pr.get("description")
        if description:
            lines.append("")
            lines.append("Description:")
            lines.append(description)
        return "\n".join(lines)

    async def approve_pull_request(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")

        participant = await self._post(self._pr_path(repository, pull_request_id, "approve"))
        who = _user_name(dig(participant, "user")) if isinstance(participant, dict) else self._username
        lines = [f"Pull request #{pull_request_id} in {self._workspace}/{repository} approved by {who}"]
        if isinstance(participant, dict) and participant.get("participated_on"):
            lines.append(f"Approved on: {participant['participated_on']}")
        return "\n".join(lines)

    async def decline_pull_request(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")

        pr = expect_dict(
            await self._post(self._pr_path(repository, pull_request_id, "decline")),
            "pull request",
        )
        lines = [f"Declined pull request #{pull_request_id} in {self._workspace}/{repository}", ""]
        lines += _describe_pull_request(pr)
        return "\n".join(lines)

    async def merge_pull_request(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")
        merge_strategy = require_str(arguments, "merge_strategy")
        close_source_branch = arguments.get("close_source_branch", False)
        message = optional_str(arguments, "message")

        payload: dict[str, Any] = {
            "type": "pullrequest",
            "merge_strategy": merge_strategy,
            "close_source_branch": bool(close_source_branch),
        }
        if message:
            payload["message"] = message

        pr = expect_dict(
            await self._post(self._pr_path(repository, pull_request_id, "merge"), json_body=payload),
            "pull request",
        )
        lines = [
            f"Merged pull request #{pull_request_id} in {self._workspace}/{repository}",
            f"Merge strategy: {merge_strategy}",
            "",
        ]
        lines += _describe_pull_request(pr)
        merge_hash = dig(pr, "merge_commit", "hash")
        if merge_hash:
            lines.append(f"Merge commit: {merge_hash}")
        return "\n".join(lines)

    async def get_pull_request_comments(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")

        data = expect_dict(
            await self._get(self._pr_path(repository, pull_request_id, "comments"), params=page_params(arguments)),
            "comments",
        )
        comments = values_of(data, "comments")

        lines = [f"Comments on pull request #{pull_request_id} ({len(comments)} on this page):"]
        for comment in comments:
            lines.append("")
            header = f"- [{comment.get('id')}] {_user_name(comment.get('user'))}"
            if comment.get("created_on"):
                header += f" at {comment['created_on']}"
            lines.append(header)
            inline = comment.get("inline")
            if isinstance(inline, dict) and inline.get("path"):
                lines.append(f"  File: {inline['path']} line {inline.get('to') or inline.get('from')}")
            if comment.get("deleted"):
                lines.append("  (deleted)")
            else:
                raw = (dig(comment, "content", "raw") or "").strip()
                for text_line in raw.splitlines():
                    lines.append(f"  {text_line}".rstrip())
        lines.append("")
        lines.append(pagination_summary(data))
        return "\n".join(lines)

    async def add_pull_request_comment(self, arguments: dict[str, Any]) -> str:
        repository = require_str(arguments, "repository")
        pull_request_id = require_int(arguments, "pull_request_id")
        content = require_str(arguments, "content")
        file_path = optional_str(arguments, "file_path")
        line = arguments.get("line")
        if (file_path is None) != (line is None):
            raise validation_error("Fields 'file_path' and 'line' must be given together for an inline comment")

        payload: dict[str, Any] = {"content": {"raw": content}}
        if file_path is not None:
            payload["inline"] = {"path": file_path, "to": require_int(arguments, "line")}

        comment = expect_dict(
            await self._post(self._pr_path(repository, pull_request_id, "comments"), json_body=payload),
            "comment",
        )
        lines = [f"Added comment {comment.get('id')} to pull request #{pull_request_id}"]
        if file_path is not None:
            lines.append(f"Inline: {file_path} line {line}")
        if comment.get("created_on"):
            lines.append(f"Created: {comment['created_on']}")
        if html_link(comment):
            lines.append(f"URL: {html_link(comment)}")
        return "\n".join(lines)
