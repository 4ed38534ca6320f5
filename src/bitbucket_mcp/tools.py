"""Runtime wiring and tool dispatch.

This module:
- builds the per-process runtime (identity, HTTP client, handler groups) once
- binds every catalog tool name to exactly one handler method
- validates arguments and fills defaults before any handler runs
- converts every failure into a single McpError and records one audit event per call
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from mcp.shared.exceptions import McpError
from mcp.types import TextContent

from .audit import AuditLogger, build_event, new_correlation_id
from .bitbucket_client import BitbucketClient
from .catalog import TOOL_METADATA, apply_defaults, validate_tool_arguments
from .config import ClientLimits, ResolvedIdentity
from .errors import ErrorKind, SafeError, method_not_found, to_mcp_error
from .handlers import JsonClient
from .handlers.branch import BranchHandlers
from .handlers.deployment import DeploymentHandlers
from .handlers.pull_request import PullRequestHandlers
from .handlers.repository import RepositoryHandlers

ToolFunc = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class Runtime:
    """Process-wide dependencies shared across tool calls. Never mutated."""

    identity: ResolvedIdentity
    audit: AuditLogger
    repository: RepositoryHandlers
    branch: BranchHandlers
    pull_request: PullRequestHandlers
    deployment: DeploymentHandlers


def build_runtime(
    identity: ResolvedIdentity,
    *,
    limits: ClientLimits | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    client: JsonClient | None = None,
    audit: AuditLogger | None = None,
) -> Runtime:
    """Construct the runtime for one resolved identity.

    `transport` and `client` exist for tests; production passes neither.
    """
    if client is None:
        client = BitbucketClient(identity=identity, limits=limits or ClientLimits(), transport=transport)
    workspace = identity.workspace
    return Runtime(
        identity=identity,
        audit=audit or AuditLogger(secrets=(identity.secret,)),
        repository=RepositoryHandlers(client, workspace),
        branch=BranchHandlers(client, workspace),
        pull_request=PullRequestHandlers(client, workspace, identity.username),
        deployment=DeploymentHandlers(client, workspace),
    )


def tool_bindings(runtime: Runtime) -> dict[str, ToolFunc]:
    """Map each tool name to the handler method that serves it."""
    return {
        # Repository operations
        "list_repositories": runtime.repository.list_repositories,
        "list_projects": runtime.repository.list_projects,
        "list_branches": runtime.repository.list_branches,
        "list_tags": runtime.repository.list_tags,
        "get_branch_commits": runtime.repository.get_branch_commits,
        "clone_repository": runtime.repository.clone_repository,
        # Branch operations
        "create_branch": runtime.branch.create_branch,
        # Pull request operations
        "create_pull_request": runtime.pull_request.create_pull_request,
        "list_pull_requests": runtime.pull_request.list_pull_requests,
        "get_pull_request": runtime.pull_request.get_pull_request,
        "approve_pull_request": runtime.pull_request.approve_pull_request,
        "decline_pull_request": runtime.pull_request.decline_pull_request,
        "merge_pull_request": runtime.pull_request.merge_pull_request,
        "get_pull_request_comments": runtime.pull_request.get_pull_request_comments,
        "add_pull_request_comment": runtime.pull_request.add_pull_request_comment,
        # Deployment operations
        "list_deployments": runtime.deployment.list_deployments,
        "get_deployment": runtime.deployment.get_deployment,
    }


def _target_from_args(runtime: Runtime, arguments: dict[str, Any]) -> str:
    repository = arguments.get("repository")
    if isinstance(repository, str) and repository:
        return f"{runtime.identity.workspace}/{repository}"
    return runtime.identity.workspace


def _outcome_for(exc: BaseException) -> str:
    if isinstance(exc, SafeError) and exc.kind is ErrorKind.VALIDATION:
        return "denied"
    if isinstance(exc, McpError):
        return "denied"
    return "failed"


async def dispatch_tool(runtime: Runtime, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    """Dispatch one tool call and return its text content.

    Raises:
        McpError: METHOD_NOT_FOUND for unknown tools, INTERNAL_ERROR for everything else.
    """
    if not isinstance(arguments, dict):
        arguments = {}

    correlation_id = new_correlation_id()
    target = _target_from_args(runtime, arguments)
    start = runtime.audit.measure_start()

    try:
        if name not in TOOL_METADATA:
            raise method_not_found(name)

        validate_tool_arguments(name, arguments)
        func = tool_bindings(runtime)[name]
        text = await func(apply_defaults(name, arguments))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        err = to_mcp_error(exc, secrets=(runtime.identity.secret,))
        runtime.audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome=_outcome_for(exc),
                reason=err.error.message,
                duration_ms=runtime.audit.measure_duration_ms(start),
            )
        )
        if err is exc:
            raise
        raise err from exc

    runtime.audit.write_event(
        build_event(
            correlation_id=correlation_id,
            operation=name,
            target=target,
            outcome="succeeded",
            duration_ms=runtime.audit.measure_duration_ms(start),
        )
    )
    return [TextContent(type="text", text=text)]
