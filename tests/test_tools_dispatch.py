"""Dispatch contract: catalog coverage, error normalization, audit, read-only tools."""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass
from typing import Any

import bitbucket_mcp.tools as tools
import httpx
import pytest
from bitbucket_mcp.audit import AuditEvent
from bitbucket_mcp.catalog import TOOL_METADATA
from bitbucket_mcp.config import ResolvedIdentity, SecretKind
from bitbucket_mcp.errors import remote_api_error
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, METHOD_NOT_FOUND

SECRET = "ATATTsuper-secret-token-123"


@dataclass
class DummyAudit:
    events: list[AuditEvent]

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class PermissiveBitbucket:
    """Answers every request with a generic paginated object."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self._error = error

    async def request_json(self, **kwargs: Any) -> object:
        self.calls.append(dict(kwargs))
        if self._error is not None:
            raise self._error
        return {"values": [], "page": 1, "pagelen": 10, "size": 0, "target": {"hash": "abc123"}}


def _identity() -> ResolvedIdentity:
    return ResolvedIdentity(username="alice", secret=SECRET, workspace="acme", secret_kind=SecretKind.API_TOKEN)


def _runtime(client: Any = None, transport: httpx.AsyncBaseTransport | None = None) -> tools.Runtime:
    return tools.build_runtime(
        _identity(),
        client=client,
        transport=transport,
        audit=DummyAudit(events=[]),  # type: ignore[arg-type]
    )


def test_bindings_cover_catalog_exactly() -> None:
    bindings = tools.tool_bindings(_runtime(PermissiveBitbucket()))

    assert set(bindings) == set(TOOL_METADATA)
    for name, func in bindings.items():
        assert func.__name__ == name


def test_every_public_handler_method_is_reachable() -> None:
    runtime = _runtime(PermissiveBitbucket())
    public: set[str] = set()
    for group in (runtime.repository, runtime.branch, runtime.pull_request, runtime.deployment):
        for attr, _member in inspect.getmembers(type(group), inspect.iscoroutinefunction):
            if not attr.startswith("_"):
                public.add(attr)

    assert public == set(TOOL_METADATA)


@pytest.mark.asyncio
async def test_unknown_tool_is_method_not_found_without_remote_call() -> None:
    client = PermissiveBitbucket()
    runtime = _runtime(client)

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(runtime, "delete_everything", {"repository": "foo"})

    assert exc.value.error.code == METHOD_NOT_FOUND
    assert "delete_everything" in exc.value.error.message
    assert client.calls == []
    assert runtime.audit.events[-1].outcome == "denied"  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_missing_required_field_fails_before_remote_call() -> None:
    client = PermissiveBitbucket()

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(_runtime(client), "get_pull_request", {"repository": "foo"})

    assert exc.value.error.code == INTERNAL_ERROR
    assert exc.value.error.message == "Invalid arguments: Missing required field: pull_request_id"
    assert client.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("pagelen", [0, 101])
async def test_out_of_range_pagelen_fails_before_remote_call(pagelen: int) -> None:
    client = PermissiveBitbucket()

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(_runtime(client), "list_branches", {"repository": "foo", "pagelen": pagelen})

    assert "pagelen" in exc.value.error.message
    assert client.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("pagelen", [1, 100])
async def test_boundary_pagelen_is_passed_through(pagelen: int) -> None:
    client = PermissiveBitbucket()

    _ = await tools.dispatch_tool(_runtime(client), "list_branches", {"repository": "foo", "pagelen": pagelen})

    assert client.calls[0]["params"] == {"page": 1, "pagelen": pagelen}


@pytest.mark.asyncio
async def test_remote_404_surfaces_status_and_body_once() -> None:
    calls = {"n": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, json={"type": "error", "error": {"message": "Repository acme/foo not found"}})

    runtime = _runtime(transport=httpx.MockTransport(handler))

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(runtime, "get_pull_request", {"repository": "foo", "pull_request_id": 1})

    assert calls["n"] == 1
    assert exc.value.error.code == INTERNAL_ERROR
    assert "404" in exc.value.error.message
    assert "Repository acme/foo not found" in exc.value.error.message
    assert runtime.audit.events[-1].outcome == "failed"  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_remote_error_from_handler_client_is_normalized() -> None:
    client = PermissiveBitbucket(error=remote_api_error(status_code=429, body={"error": "rate limited"}))

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(_runtime(client), "list_repositories", {})

    assert exc.value.error.message == 'Bitbucket API error (429): {"error": "rate limited"}'
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_unexpected_exception_keeps_message_and_redacts_secret() -> None:
    client = PermissiveBitbucket(error=RuntimeError(f"socket closed while sending {SECRET}"))

    with pytest.raises(McpError) as exc:
        _ = await tools.dispatch_tool(_runtime(client), "list_projects", {})

    assert exc.value.error.code == INTERNAL_ERROR
    assert exc.value.error.message.startswith("Unexpected error: socket closed while sending")
    assert SECRET not in exc.value.error.message


@pytest.mark.asyncio
async def test_success_returns_single_text_content_and_audits() -> None:
    client = PermissiveBitbucket()
    runtime = _runtime(client)

    out = await tools.dispatch_tool(runtime, "list_tags", {"repository": "foo"})

    assert len(out) == 1
    assert out[0].type == "text"
    assert out[0].text.startswith("Tags in acme/foo")
    events = runtime.audit.events  # type: ignore[attr-defined]
    assert len(events) == 1
    assert events[0].operation == "list_tags"
    assert events[0].target == "acme/foo"
    assert events[0].outcome == "succeeded"


@pytest.mark.asyncio
async def test_non_dict_arguments_are_treated_as_empty() -> None:
    client = PermissiveBitbucket()

    out = await tools.dispatch_tool(_runtime(client), "list_repositories", None)

    assert client.calls[0]["path"] == "/repositories/acme"
    assert out[0].text


READ_ONLY_CALLS: dict[str, dict[str, Any]] = {
    "list_repositories": {},
    "list_projects": {},
    "list_branches": {"repository": "foo"},
    "list_tags": {"repository": "foo"},
    "get_branch_commits": {"repository": "foo", "branch": "main"},
    "clone_repository": {"repository": "foo"},
    "list_pull_requests": {"repository": "foo"},
    "get_pull_request": {"repository": "foo", "pull_request_id": 1},
    "get_pull_request_comments": {"repository": "foo", "pull_request_id": 1},
    "list_deployments": {"repository": "foo", "environment": "production"},
    "get_deployment": {"repository": "foo", "deployment_uuid": "abc"},
}


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "arguments"), sorted(READ_ONLY_CALLS.items()))
async def test_read_only_tools_use_get_only(name: str, arguments: dict[str, Any]) -> None:
    client = PermissiveBitbucket()

    _ = await tools.dispatch_tool(_runtime(client), name, arguments)

    assert client.calls
    assert {c["method"] for c in client.calls} == {"GET"}
