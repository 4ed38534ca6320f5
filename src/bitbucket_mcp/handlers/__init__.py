"""Domain handlers: one class per group of Bitbucket operations.

Handlers receive arguments already validated against the catalog (with defaults
filled), issue their HTTP request(s) through the shared client and return a
human-readable text summary of the response.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..bitbucket_client import path_segment
from ..errors import unexpected_error, validation_error


class JsonClient(Protocol):
    """What handlers need from the HTTP client."""

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any: ...


def require_str(arguments: dict[str, Any], key: str) -> str:
    v = arguments.get(key)
    if not isinstance(v, str) or not v:
        raise validation_error(f"Field '{key}' is required")
    return v


def require_int(arguments: dict[str, Any], key: str) -> int:
    v = arguments.get(key)
    if not isinstance(v, int) or isinstance(v, bool):
        raise validation_error(f"Field '{key}' must be an integer")
    return v


def optional_str(arguments: dict[str, Any], key: str) -> str | None:
    v = arguments.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise validation_error(f"Field '{key}' must be a string")
    return v


def page_params(arguments: dict[str, Any]) -> dict[str, Any]:
    """Pass `page` and `pagelen` through to the query string unchanged."""
    return {"page": require_int(arguments, "page"), "pagelen": require_int(arguments, "pagelen")}


def expect_dict(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise unexpected_error(f"Unexpected {what} response from Bitbucket")
    return data


def values_of(data: Any, what: str) -> list[dict[str, Any]]:
    """Return the `values` list of a paginated Bitbucket response."""
    page = expect_dict(data, what)
    values = page.get("values", [])
    if not isinstance(values, list):
        raise unexpected_error(f"Unexpected {what} response from Bitbucket")
    return [v for v in values if isinstance(v, dict)]


def dig(obj: Any, *keys: str) -> Any:
    """Follow nested keys, returning None as soon as one is missing."""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def html_link(obj: Any) -> str | None:
    return dig(obj, "links", "html", "href")


def pagination_summary(data: dict[str, Any]) -> str:
    """One line describing where this page sits in the full result set."""
    parts = [f"page {data.get('page', '?')}", f"pagelen {data.get('pagelen', '?')}"]
    if "size" in data:
        parts.append(f"total {data['size']}")
    line = "Pagination: " + ", ".join(parts)
    if data.get("next"):
        line += f"\nNext page: {data['next']}"
    return line


def first_line(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return text.strip().splitlines()[0] if text.strip() else ""


class WorkspaceHandlers:
    """Base for handler groups bound to one workspace."""

    def __init__(self, client: JsonClient, workspace: str) -> None:
        self._client = client
        self._workspace = workspace

    def _repo_path(self, repository: str, *parts: str) -> str:
        path = f"/repositories/{path_segment(self._workspace)}/{path_segment(repository)}"
        for part in parts:
            path += f"/{part}"
        return path

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._client.request_json(method="GET", path=path, params=params)

    async def _post(self, path: str, json_body: dict[str, Any] | None = None) -> Any:
        return await self._client.request_json(method="POST", path=path, json_body=json_body)
