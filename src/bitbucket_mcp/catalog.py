"""Tool catalog (public contract surface) and argument validation.

Each entry's inputSchema is the single source of truth for required fields,
types, defaults and enumerated values. Entries are listed in the order they are
advertised to clients.
"""

from __future__ import annotations

from typing import Any

from .errors import validation_error

_PAGE = {"type": "integer", "minimum": 1, "default": 1, "description": "Page number"}
_PAGELEN = {
    "type": "integer",
    "minimum": 1,
    "maximum": 100,
    "default": 10,
    "description": "Items per page (max 100)",
}
_REPOSITORY = {"type": "string", "minLength": 1, "description": "Repository slug"}
_PULL_REQUEST_ID = {"type": "integer", "minimum": 1, "description": "Pull request ID"}


def _paged(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    props: dict[str, Any] = dict(properties or {})
    props["page"] = dict(_PAGE)
    props["pagelen"] = dict(_PAGELEN)
    return {
        "type": "object",
        "required": list(required or []),
        "properties": props,
        "additionalProperties": False,
    }


def _pull_request_schema(extra: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    props: dict[str, Any] = {"repository": dict(_REPOSITORY), "pull_request_id": dict(_PULL_REQUEST_ID)}
    props.update(extra or {})
    return {
        "type": "object",
        "required": ["repository", "pull_request_id", *(required or [])],
        "properties": props,
        "additionalProperties": False,
    }


TOOL_METADATA: dict[str, dict[str, Any]] = {
    # Repository operations
    "list_repositories": {
        "description": "List repositories in the configured Bitbucket workspace.",
        "inputSchema": _paged(),
    },
    "list_projects": {
        "description": "List projects in the configured Bitbucket workspace.",
        "inputSchema": _paged(),
    },
    "list_branches": {
        "description": "List branches of a repository.",
        "inputSchema": _paged({"repository": dict(_REPOSITORY)}, ["repository"]),
    },
    "list_tags": {
        "description": "List tags of a repository.",
        "inputSchema": _paged({"repository": dict(_REPOSITORY)}, ["repository"]),
    },
    "get_branch_commits": {
        "description": "List commits reachable from a branch, newest first.",
        "inputSchema": _paged(
            {
                "repository": dict(_REPOSITORY),
                "branch": {"type": "string", "minLength": 1, "description": "Branch name"},
            },
            ["repository", "branch"],
        ),
    },
    "clone_repository": {
        "description": (
            "Verify a repository exists and return the git clone command for it (SSH or HTTPS). "
            "No git command is executed."
        ),
        "inputSchema": {
            "type": "object",
            "required": ["repository"],
            "properties": {
                "repository": dict(_REPOSITORY),
                "protocol": {
                    "type": "string",
                    "enum": ["ssh", "https"],
                    "default": "https",
                    "description": "Clone URL protocol",
                },
                "branch": {"type": "string", "minLength": 1, "description": "Branch to check out after cloning"},
                "directory": {"type": "string", "minLength": 1, "description": "Target directory name"},
            },
            "additionalProperties": False,
        },
    },
    # Branch operations
    "create_branch": {
        "description": "Create a new branch from the tip of a source branch.",
        "inputSchema": {
            "type": "object",
            "required": ["repository", "branch_name"],
            "properties": {
                "repository": dict(_REPOSITORY),
                "branch_name": {"type": "string", "minLength": 1, "description": "Name of the new branch"},
                "source_branch": {
                    "type": "string",
                    "minLength": 1,
                    "default": "main",
                    "description": "Branch whose tip the new branch starts from",
                },
            },
            "additionalProperties": False,
        },
    },
    # Pull request operations
    "create_pull_request": {
        "description": "Open a pull request from a source branch into a destination branch.",
        "inputSchema": {
            "type": "object",
            "required": ["repository", "title", "source_branch"],
            "properties": {
                "repository": dict(_REPOSITORY),
                "title": {"type": "string", "minLength": 1},
                "source_branch": {"type": "string", "minLength": 1},
                "destination_branch": {"type": "string", "minLength": 1, "default": "main"},
                "description": {"type": "string"},
                "reviewers": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "description": "Reviewer usernames",
                },
                "close_source_branch": {"type": "boolean", "default": False},
            },
            "additionalProperties": False,
        },
    },
    "list_pull_requests": {
        "description": "List pull requests of a repository filtered by state.",
        "inputSchema": _paged(
            {
                "repository": dict(_REPOSITORY),
                "state": {"type": "string", "enum": ["OPEN", "MERGED", "DECLINED"], "default": "OPEN"},
            },
            ["repository"],
        ),
    },
    "get_pull_request": {
        "description": "Get details of a single pull request.",
        "inputSchema": _pull_request_schema(),
    },
    "approve_pull_request": {
        "description": "Approve a pull request as the configured user.",
        "inputSchema": _pull_request_schema(),
    },
    "decline_pull_request": {
        "description": "Decline a pull request.",
        "inputSchema": _pull_request_schema(),
    },
    "merge_pull_request": {
        "description": "Merge a pull request.",
        "inputSchema": _pull_request_schema(
            {
                "merge_strategy": {
                    "type": "string",
                    "enum": ["merge_commit", "squash", "fast_forward"],
                    "default": "merge_commit",
                },
                "close_source_branch": {"type": "boolean", "default": False},
                "message": {"type": "string", "minLength": 1, "description": "Merge commit message"},
            }
        ),
    },
    "get_pull_request_comments": {
        "description": "List comments on a pull request.",
        "inputSchema": _pull_request_schema({"page": dict(_PAGE), "pagelen": dict(_PAGELEN)}),
    },
    "add_pull_request_comment": {
        "description": "Add a comment to a pull request, optionally inline on a file line.",
        "inputSchema": _pull_request_schema(
            {
                "content": {"type": "string", "minLength": 1, "description": "Comment text (Markdown)"},
                "file_path": {"type": "string", "minLength": 1, "description": "File for an inline comment"},
                "line": {"type": "integer", "minimum": 1, "description": "New-file line for an inline comment"},
            },
            ["content"],
        ),
    },
    # Deployment operations
    "list_deployments": {
        "description": "List deployments of a repository, optionally for one environment name.",
        "inputSchema": _paged(
            {
                "repository": dict(_REPOSITORY),
                "environment": {"type": "string", "minLength": 1, "description": "Exact environment name"},
            },
            ["repository"],
        ),
    },
    "get_deployment": {
        "description": "Get a single deployment by UUID.",
        "inputSchema": {
            "type": "object",
            "required": ["repository", "deployment_uuid"],
            "properties": {
                "repository": dict(_REPOSITORY),
                "deployment_uuid": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
    },
}


_TYPE_CHECKS: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}

_TYPE_NAMES = {"string": "a string", "integer": "an integer", "boolean": "a boolean", "array": "an array", "object": "an object"}


def _check_value(key: str, schema: dict[str, Any], v: Any) -> None:
    expected = schema.get("type")
    if expected in _TYPE_CHECKS:
        ok = isinstance(v, _TYPE_CHECKS[expected])
        if expected == "integer" and isinstance(v, bool):
            ok = False
        if not ok:
            raise validation_error(f"Field '{key}' must be {_TYPE_NAMES[expected]}")

    if expected == "string":
        min_len = schema.get("minLength")
        if isinstance(min_len, int) and len(v) < min_len:
            raise validation_error(f"Field '{key}' must be at least {min_len} characters")

    if expected == "integer":
        minimum = schema.get("minimum")
        maximum = schema.get("maximum")
        if isinstance(minimum, int) and isinstance(maximum, int) and not minimum <= v <= maximum:
            raise validation_error(f"Field '{key}' must be between {minimum} and {maximum}")
        if isinstance(minimum, int) and v < minimum:
            raise validation_error(f"Field '{key}' must be >= {minimum}")
        if isinstance(maximum, int) and v > maximum:
            raise validation_error(f"Field '{key}' must be <= {maximum}")

    allowed = schema.get("enum")
    if allowed is not None and v not in allowed:
        raise validation_error(f"Field '{key}' must be one of: {', '.join(map(str, allowed))}")

    if expected == "array" and isinstance(schema.get("items"), dict):
        for i, item in enumerate(v):
            _check_value(f"{key}[{i}]", schema["items"], item)


def validate_tool_arguments(tool_name: str, arguments: dict[str, Any]) -> None:
    """Validate tool arguments against the tool's declared input schema.

    Enforces required fields, unexpected fields, basic JSON types (booleans are
    not integers), minLength, minimum/maximum and enum. It is not a full JSON
    Schema implementation.
    """
    if tool_name not in TOOL_METADATA:
        raise validation_error(f"Unknown tool: {tool_name}")

    schema = TOOL_METADATA[tool_name]["inputSchema"]
    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    for k in required:
        if arguments.get(k) is None:
            raise validation_error(f"Missing required field: {k}")

    if schema.get("additionalProperties", True) is False:
        extras = sorted(k for k in arguments if k not in props)
        if extras:
            raise validation_error(f"Unexpected fields: {', '.join(extras)}")

    for k, prop in props.items():
        v = arguments.get(k)
        if v is None:
            continue
        _check_value(k, prop, v)


def apply_defaults(tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `arguments` with declared defaults filled in."""
    props: dict[str, Any] = TOOL_METADATA[tool_name]["inputSchema"].get("properties", {})
    out = {k: v for k, v in arguments.items() if v is not None}
    for k, prop in props.items():
        if k not in out and "default" in prop:
            out[k] = prop["default"]
    return out
