"""Error kinds and normalization helpers.

Every failure raised while serving a tool call is converted into a single
`McpError` at the dispatch boundary. Messages must never include credentials.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, METHOD_NOT_FOUND, ErrorData

from .safety import redact_text


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    CONFIGURATION = "Configuration"
    VALIDATION = "Validation"
    REMOTE_API = "RemoteApi"
    UNEXPECTED = "Unexpected"


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error whose message is safe to show to the calling agent.

    `status_code` and `body` are only set for remote API failures and carry the
    upstream response verbatim (body decoded as JSON when possible).
    """

    kind: ErrorKind
    message: str
    status_code: int | None = None
    body: Any = None

    def __str__(self) -> str:
        return self.message


def configuration_error(message: str) -> SafeError:
    """Startup-only error for missing or invalid credentials."""
    return SafeError(kind=ErrorKind.CONFIGURATION, message=message)


def validation_error(message: str) -> SafeError:
    """Error for invalid tool arguments. Raised before any remote call."""
    return SafeError(kind=ErrorKind.VALIDATION, message=message)


def remote_api_error(*, status_code: int, body: Any) -> SafeError:
    """Error for a 4xx/5xx response from Bitbucket."""
    return SafeError(
        kind=ErrorKind.REMOTE_API,
        message=f"Bitbucket API error ({status_code}): {_serialize_body(body)}",
        status_code=status_code,
        body=body,
    )


def unexpected_error(message: str) -> SafeError:
    """Error for anything that is not the caller's or Bitbucket's fault."""
    return SafeError(kind=ErrorKind.UNEXPECTED, message=message)


def method_not_found(name: str) -> McpError:
    """Protocol error for a tool name that is not in the catalog."""
    return McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))


def _serialize_body(body: Any) -> str:
    try:
        return json.dumps(body, default=str)
    except (TypeError, ValueError):
        return str(body)


def to_mcp_error(exc: BaseException, *, secrets: Iterable[str] = ()) -> McpError:
    """Convert any failure into the single error shape sent to the transport."""
    if isinstance(exc, McpError):
        return exc

    if isinstance(exc, SafeError):
        if exc.kind is ErrorKind.VALIDATION:
            message = f"Invalid arguments: {exc.message}"
        elif exc.kind is ErrorKind.REMOTE_API and exc.status_code is not None:
            message = f"Bitbucket API error ({exc.status_code}): {_serialize_body(exc.body)}"
        else:
            message = exc.message
    else:
        message = f"Unexpected error: {exc}"

    return McpError(ErrorData(code=INTERNAL_ERROR, message=redact_text(message, secrets=secrets)))
