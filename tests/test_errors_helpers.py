"""Error normalization coverage."""

from __future__ import annotations

from bitbucket_mcp.errors import (ErrorKind, SafeError, configuration_error,
                                  method_not_found, remote_api_error,
                                  to_mcp_error, unexpected_error,
                                  validation_error)
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, METHOD_NOT_FOUND


def test_remote_api_error_includes_status_and_body() -> None:
    err = remote_api_error(status_code=404, body={"type": "error", "error": {"message": "Repository not found"}})
    assert err.kind is ErrorKind.REMOTE_API
    assert err.status_code == 404

    out = to_mcp_error(err)
    assert out.error.code == INTERNAL_ERROR
    assert out.error.message.startswith("Bitbucket API error (404): ")
    assert '"Repository not found"' in out.error.message


def test_validation_error_is_internal_coded_with_description() -> None:
    out = to_mcp_error(validation_error("Missing required field: repository"))
    assert out.error.code == INTERNAL_ERROR
    assert out.error.message == "Invalid arguments: Missing required field: repository"


def test_mcp_error_passes_through_unchanged() -> None:
    original = method_not_found("nope")
    assert to_mcp_error(original) is original
    assert original.error.code == METHOD_NOT_FOUND
    assert original.error.message == "Unknown tool: nope"


def test_unknown_exception_keeps_original_message() -> None:
    out = to_mcp_error(RuntimeError("boom"))
    assert out.error.code == INTERNAL_ERROR
    assert out.error.message == "Unexpected error: boom"


def test_unexpected_and_configuration_safe_errors_keep_message() -> None:
    assert to_mcp_error(unexpected_error("Network request failed")).error.message == "Network request failed"
    assert to_mcp_error(configuration_error("BITBUCKET_WORKSPACE is required")).error.message == (
        "BITBUCKET_WORKSPACE is required"
    )


def test_normalized_message_redacts_known_secrets() -> None:
    out = to_mcp_error(RuntimeError("auth with hunter2-secret failed"), secrets=("hunter2-secret",))
    assert "hunter2-secret" not in out.error.message
    assert "<redacted>" in out.error.message


def test_safe_error_str_is_message() -> None:
    err = SafeError(kind=ErrorKind.VALIDATION, message="bad")
    assert str(err) == "bad"
    assert isinstance(to_mcp_error(err), McpError)
