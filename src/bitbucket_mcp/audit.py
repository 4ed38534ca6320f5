"""Structured audit trail of tool calls.

One JSON line per tool call is written to stderr (stdout carries the MCP stream).
Events never contain credentials; reasons are redacted before they are written.
"""

from __future__ import annotations

import json
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, TextIO

from .safety import redact_text


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target: str
    outcome: str
    reason: str | None
    duration_ms: int | None


class AuditLogger:
    """Writes audit events as JSONL to a text stream (stderr by default)."""

    def __init__(self, *, stream: TextIO | None = None, secrets: Iterable[str] = ()) -> None:
        self._stream = stream
        self._secrets = tuple(s for s in secrets if s)

    def write_event(self, event: AuditEvent) -> None:
        payload = {
            "timestamp": event.timestamp,
            "correlation_id": event.correlation_id,
            "operation": event.operation,
            "target": event.target,
            "outcome": event.outcome,
        }
        if event.reason is not None:
            payload["reason"] = redact_text(event.reason, secrets=self._secrets)
        if event.duration_ms is not None:
            payload["duration_ms"] = event.duration_ms

        line = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        print(line, file=self._stream if self._stream is not None else sys.stderr)

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str,
    outcome: str,
    reason: str | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        reason=reason,
        duration_ms=duration_ms,
    )
