"""Redaction helpers.

Secrets (app passwords, API tokens, Authorization headers) must never reach tool
results, error messages, logs or audit events.
"""

from __future__ import annotations

import re
from typing import Iterable

REDACTED = "<redacted>"

# Bitbucket app passwords start with ATBB, Atlassian API tokens with ATATT.
_TOKEN_RE = re.compile(r"\b(?:ATBB|ATATT)[A-Za-z0-9_\-=]{8,}")
_AUTH_HEADER_RE = re.compile(
    r"\b(Basic|Bearer)\s+(?=[A-Za-z0-9._~+/\-]*\d)[A-Za-z0-9._~+/\-]{16,}=*",
    re.IGNORECASE,
)


def redact_text(text: str, *, secrets: Iterable[str] = ()) -> str:
    """Return `text` with known secrets and credential-looking tokens masked."""
    if not isinstance(text, str):
        return "<non-string>"
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    text = _AUTH_HEADER_RE.sub(lambda m: f"{m.group(1)} {REDACTED}", text)
    return _TOKEN_RE.sub(REDACTED, text)
