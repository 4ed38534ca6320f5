"""Bitbucket Cloud REST client wrapper.

Provides:
- a fixed API host (no redirects, no arbitrary hosts)
- HTTP Basic auth with the resolved identity
- finite timeouts
- translation of 4xx/5xx into RemoteApi errors carrying status and body

Requests are never retried; a 429 surfaces like any other error.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import ClientLimits, ResolvedIdentity
from .errors import configuration_error, remote_api_error, unexpected_error

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.bitbucket.org/2.0"


def path_segment(value: str, *, keep_slashes: bool = False) -> str:
    """Percent-encode a user-supplied value for use inside a URL path.

    Pass keep_slashes=True for branch names like ``feature/login``.
    """
    return quote(value, safe="/" if keep_slashes else "")


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class BitbucketClient:
    """Minimal Bitbucket Cloud REST client."""

    def __init__(
        self,
        *,
        identity: ResolvedIdentity,
        limits: ClientLimits,
        api_base_url: str = API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a Bitbucket REST client.

        Args:
            identity: Credentials and workspace used for every request.
            limits: Timeouts.
            api_base_url: Must be https://api.bitbucket.org/2.0 (enforced).
            transport: Optional httpx transport for tests.
        """
        self._identity = identity
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

        if self._api_base_url != API_BASE_URL:
            raise configuration_error(f"Only {API_BASE_URL} is allowed")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Make one request and return the decoded JSON body (None when empty)."""
        url = f"{self._api_base_url}{path}"

        async with httpx.AsyncClient(
            auth=httpx.BasicAuth(self._identity.username, self._identity.secret),
            follow_redirects=False,
            timeout=self._timeout(),
            transport=self._transport,
        ) as client:
            try:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers(),
                    params=params,
                    json=json_body,
                )
            except httpx.HTTPError as exc:
                raise unexpected_error(f"Network request failed ({exc.__class__.__name__}): {exc}") from exc

        logger.debug("%s %s -> %s", method, path, resp.status_code)

        if resp.status_code >= 400:
            raise remote_api_error(status_code=resp.status_code, body=_decode_body(resp))

        if not resp.content:
            return None
        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise remote_api_error(status_code=resp.status_code, body=resp.text) from exc
