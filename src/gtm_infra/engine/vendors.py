"""Shared HTTP plumbing for provisioning vendors.

Vendor responses are classified into step errors: timeouts, connection
errors, 429 and 5xx become :class:`TransientStepError` (retried by the
engine); every other 4xx becomes :class:`TerminalStepError`.
"""

import logging
from typing import Any, Optional

import httpx

from gtm_infra.common.exceptions import TerminalStepError, TransientStepError

logger = logging.getLogger(__name__)


class VendorClient:
    """Base async JSON client for a provisioning vendor API."""

    vendor = "vendor"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Send one request and return parsed JSON (``None`` on allowed 404)."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException:
            raise TransientStepError(f"{self.vendor} request timed out") from None
        except httpx.HTTPError as e:
            raise TransientStepError(f"{self.vendor} unreachable: {e}") from None

        if resp.status_code == 404 and allow_not_found:
            return None
        if resp.status_code == 429 or resp.status_code >= 500:
            logger.warning("%s transient error: %s %s", self.vendor, resp.status_code, path)
            raise TransientStepError(f"{self.vendor} returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise TerminalStepError(
                f"{self.vendor} rejected request: HTTP {resp.status_code} {_error_text(resp)}".rstrip()
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            raise TerminalStepError(f"{self.vendor} returned invalid JSON") from None


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or "")
    return ""
