"""
InfraClient SDK — async client for the GTM-Infra API.

Used by the CLI and by other services to read provisioning state, run the
purchase flow and trigger pipeline runs.
"""

import asyncio
import json
from typing import Any, Optional

import httpx

from gtm_infra.common.exceptions import InfraError
from gtm_infra.progress.schemas import ProgressSnapshot


class InfraClient:
    """Async HTTP client for GTM-Infra."""

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        api_key: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.AsyncClient(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    def _admin_headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-Infra-Api-Key"] = self.api_key
        return headers

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request, retrying timeouts, transport errors, 429 and 5xx.

        Other 4xx responses fail at once. Every failure is raised as
        :class:`InfraError` whose ``code`` is one of ``SERVER_ERROR``,
        ``CLIENT_ERROR``, ``CONNECTION_ERROR`` or ``JSON_ERROR``.
        """
        last_error = "no attempts made"
        for attempt in range(self.max_retries):
            if attempt:
                await asyncio.sleep(self.retry_backoff_base * (2 ** (attempt - 1)))
            try:
                resp = await self._http.request(method, path, **kwargs)
            except httpx.TimeoutException:
                last_error = "timeout"
                continue
            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                continue

            if resp.status_code == 429 or resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}"
                if attempt == self.max_retries - 1:
                    raise InfraError(f"Server error: {resp.status_code}", code="SERVER_ERROR")
                continue
            if resp.status_code >= 400:
                raise InfraError(
                    f"Client error: {resp.status_code} {_detail(resp)}".rstrip(),
                    code="CLIENT_ERROR",
                )
            try:
                return resp.json()
            except json.JSONDecodeError:
                raise InfraError("Invalid JSON response", code="JSON_ERROR") from None

        raise InfraError(
            f"All {self.max_retries} retries exhausted: {last_error}", code="CONNECTION_ERROR",
        )

    # ── Read side ──

    async def health(self) -> dict[str, Any]:
        return await self._call("GET", "/health")

    async def list_tiers(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/tiers")

    async def owner_view(self, owner_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/owners/{owner_id}/view")

    async def progress(self, owner_id: str) -> ProgressSnapshot:
        """Owner-wide progress snapshot."""
        data = await self._call("GET", f"/owners/{owner_id}/progress")
        return ProgressSnapshot.model_validate(data)

    async def provision_progress(self, provision_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/provisions/{provision_id}/progress")

    # ── Purchase flow ──

    async def check_domains(self, brand: str) -> dict[str, Any]:
        return await self._call("POST", "/wizard/domains/check", json={"brand": brand})

    async def checkout(self, intent: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/wizard/checkout", json=intent)

    # ── Admin ──

    async def run_provision(self, provision_id: str) -> dict[str, Any]:
        return await self._call(
            "POST", f"/provisions/{provision_id}/run", headers=self._admin_headers(),
        )

    # ── Lifecycle ──

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "InfraClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        return resp.text[:200]
    if isinstance(detail, dict):
        return str(detail.get("message", detail))
    return "" if detail is None else str(detail)
