"""HTTP client for the email infrastructure provider (workspaces, domains, mailboxes)."""

import logging
from typing import Any, Optional

from gtm_infra.common.exceptions import TerminalStepError
from gtm_infra.engine.vendors import VendorClient

logger = logging.getLogger(__name__)


class ZapmailClient(VendorClient):
    """Calls the Zapmail workspace/domain/mailbox API."""

    vendor = "Zapmail"

    async def create_workspace(self, name: str, reference: str) -> str:
        data = await self._request(
            "POST", "/v2/workspaces", json={"name": name, "reference": reference}
        )
        return str(data["id"])

    async def find_workspace(self, reference: str) -> Optional[str]:
        data = await self._request(
            "GET", "/v2/workspaces", params={"reference": reference}
        )
        items = data.get("workspaces", []) if isinstance(data, dict) else []
        return str(items[0]["id"]) if items else None

    async def purchase_domain(
        self, workspace_id: str, domain_name: str, service_provider: str
    ) -> str:
        data = await self._request(
            "POST",
            f"/v2/workspaces/{workspace_id}/domains",
            json={"domainName": domain_name, "serviceProvider": service_provider},
        )
        if data.get("status") == "UNAVAILABLE":
            raise TerminalStepError(f"Domain {domain_name} is no longer available")
        logger.info("Purchased domain %s", domain_name)
        return str(data["id"])

    async def get_domain(self, workspace_id: str, domain_name: str) -> Optional[str]:
        data = await self._request(
            "GET",
            f"/v2/workspaces/{workspace_id}/domains/{domain_name}",
            allow_not_found=True,
        )
        return str(data["id"]) if data else None

    async def check_dns(self, workspace_id: str, domain_id: str) -> bool:
        data = await self._request(
            "GET", f"/v2/workspaces/{workspace_id}/domains/{domain_id}/dns"
        )
        return bool(data.get("propagated"))

    async def configure_dmarc(self, workspace_id: str, domain_id: str) -> None:
        await self._request(
            "PUT", f"/v2/workspaces/{workspace_id}/domains/{domain_id}/dmarc",
            json={"policy": "none"},
        )

    async def create_mailbox(
        self, workspace_id: str, domain_id: str, username: str
    ) -> str:
        data = await self._request(
            "POST",
            f"/v2/workspaces/{workspace_id}/domains/{domain_id}/mailboxes",
            json={"username": username},
        )
        return str(data["id"])

    async def list_mailboxes(
        self, workspace_id: str, domain_id: str
    ) -> dict[str, str]:
        """Return ``{username: mailbox_id}`` for mailboxes that already exist."""
        data = await self._request(
            "GET", f"/v2/workspaces/{workspace_id}/domains/{domain_id}/mailboxes"
        )
        items: list[dict[str, Any]] = data.get("mailboxes", []) if isinstance(data, dict) else []
        return {m["username"]: str(m["id"]) for m in items}
