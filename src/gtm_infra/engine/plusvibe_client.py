"""HTTP client for the outreach/warmup workspace provider."""

from typing import Any, Optional

from gtm_infra.engine.vendors import VendorClient


class PlusVibeClient(VendorClient):
    """Calls the PlusVibe client-workspace API."""

    vendor = "PlusVibe"

    async def create_workspace(self, name: str, reference: str) -> dict[str, Any]:
        """Create a client workspace. Returns ``{"id", "client_email"}``."""
        data = await self._request(
            "POST", "/api/v1/clients", json={"name": name, "reference": reference}
        )
        return {"id": str(data["id"]), "client_email": data.get("email")}

    async def find_workspace(self, reference: str) -> Optional[dict[str, Any]]:
        data = await self._request(
            "GET", "/api/v1/clients", params={"reference": reference}
        )
        items = data.get("clients", []) if isinstance(data, dict) else []
        if not items:
            return None
        return {"id": str(items[0]["id"]), "client_email": items[0].get("email")}

    async def import_mailboxes(self, workspace_id: str, emails: list[str]) -> int:
        """Import mailboxes; already-imported addresses are ignored by the provider."""
        data = await self._request(
            "POST",
            f"/api/v1/clients/{workspace_id}/accounts/import",
            json={"emails": emails},
        )
        return int(data.get("imported", len(emails)))

    async def enable_warmup(self, workspace_id: str, emails: list[str]) -> None:
        await self._request(
            "POST",
            f"/api/v1/clients/{workspace_id}/warmup",
            json={"emails": emails, "enabled": True},
        )
