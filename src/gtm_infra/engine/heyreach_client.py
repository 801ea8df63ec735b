"""HTTP client for the LinkedIn automation provider."""

from typing import Optional

from gtm_infra.engine.vendors import VendorClient


class HeyReachClient(VendorClient):
    """Creates lead lists in HeyReach."""

    vendor = "HeyReach"

    def _headers(self) -> dict[str, str]:
        return {"X-API-KEY": self.api_key, "Content-Type": "application/json"}

    async def create_lead_list(self, name: str, reference: str) -> int:
        data = await self._request(
            "POST", "/api/public/list/CreateEmptyList",
            json={"name": name, "type": "USER_LIST", "reference": reference},
        )
        return int(data["id"])

    async def find_lead_list(self, reference: str) -> Optional[int]:
        data = await self._request(
            "GET", "/api/public/list/GetAll", params={"reference": reference}
        )
        items = data.get("items", []) if isinstance(data, dict) else []
        return int(items[0]["id"]) if items else None
