"""Domain suggestions and the external availability check."""

import logging
import re
from typing import Optional

import httpx

from gtm_infra.common.exceptions import DomainAvailabilityError
from gtm_infra.wizard.schemas import DomainAvailability

logger = logging.getLogger(__name__)

PREFIXES = ("get", "try", "use", "go", "hey", "meet", "with", "join")
SUFFIXES = ("hq", "app", "mail", "team", "co", "now", "pro")
TLDS = ("com", "io", "net")


def normalize_brand(brand: str) -> str:
    """Lowercase and strip everything but ``[a-z0-9]``."""
    return re.sub(r"[^a-z0-9]", "", brand.lower())


def suggest_domains(brand: str) -> list[str]:
    clean = normalize_brand(brand)
    if not clean:
        return []
    suggestions = [f"{clean}.{tld}" for tld in TLDS]
    suggestions += [f"{p}{clean}.com" for p in PREFIXES]
    suggestions += [f"{clean}{s}.com" for s in SUFFIXES]
    suggestions += [f"{clean}-{s}.com" for s in SUFFIXES[:4]]
    suggestions += [f"{p}{clean}.{tld}" for p in PREFIXES[:3] for tld in TLDS[1:]]
    return list(dict.fromkeys(suggestions))


class DomainAvailabilityClient:
    """Asks the GTM system which candidate domains can be registered."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        default_service_provider: str = "GOOGLE",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_service_provider = default_service_provider
        self._transport = transport

    async def check(
        self, brand: str, service_provider: Optional[str] = None
    ) -> list[DomainAvailability]:
        token = normalize_brand(brand)
        candidates = suggest_domains(token)
        if not candidates:
            return []

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/api/infrastructure/domains/check",
                    json={"domain": token, "domains": candidates},
                )
                resp.raise_for_status()
                data = resp.json()
            provider = service_provider or self.default_service_provider
            return [
                DomainAvailability(
                    domain_name=item["domainName"],
                    status=item.get("status", "UNAVAILABLE"),
                    domain_price=item.get("domainPrice") or 0,
                    service_provider=provider,
                )
                for item in data.get("domains", [])
            ]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Domain check failed for %r: %s", token, e)
            raise DomainAvailabilityError(
                "Could not check domain availability. Please try again."
            ) from e

