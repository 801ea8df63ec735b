"""Tests for domain suggestions and the availability client."""

import json

import httpx
import pytest

from gtm_infra.common.exceptions import DomainAvailabilityError
from gtm_infra.wizard.domains import DomainAvailabilityClient, normalize_brand, suggest_domains


class TestSuggestions:
    def test_normalize(self):
        assert normalize_brand("Acme Co.") == "acmeco"
        assert normalize_brand("---") == ""

    def test_candidates_start_with_tld_variants(self):
        candidates = suggest_domains("Acme")
        assert candidates[:3] == ["acme.com", "acme.io", "acme.net"]
        assert "getacme.com" in candidates
        assert "acmehq.com" in candidates
        assert "acme-hq.com" in candidates
        assert "tryacme.io" in candidates

    def test_no_duplicates(self):
        candidates = suggest_domains("acme")
        assert len(candidates) == len(set(candidates))

    def test_empty_brand(self):
        assert suggest_domains("!!") == []


class TestAvailabilityClient:
    async def test_posts_token_and_candidates(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"domains": [
                {"domainName": "acme.com", "status": "UNAVAILABLE"},
                {"domainName": "getacme.com", "status": "AVAILABLE", "domainPrice": 12.99},
            ]})

        client = DomainAvailabilityClient(
            "http://gtm.test/", transport=httpx.MockTransport(handler),
        )
        results = await client.check("Acme", service_provider="MICROSOFT")

        assert seen["url"] == "http://gtm.test/api/infrastructure/domains/check"
        assert seen["body"]["domain"] == "acme"
        assert seen["body"]["domains"] == suggest_domains("acme")
        assert [r.domain_name for r in results] == ["acme.com", "getacme.com"]
        assert results[0].available is False
        assert results[1].price_cents == 1299
        assert all(r.service_provider == "MICROSOFT" for r in results)

    async def test_default_provider_applied(self):
        def handler(request):
            return httpx.Response(200, json={"domains": [{"domainName": "acme.com", "status": "AVAILABLE"}]})

        client = DomainAvailabilityClient(
            "http://gtm.test", default_service_provider="GOOGLE",
            transport=httpx.MockTransport(handler),
        )
        results = await client.check("acme")
        assert results[0].service_provider == "GOOGLE"

    async def test_server_error_raises_availability_error(self):
        client = DomainAvailabilityClient(
            "http://gtm.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(DomainAvailabilityError) as exc:
            await client.check("acme")
        assert "try again" in exc.value.message

    async def test_malformed_payload_raises_availability_error(self):
        client = DomainAvailabilityClient(
            "http://gtm.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"domains": [{}]})),
        )
        with pytest.raises(DomainAvailabilityError):
            await client.check("acme")

    async def test_blank_brand_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = DomainAvailabilityClient("http://gtm.test", transport=httpx.MockTransport(handler))
        assert await client.check("  ") == []
