"""Integration tests for domain checks and checkout submission."""

import pytest

from gtm_infra.common.exceptions import CheckoutError, DomainAvailabilityError
from gtm_infra.wizard.schemas import DomainAvailability


class FakeAvailability:
    def __init__(self, error=None):
        self.error = error
        self.brands = []

    async def check(self, brand, service_provider=None):
        self.brands.append(brand)
        if self.error:
            raise self.error
        return [
            DomainAvailability(domain_name=f"{brand}.com", status="UNAVAILABLE"),
            DomainAvailability(domain_name=f"get{brand}.com", status="AVAILABLE", domain_price=11.0),
        ]


@pytest.fixture
async def tier_id(db, tier_service):
    async with db.get_session() as session:
        tier = await tier_service.create_tier(
            session, slug="starter", name="Starter", domain_count=2,
            stripe_setup_price_id="price_setup", stripe_monthly_price_id="price_monthly",
        )
        return tier.id


def _intent(tier_id, key="submission-abc123"):
    return {
        "owner_id": "owner-1",
        "products": ["email_infra"],
        "submission_key": key,
        "tier_id": tier_id,
        "domains": [
            {"domainName": "acme.com", "status": "AVAILABLE", "domainPrice": 12.0},
            {"domainName": "getacme.com", "status": "AVAILABLE", "domainPrice": 9.5},
        ],
        "mailbox_pattern_1": "tim",
        "mailbox_pattern_2": "tim.keen",
    }


class TestDomainCheck:
    async def test_normalizes_brand(self, client, wired):
        availability = FakeAvailability()
        wired._availability = availability

        resp = await client.post("/wizard/domains/check", json={"brand": "Acme Inc."})

        assert resp.status_code == 200
        data = resp.json()
        assert data["brand"] == "acmeinc"
        assert availability.brands == ["acmeinc"]
        assert [d["domainName"] for d in data["domains"]] == ["acmeinc.com", "getacmeinc.com"]

    async def test_blank_brand(self, client, wired):
        wired._availability = FakeAvailability()
        resp = await client.post("/wizard/domains/check", json={"brand": "!!!"})
        assert resp.status_code == 422

    async def test_service_failure(self, client, wired):
        wired._availability = FakeAvailability(
            error=DomainAvailabilityError("Could not check domain availability. Please try again."),
        )
        resp = await client.post("/wizard/domains/check", json={"brand": "acme"})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "Could not check domain availability. Please try again."


class TestCheckout:
    async def test_returns_checkout_url(self, client, wired, tier_id):
        resp = await client.post("/wizard/checkout", json=_intent(tier_id))

        assert resp.status_code == 200
        data = resp.json()
        assert data["url"] == "https://checkout.stripe.test/1"
        assert len(data["provision_ids"]) == 1

        view = (await client.get("/owners/owner-1/view")).json()
        assert view["view"] == "wizard_prefilled"
        assert [d["domain_price"] for d in view["prefill_from"][0]["domains"]] == [1200, 950]

    async def test_validation_stage(self, client, wired, tier_id):
        intent = _intent(tier_id)
        intent["domains"] = intent["domains"][:1]
        resp = await client.post("/wizard/checkout", json=intent)
        assert resp.status_code == 422
        assert resp.json()["detail"] == {
            "stage": "validation",
            "message": "Select exactly 2 domains (1 selected)",
        }

    async def test_checkout_stage(self, client, wired, checkout_gateway, tier_id):
        checkout_gateway.fail = CheckoutError("Stripe not configured")
        resp = await client.post("/wizard/checkout", json=_intent(tier_id))
        assert resp.status_code == 502
        assert resp.json()["detail"]["stage"] == "checkout"

    async def test_schema_rejects_short_key(self, client, wired, tier_id):
        resp = await client.post("/wizard/checkout", json=_intent(tier_id, key="short"))
        assert resp.status_code == 422
