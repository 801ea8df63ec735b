"""Tests for wizard submission and its failure stages."""

import pytest

from gtm_infra.common.exceptions import CheckoutError, SubmissionError
from gtm_infra.provisions.models import EMAIL_INFRA, OUTREACH_TOOLS
from gtm_infra.wizard.schemas import DomainAvailability, PurchaseIntent
from gtm_infra.wizard.submission import CheckoutSubmitter


@pytest.fixture
def gateway(checkout_gateway):
    return checkout_gateway


@pytest.fixture
def submitter(db, store, tier_service, gateway):
    return CheckoutSubmitter(db, store, tier_service, gateway)


async def _seed(db, tier_service, domain_count=2, outreach=True):
    async with db.get_session() as session:
        tier = await tier_service.create_tier(
            session, slug="starter", name="Starter", domain_count=domain_count,
            stripe_setup_price_id="price_setup", stripe_monthly_price_id="price_monthly",
        )
        if outreach:
            await tier_service.create_outreach_pricing(
                session, stripe_setup_price_id="price_o_setup", stripe_monthly_price_id="price_o_monthly",
            )
        return tier.id


def _intent(tier_id, products=(EMAIL_INFRA,), key="submission-0001", domains=("acme.com", "acmehq.com"), **overrides):
    values = dict(
        owner_id="owner-1",
        products=list(products),
        submission_key=key,
        tier_id=tier_id if EMAIL_INFRA in products else None,
        domains=[
            DomainAvailability(domain_name=d, status="AVAILABLE", domain_price=12.5) for d in domains
        ] if EMAIL_INFRA in products else [],
        mailbox_pattern_1="tim" if EMAIL_INFRA in products else None,
        mailbox_pattern_2="tim.keen" if EMAIL_INFRA in products else None,
    )
    values.update(overrides)
    return PurchaseIntent(**values)


class TestSubmit:
    async def test_creates_pending_provision_with_domains(self, db, store, tier_service, submitter, gateway):
        tier_id = await _seed(db, tier_service)

        response = await submitter.submit(_intent(tier_id))

        assert response.url == "https://checkout.stripe.test/1"
        assert len(response.provision_ids) == 1
        async with db.get_session() as session:
            provision = await store.require_provision(session, response.provision_ids[0])
            assert provision.status == "pending_payment"
            assert provision.tier_id == tier_id
            assert provision.stripe_checkout_session_id == "cs_test_1"
            assert [d.domain_name for d in provision.domains] == ["acme.com", "acmehq.com"]
            assert provision.domains[0].domain_price == 1250
        assert gateway.requests[0].tier.slug == "starter"
        assert gateway.requests[0].outreach_pricing is None

    async def test_bundle_links_outreach_to_email_infra(self, db, store, tier_service, submitter, gateway):
        tier_id = await _seed(db, tier_service)

        response = await submitter.submit(_intent(tier_id, products=(OUTREACH_TOOLS, EMAIL_INFRA)))

        email_id, outreach_id = response.provision_ids
        async with db.get_session() as session:
            outreach = await store.require_provision(session, outreach_id)
            assert outreach.product_type == OUTREACH_TOOLS
            assert outreach.linked_provision_id == email_id
            assert outreach.tier_id is None
        assert gateway.requests[0].provision_ids == [email_id, outreach_id]
        assert gateway.requests[0].outreach_pricing is not None

    async def test_resubmission_reuses_provisions(self, db, store, tier_service, submitter):
        tier_id = await _seed(db, tier_service)

        first = await submitter.submit(_intent(tier_id))
        second = await submitter.submit(_intent(tier_id, domains=("acme.com", "getacme.com")))

        assert first.provision_ids == second.provision_ids
        async with db.get_session() as session:
            provisions = await store.list_for_owner(session, "owner-1")
            assert len(provisions) == 1
            assert [d.domain_name for d in provisions[0].domains] == ["acme.com", "getacme.com"]

    async def test_new_key_reuses_unpaid_provision(self, db, store, tier_service, submitter):
        tier_id = await _seed(db, tier_service)
        first = await submitter.submit(_intent(tier_id, key="submission-0001"))
        second = await submitter.submit(_intent(tier_id, key="submission-0002"))
        assert first.provision_ids == second.provision_ids

    async def test_blocked_when_product_already_owned(self, db, store, tier_service, submitter, make_provision):
        tier_id = await _seed(db, tier_service)
        await make_provision(status="active")

        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id))
        assert exc.value.stage == "validation"

    async def test_completed_submission_key_rejected(self, db, store, tier_service, submitter):
        tier_id = await _seed(db, tier_service)
        response = await submitter.submit(_intent(tier_id))
        async with db.get_session() as session:
            await store.transition_status(session, response.provision_ids[0], "provisioning")

        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id))
        assert "already been completed" in exc.value.message

    async def test_wrong_domain_count_rejected(self, db, tier_service, submitter):
        tier_id = await _seed(db, tier_service, domain_count=3)
        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id))
        assert exc.value.stage == "validation"
        assert exc.value.message == "Select exactly 3 domains (2 selected)"

    async def test_invalid_pattern_rejected(self, db, tier_service, submitter):
        tier_id = await _seed(db, tier_service)
        with pytest.raises(SubmissionError):
            await submitter.submit(_intent(tier_id, mailbox_pattern_2="keen."))

    async def test_duplicate_domains_rejected(self, db, store, tier_service, submitter, gateway):
        tier_id = await _seed(db, tier_service)
        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id, domains=("acme.com", "ACME.com")))
        assert exc.value.stage == "validation"
        assert exc.value.message == "Each domain can only be selected once"
        assert gateway.requests == []
        async with db.get_session() as session:
            assert await store.list_for_owner(session, "owner-1") == []

    async def test_pattern_with_whitespace_rejected(self, db, store, tier_service, submitter):
        tier_id = await _seed(db, tier_service)
        for bad in ("tim ", " tim", "tim keen"):
            with pytest.raises(SubmissionError) as exc:
                await submitter.submit(_intent(tier_id, mailbox_pattern_1=bad))
            assert exc.value.stage == "validation"
        async with db.get_session() as session:
            assert await store.list_for_owner(session, "owner-1") == []

    async def test_unknown_tier_rejected(self, db, tier_service, submitter):
        await _seed(db, tier_service)
        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent("missing-tier"))
        assert exc.value.stage == "validation"

    async def test_outreach_only(self, db, store, tier_service, submitter, gateway):
        await _seed(db, tier_service)
        response = await submitter.submit(_intent(None, products=(OUTREACH_TOOLS,)))
        assert len(response.provision_ids) == 1
        assert gateway.requests[0].tier is None


class TestSubmitFailures:
    async def test_domain_stage_failure_removes_new_provisions(self, db, store, tier_service, submitter):
        tier_id = await _seed(db, tier_service)

        async def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        store.replace_domains = broken

        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id))

        assert exc.value.stage == "domains"
        assert "disk full" in exc.value.message
        async with db.get_session() as session:
            assert await store.list_for_owner(session, "owner-1") == []

    async def test_checkout_failure_keeps_provision_for_retry(self, db, store, tier_service, submitter, gateway):
        tier_id = await _seed(db, tier_service)
        gateway.fail = CheckoutError("Stripe session creation failed")

        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(tier_id))
        assert exc.value.stage == "checkout"
        assert exc.value.message == "Failed to create checkout session: Stripe session creation failed"

        gateway.fail = None
        response = await submitter.submit(_intent(tier_id))
        async with db.get_session() as session:
            provisions = await store.list_for_owner(session, "owner-1")
        assert [p.id for p in provisions] == response.provision_ids

    async def test_missing_outreach_pricing(self, db, tier_service, submitter):
        await _seed(db, tier_service, outreach=False)
        with pytest.raises(SubmissionError) as exc:
            await submitter.submit(_intent(None, products=(OUTREACH_TOOLS,)))
        assert exc.value.stage == "checkout"
