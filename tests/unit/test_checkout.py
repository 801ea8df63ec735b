"""Tests for Stripe checkout creation and payment webhooks."""

import hashlib
import hmac
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from gtm_infra.checkout.gateway import (
    CheckoutRequest,
    StripeCheckoutGateway,
    build_line_items,
)
from gtm_infra.checkout.stripe_webhook import (
    PaymentConfirmation,
    apply_payment,
    parse_stripe_checkout,
    verify_stripe_signature,
)
from gtm_infra.common.exceptions import CheckoutError
from gtm_infra.provisions.models import OUTREACH_TOOLS


def _pricing(setup="price_setup", monthly="price_monthly", slug="starter"):
    return SimpleNamespace(slug=slug, stripe_setup_price_id=setup, stripe_monthly_price_id=monthly)


def _gateway(secret="sk_test_123"):
    return StripeCheckoutGateway(secret, "https://app.test/done", "https://app.test/cancel")


def _event(provision_ids="p1,p2", owner_id="owner-1", kind="infrastructure", event_type="checkout.session.completed"):
    return {
        "type": event_type,
        "data": {"object": {
            "id": "cs_test_9",
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"provision_ids": provision_ids, "owner_id": owner_id, "type": kind},
        }},
    }


class TestLineItems:
    def test_tier_and_outreach(self):
        items = build_line_items(_pricing(), _pricing("price_o_setup", "price_o_monthly"))
        assert [i["price"] for i in items] == [
            "price_setup", "price_monthly", "price_o_setup", "price_o_monthly",
        ]
        assert all(i["quantity"] == 1 for i in items)

    def test_missing_price_rejected(self):
        with pytest.raises(CheckoutError):
            build_line_items(_pricing(monthly=None))

    def test_empty_order_rejected(self):
        with pytest.raises(CheckoutError):
            build_line_items()


class TestGateway:
    async def test_creates_subscription_session(self):
        fake_session = MagicMock(url="https://checkout.stripe.com/c/pay/cs_1", id="cs_1")
        with patch.object(stripe.checkout.Session, "create", return_value=fake_session) as create:
            result = await _gateway().create_session(CheckoutRequest(
                owner_id="owner-1", provision_ids=["p1", "p2"], tier=_pricing(),
            ))

        assert result.url == "https://checkout.stripe.com/c/pay/cs_1"
        assert result.session_id == "cs_1"
        kwargs = create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["metadata"] == {
            "provision_ids": "p1,p2",
            "owner_id": "owner-1",
            "type": "infrastructure",
            "tier": "starter",
        }
        assert kwargs["subscription_data"]["metadata"]["provision_ids"] == "p1,p2"
        assert kwargs["success_url"] == "https://app.test/done"

    async def test_not_configured(self):
        with pytest.raises(CheckoutError) as exc:
            await _gateway(secret="").create_session(CheckoutRequest("owner-1", ["p1"], tier=_pricing()))
        assert exc.value.message == "Stripe not configured"

    async def test_stripe_error_wrapped(self):
        with patch.object(stripe.checkout.Session, "create", side_effect=stripe.StripeError("card network down")):
            with pytest.raises(CheckoutError) as exc:
                await _gateway().create_session(CheckoutRequest("owner-1", ["p1"], tier=_pricing()))
        assert exc.value.message == "Stripe session creation failed"

    async def test_missing_url(self):
        with patch.object(stripe.checkout.Session, "create", return_value=MagicMock(url=None, id="cs_1")):
            with pytest.raises(CheckoutError):
                await _gateway().create_session(CheckoutRequest("owner-1", ["p1"], tier=_pricing()))


class TestSignature:
    def _sign(self, payload: bytes, secret: str, timestamp: str) -> str:
        digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    def test_valid(self):
        payload = b'{"type":"checkout.session.completed"}'
        header = self._sign(payload, "whsec_test", str(int(time.time())))
        assert verify_stripe_signature(payload, header, "whsec_test") is True

    def test_wrong_secret(self):
        payload = b"{}"
        header = self._sign(payload, "whsec_other", "1700000000")
        assert verify_stripe_signature(payload, header, "whsec_test") is False

    def test_malformed_header(self):
        assert verify_stripe_signature(b"{}", "garbage", "whsec_test") is False
        assert verify_stripe_signature(b"{}", "", "whsec_test") is False


class TestParse:
    def test_infrastructure_checkout(self):
        confirmation = parse_stripe_checkout(_event())
        assert confirmation.provision_ids == ["p1", "p2"]
        assert confirmation.owner_id == "owner-1"
        assert confirmation.session_id == "cs_test_9"
        assert confirmation.customer_id == "cus_1"
        assert confirmation.subscription_id == "sub_1"

    def test_other_event_types_ignored(self):
        assert parse_stripe_checkout(_event(event_type="invoice.paid")) is None

    def test_other_checkouts_ignored(self):
        assert parse_stripe_checkout(_event(kind="license")) is None

    def test_missing_ids_ignored(self):
        assert parse_stripe_checkout(_event(provision_ids="")) is None


class TestApplyPayment:
    async def test_moves_to_provisioning(self, db, store, make_provision):
        email_id = await make_provision(status="pending_payment")
        outreach_id = await make_provision(product_type=OUTREACH_TOOLS, status="pending_payment")
        confirmation = PaymentConfirmation("cs_1", "owner-1", [email_id, outreach_id], "cus_1", "sub_1")

        async with db.get_session() as session:
            started = await apply_payment(session, store, confirmation)

        assert started == [email_id, outreach_id]
        async with db.get_session() as session:
            provision = await store.require_provision(session, email_id)
        assert provision.status == "provisioning"
        assert provision.stripe_subscription_id == "sub_1"
        assert provision.stripe_customer_id == "cus_1"

    async def test_replay_is_noop(self, db, store, make_provision):
        provision_id = await make_provision(status="pending_payment")
        confirmation = PaymentConfirmation("cs_1", "owner-1", [provision_id])

        async with db.get_session() as session:
            await apply_payment(session, store, confirmation)
        async with db.get_session() as session:
            started = await apply_payment(session, store, confirmation)

        assert started == []

    async def test_foreign_and_unknown_provisions_skipped(self, db, store, make_provision):
        provision_id = await make_provision(owner_id="owner-2", status="pending_payment")
        confirmation = PaymentConfirmation("cs_1", "owner-1", [provision_id, "missing"])

        async with db.get_session() as session:
            started = await apply_payment(session, store, confirmation)
            provision = await store.require_provision(session, provision_id)

        assert started == []
        assert provision.status == "pending_payment"
