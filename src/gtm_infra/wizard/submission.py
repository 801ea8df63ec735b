"""Wizard submission: provision rows, domain rows, then a checkout session.

Each stage reports failures as a :class:`SubmissionError` carrying the stage
name. Resubmitting with the same submission key picks up the rows written by
an earlier attempt instead of creating a second set.
"""

import logging
from typing import Any, Optional

from gtm_infra.checkout.gateway import CheckoutRequest, StripeCheckoutGateway
from gtm_infra.common.database import DatabaseManager
from gtm_infra.common.exceptions import InfraError, SubmissionError
from gtm_infra.provisions.models import (
    EMAIL_INFRA,
    OUTREACH_TOOLS,
    PENDING_PAYMENT,
    PRODUCT_TYPES,
    ProvisionModel,
)
from gtm_infra.provisions.store import ProvisionStore
from gtm_infra.tiers.service import TierService
from gtm_infra.wizard.patterns import patterns_complete
from gtm_infra.wizard.schemas import CheckoutResponse, PurchaseIntent

logger = logging.getLogger(__name__)

VALIDATION = "validation"
PROVISION = "provision"
DOMAINS = "domains"
CHECKOUT = "checkout"


class CheckoutSubmitter:
    def __init__(
        self,
        db: DatabaseManager,
        store: ProvisionStore,
        tier_service: TierService,
        gateway: StripeCheckoutGateway,
    ):
        self.db = db
        self.store = store
        self.tier_service = tier_service
        self.gateway = gateway

    async def submit(self, intent: PurchaseIntent) -> CheckoutResponse:
        products = [p for p in PRODUCT_TYPES if p in intent.products]
        if not products:
            raise SubmissionError(VALIDATION, "Select at least one product")

        provision_ids, created = await self._create_provisions(intent, products)
        if intent.includes_email_infra:
            await self._create_domains(intent, provision_ids[EMAIL_INFRA], created)

        ordered_ids = [provision_ids[p] for p in products]
        url = await self._create_checkout(intent, ordered_ids)
        return CheckoutResponse(url=url, provision_ids=ordered_ids)

    # ── Stage 1: provisions ──

    async def _create_provisions(
        self, intent: PurchaseIntent, products: list[str]
    ) -> tuple[dict[str, str], list[str]]:
        ids: dict[str, str] = {}
        created: list[str] = []
        try:
            async with self.db.get_session() as session:
                tier = None
                if intent.includes_email_infra:
                    tier = await self._validate_email_infra(session, intent)

                current = await self.store.get_owner_provisions(session, intent.owner_id)
                for product_type in products:
                    provision = await self._reusable(session, intent, product_type, current)
                    fields = {
                        "tier_id": tier.id if tier is not None and product_type == EMAIL_INFRA else None,
                        "service_provider": intent.service_provider,
                        "mailbox_pattern_1": intent.mailbox_pattern_1 if product_type == EMAIL_INFRA else None,
                        "mailbox_pattern_2": intent.mailbox_pattern_2 if product_type == EMAIL_INFRA else None,
                    }
                    if provision is None:
                        provision = await self.store.create_provision(
                            session,
                            owner_id=intent.owner_id,
                            product_type=product_type,
                            submission_key=intent.submission_key,
                            **fields,
                        )
                        created.append(provision.id)
                    else:
                        await self.store.update_provision(
                            session, provision.id,
                            submission_key=intent.submission_key,
                            **fields,
                        )
                    ids[product_type] = provision.id

                if EMAIL_INFRA in ids and OUTREACH_TOOLS in ids:
                    await self.store.update_provision(
                        session, ids[OUTREACH_TOOLS], linked_provision_id=ids[EMAIL_INFRA],
                    )
        except SubmissionError:
            raise
        except Exception as e:
            logger.exception("Provision creation failed for owner %s", intent.owner_id)
            raise SubmissionError(PROVISION, f"Failed to create provision: {_describe(e)}") from e

        logger.info(
            "Provisions ready for checkout",
            extra={"owner_id": intent.owner_id, "provision_ids": list(ids.values())},
        )
        return ids, created

    async def _validate_email_infra(self, session, intent: PurchaseIntent) -> Any:
        if not intent.tier_id:
            raise SubmissionError(VALIDATION, "Select a tier")
        try:
            tier = await self.tier_service.require_active_tier(session, intent.tier_id)
        except InfraError as e:
            raise SubmissionError(VALIDATION, e.message) from e
        if len(intent.domains) != tier.domain_count:
            raise SubmissionError(
                VALIDATION,
                f"Select exactly {tier.domain_count} domains ({len(intent.domains)} selected)",
            )
        if len({d.domain_name.lower() for d in intent.domains}) != len(intent.domains):
            raise SubmissionError(VALIDATION, "Each domain can only be selected once")
        if any(not d.available for d in intent.domains):
            raise SubmissionError(VALIDATION, "Only available domains can be purchased")
        if not patterns_complete(intent.mailbox_pattern_1, intent.mailbox_pattern_2):
            raise SubmissionError(VALIDATION, "Both mailbox patterns are required and must be valid")
        return tier

    async def _reusable(
        self,
        session,
        intent: PurchaseIntent,
        product_type: str,
        current: dict[str, ProvisionModel],
    ) -> Optional[ProvisionModel]:
        """The unpaid provision this submission should reuse, if any."""
        previous = await self.store.get_by_submission_key(
            session, intent.owner_id, product_type, intent.submission_key,
        )
        if previous is not None and previous.status != PENDING_PAYMENT:
            raise SubmissionError(VALIDATION, "This purchase has already been completed")
        if previous is not None:
            return previous

        existing = current.get(product_type)
        if existing is None:
            return None
        if existing.status == PENDING_PAYMENT:
            return existing
        raise SubmissionError(
            VALIDATION,
            f"You already have {product_type.replace('_', ' ')} ({existing.status})",
        )

    # ── Stage 2: domains ──

    async def _create_domains(
        self, intent: PurchaseIntent, provision_id: str, created: list[str]
    ) -> None:
        try:
            async with self.db.get_session() as session:
                provision = await self.store.require_provision(session, provision_id)
                await self.store.replace_domains(session, provision, [
                    {
                        "domain_name": d.domain_name,
                        "service_provider": d.service_provider or intent.service_provider,
                        "domain_price": d.price_cents,
                    }
                    for d in intent.domains
                ])
        except Exception as e:
            logger.exception("Domain creation failed for provision %s", provision_id)
            await self._discard(created)
            raise SubmissionError(DOMAINS, f"Failed to create domain records: {_describe(e)}") from e

    async def _discard(self, provision_ids: list[str]) -> None:
        if not provision_ids:
            return
        try:
            async with self.db.get_session() as session:
                for provision_id in provision_ids:
                    await self.store.delete_provision(session, provision_id)
        except Exception:
            logger.exception("Could not remove provisions %s after a failed submission", provision_ids)

    # ── Stage 3: checkout ──

    async def _create_checkout(self, intent: PurchaseIntent, provision_ids: list[str]) -> str:
        try:
            async with self.db.get_session() as session:
                tier = None
                if intent.includes_email_infra:
                    tier = await self.tier_service.require_active_tier(session, intent.tier_id)
                outreach_pricing = None
                if intent.includes_outreach:
                    outreach_pricing = await self.tier_service.get_outreach_pricing(session)
                    if outreach_pricing is None:
                        raise SubmissionError(CHECKOUT, "Outreach pricing is not configured")

            checkout = await self.gateway.create_session(CheckoutRequest(
                owner_id=intent.owner_id,
                provision_ids=provision_ids,
                tier=tier,
                outreach_pricing=outreach_pricing,
            ))
        except SubmissionError:
            raise
        except Exception as e:
            logger.error("Checkout creation failed for %s: %s", provision_ids, e)
            raise SubmissionError(CHECKOUT, f"Failed to create checkout session: {_describe(e)}") from e

        try:
            async with self.db.get_session() as session:
                for provision_id in provision_ids:
                    await self.store.update_provision(
                        session, provision_id, stripe_checkout_session_id=checkout.session_id,
                    )
        except InfraError as e:
            logger.warning("Could not record checkout session %s: %s", checkout.session_id, e.message)

        return checkout.url


def _describe(error: Exception) -> str:
    if isinstance(error, InfraError) and error.message:
        return error.message
    return str(error) or error.__class__.__name__
