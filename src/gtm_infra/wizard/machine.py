"""Purchase wizard state machine.

The step sequence depends on the products being bought: anything that
includes ``email_infra`` walks tier → domains → mailboxes → checkout, while
``outreach_tools`` on its own goes straight to checkout. ``next()`` only
moves forward when the current step is valid; ``back()`` works from every
step but the first.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from gtm_infra.common.exceptions import DomainAvailabilityError, WizardStateError
from gtm_infra.provisions.models import EMAIL_INFRA, PRODUCT_TYPES, SERVICE_PROVIDERS
from gtm_infra.wizard.domains import DomainAvailabilityClient, normalize_brand
from gtm_infra.wizard.patterns import generate_mailboxes, pattern_error, patterns_complete
from gtm_infra.wizard.schemas import DomainAvailability, PurchaseIntent

logger = logging.getLogger(__name__)

TIER = "tier"
DOMAINS = "domains"
MAILBOXES = "mailboxes"
CHECKOUT = "checkout"

EMAIL_INFRA_FLOW: tuple[str, ...] = (TIER, DOMAINS, MAILBOXES, CHECKOUT)
OUTREACH_ONLY_FLOW: tuple[str, ...] = (CHECKOUT,)


def step_sequence(products: Iterable[str]) -> tuple[str, ...]:
    return EMAIL_INFRA_FLOW if EMAIL_INFRA in set(products) else OUTREACH_ONLY_FLOW


@dataclass
class WizardState:
    owner_id: str
    products: tuple[str, ...]
    step_index: int = 0
    tier: Any = None
    selected_domains: list[DomainAvailability] = field(default_factory=list)
    service_provider: str = "GOOGLE"
    mailbox_pattern_1: str = ""
    mailbox_pattern_2: str = ""
    brand: str = ""
    available_domains: list[DomainAvailability] = field(default_factory=list)
    banner_error: Optional[str] = None
    submission_key: str = field(default_factory=lambda: uuid.uuid4().hex)


class WizardMachine:
    """Holds one wizard session's state and enforces its transitions."""

    def __init__(
        self,
        owner_id: str,
        products: Iterable[str] = (EMAIL_INFRA,),
        availability: Optional[DomainAvailabilityClient] = None,
        default_service_provider: str = "GOOGLE",
    ):
        products = tuple(p for p in PRODUCT_TYPES if p in set(products))
        if not products:
            raise WizardStateError("Select at least one product")
        self.availability = availability
        self.state = WizardState(
            owner_id=owner_id,
            products=products,
            service_provider=default_service_provider,
        )

    # ── Construction helpers ──

    @classmethod
    def prefilled(
        cls,
        provisions: Iterable[Any],
        tier: Any = None,
        availability: Optional[DomainAvailabilityClient] = None,
    ) -> "WizardMachine":
        """Rebuild a wizard from lingering ``pending_payment`` provisions.

        The previous submission key is reused so submitting again picks up
        the same provision rows instead of creating new ones.
        """
        provisions = list(provisions)
        if not provisions:
            raise WizardStateError("Nothing to pre-fill from")
        first = provisions[0]
        machine = cls(
            first.owner_id,
            products=[p.product_type for p in provisions],
            availability=availability,
            default_service_provider=first.service_provider,
        )
        state = machine.state
        if first.submission_key:
            state.submission_key = first.submission_key
        email_infra = next((p for p in provisions if p.product_type == EMAIL_INFRA), None)
        if email_infra is not None:
            state.tier = tier if tier is not None else email_infra.tier
            state.selected_domains = [
                DomainAvailability(
                    domain_name=d.domain_name,
                    status="AVAILABLE",
                    domain_price=d.domain_price / 100,
                    service_provider=d.service_provider,
                )
                for d in email_infra.domains
            ]
            state.mailbox_pattern_1 = email_infra.mailbox_pattern_1 or ""
            state.mailbox_pattern_2 = email_infra.mailbox_pattern_2 or ""
        machine.advance_to_first_incomplete()
        return machine

    @classmethod
    def for_missing_product(
        cls,
        owner_id: str,
        product_type: str,
        availability: Optional[DomainAvailabilityClient] = None,
        default_service_provider: str = "GOOGLE",
    ) -> "WizardMachine":
        """Wizard scoped to a product the owner has not bought yet."""
        if product_type not in PRODUCT_TYPES:
            raise WizardStateError(f"Unknown product type: {product_type!r}")
        return cls(
            owner_id,
            products=(product_type,),
            availability=availability,
            default_service_provider=default_service_provider,
        )

    # ── Navigation ──

    @property
    def steps(self) -> tuple[str, ...]:
        return step_sequence(self.state.products)

    @property
    def current_step(self) -> str:
        return self.steps[self.state.step_index]

    def is_step_valid(self, step: Optional[str] = None) -> bool:
        step = step or self.current_step
        state = self.state
        if step == TIER:
            return state.tier is not None
        if step == DOMAINS:
            return (
                state.tier is not None
                and len(state.selected_domains) == state.tier.domain_count
            )
        if step == MAILBOXES:
            return patterns_complete(state.mailbox_pattern_1, state.mailbox_pattern_2)
        if step == CHECKOUT:
            return True
        return False

    def can_go_next(self) -> bool:
        return self.state.step_index < len(self.steps) - 1 and self.is_step_valid()

    def can_go_back(self) -> bool:
        return self.state.step_index > 0

    def next(self) -> bool:
        if not self.can_go_next():
            return False
        self.state.step_index += 1
        return True

    def back(self) -> bool:
        if not self.can_go_back():
            return False
        self.state.step_index -= 1
        return True

    def advance_to_first_incomplete(self) -> str:
        while self.next():
            pass
        return self.current_step

    # ── Tier ──

    def select_tier(self, tier: Any) -> None:
        if EMAIL_INFRA not in self.state.products:
            raise WizardStateError("Tiers only apply to email infrastructure")
        self.state.tier = tier

    # ── Domains ──

    async def search_domains(self, brand: str) -> list[DomainAvailability]:
        """Fetch availability for a brand; failures become a dismissible banner."""
        if self.availability is None:
            raise WizardStateError("No domain availability service configured")
        token = normalize_brand(brand)
        self.state.brand = token
        if not token:
            return self.state.available_domains
        try:
            results = await self.availability.check(token, self.state.service_provider)
        except DomainAvailabilityError as e:
            self.state.banner_error = e.message
            return self.state.available_domains
        self.state.banner_error = None
        self.state.available_domains = results
        return results

    def dismiss_banner(self) -> None:
        self.state.banner_error = None

    def toggle_domain(self, domain: DomainAvailability) -> bool:
        """Select or deselect a domain. Returns ``False`` when the change is rejected."""
        state = self.state
        if not domain.available:
            return False
        for i, selected in enumerate(state.selected_domains):
            if selected.domain_name == domain.domain_name:
                del state.selected_domains[i]
                return True
        if state.tier is None or len(state.selected_domains) >= state.tier.domain_count:
            return False
        state.selected_domains.append(domain)
        return True

    def set_service_provider(self, provider: str, domain_name: Optional[str] = None) -> None:
        """Set the default provider, or override it for one selected domain."""
        if provider not in SERVICE_PROVIDERS:
            raise WizardStateError(f"Unknown service provider: {provider!r}")
        if domain_name is None:
            self.state.service_provider = provider
            return
        for i, selected in enumerate(self.state.selected_domains):
            if selected.domain_name == domain_name:
                self.state.selected_domains[i] = selected.model_copy(
                    update={"service_provider": provider}
                )
                return
        raise WizardStateError(f"Domain {domain_name} is not selected")

    # ── Mailboxes ──

    def set_patterns(
        self, pattern_1: Optional[str] = None, pattern_2: Optional[str] = None
    ) -> None:
        if pattern_1 is not None:
            self.state.mailbox_pattern_1 = pattern_1.strip()
        if pattern_2 is not None:
            self.state.mailbox_pattern_2 = pattern_2.strip()

    def mailbox_preview(self) -> list[str]:
        return generate_mailboxes(
            (d.domain_name for d in self.state.selected_domains),
            self.state.mailbox_pattern_1,
            self.state.mailbox_pattern_2,
        )

    def field_errors(self) -> dict[str, str]:
        """Inline messages for the current selections."""
        errors: dict[str, str] = {}
        state = self.state
        for name, pattern in (
            ("mailbox_pattern_1", state.mailbox_pattern_1),
            ("mailbox_pattern_2", state.mailbox_pattern_2),
        ):
            message = pattern_error(pattern)
            if message:
                errors[name] = message
        if state.tier is not None and len(state.selected_domains) != state.tier.domain_count:
            errors["domains"] = (
                f"Select exactly {state.tier.domain_count} domains "
                f"({len(state.selected_domains)} selected)"
            )
        return errors

    # ── Checkout ──

    def purchase_intent(self) -> PurchaseIntent:
        if self.current_step != CHECKOUT:
            raise WizardStateError("Purchase intent is only available at checkout")
        for step in self.steps:
            if not self.is_step_valid(step):
                raise WizardStateError(f"Step '{step}' is incomplete")
        state = self.state
        email_infra = EMAIL_INFRA in state.products
        return PurchaseIntent(
            owner_id=state.owner_id,
            products=list(state.products),
            submission_key=state.submission_key,
            tier_id=state.tier.id if email_infra else None,
            service_provider=state.service_provider,
            domains=list(state.selected_domains) if email_infra else [],
            mailbox_pattern_1=state.mailbox_pattern_1 if email_infra else None,
            mailbox_pattern_2=state.mailbox_pattern_2 if email_infra else None,
        )
