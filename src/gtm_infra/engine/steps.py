"""Fixed provisioning step sequences per product type.

Step numbers are scoped to their product: step 1 of ``outreach_tools`` is
looked up as ``(outreach_tools, 1)`` and never as a continuation of the
``email_infra`` numbering.
"""

from dataclasses import dataclass

from gtm_infra.provisions.models import EMAIL_INFRA, OUTREACH_TOOLS


@dataclass(frozen=True)
class StepDefinition:
    number: int
    name: str
    handler: str
    idempotent: bool = True
    requires_active_email_infra: bool = False


EMAIL_INFRA_STEPS: tuple[StepDefinition, ...] = (
    StepDefinition(1, "Creating workspace account", "create_workspace", idempotent=False),
    StepDefinition(2, "Purchasing domains", "purchase_domains", idempotent=False),
    StepDefinition(3, "Waiting for DNS setup", "wait_for_dns"),
    StepDefinition(4, "Setting up DMARC", "configure_dmarc"),
    StepDefinition(5, "Creating mailboxes", "create_mailboxes", idempotent=False),
    StepDefinition(6, "Email infrastructure ready", "complete"),
)

OUTREACH_TOOLS_STEPS: tuple[StepDefinition, ...] = (
    StepDefinition(1, "Creating outreach workspace", "create_workspace", idempotent=False),
    StepDefinition(
        2, "Exporting mailboxes to outreach workspace", "export_mailboxes",
        requires_active_email_infra=True,
    ),
    StepDefinition(
        3, "Configuring mailbox warmup", "configure_warmup",
        requires_active_email_infra=True,
    ),
    StepDefinition(4, "Creating LinkedIn lead list", "create_lead_list", idempotent=False),
    StepDefinition(5, "Outreach tools ready", "complete"),
)

STEP_SEQUENCES: dict[str, tuple[StepDefinition, ...]] = {
    EMAIL_INFRA: EMAIL_INFRA_STEPS,
    OUTREACH_TOOLS: OUTREACH_TOOLS_STEPS,
}

SECTION_TITLES: dict[str, str] = {
    EMAIL_INFRA: "Email Infrastructure",
    OUTREACH_TOOLS: "Outreach Tools",
}


def steps_for(product_type: str) -> tuple[StepDefinition, ...]:
    try:
        return STEP_SEQUENCES[product_type]
    except KeyError:
        raise ValueError(f"Unknown product type: {product_type!r}") from None
