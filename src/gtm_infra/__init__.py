"""GTM-Infra: provisioning orchestrator for email and outreach infrastructure."""

from gtm_infra.client import InfraClient
from gtm_infra.wizard.patterns import generate_mailboxes, is_valid_pattern
from gtm_infra.lifecycle.views import route_view

__all__ = [
    "InfraClient",
    "generate_mailboxes",
    "is_valid_pattern",
    "route_view",
]
__version__ = "0.1.0"
