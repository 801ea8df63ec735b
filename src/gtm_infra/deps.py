"""Dependency injection singletons for GTM-Infra."""

from gtm_infra.checkout.gateway import StripeCheckoutGateway
from gtm_infra.common.config import get_settings
from gtm_infra.common.database import DatabaseManager
from gtm_infra.engine.heyreach_client import HeyReachClient
from gtm_infra.engine.pipelines import EmailInfraPipeline, OutreachPipeline
from gtm_infra.engine.plusvibe_client import PlusVibeClient
from gtm_infra.engine.service import ProvisioningEngine
from gtm_infra.engine.zapmail_client import ZapmailClient
from gtm_infra.progress.service import ProgressService
from gtm_infra.provisions.models import EMAIL_INFRA, OUTREACH_TOOLS
from gtm_infra.provisions.store import ProvisionStore
from gtm_infra.tiers.service import TierService
from gtm_infra.wizard.domains import DomainAvailabilityClient
from gtm_infra.wizard.submission import CheckoutSubmitter

_db: DatabaseManager | None = None
_tiers: TierService | None = None
_store: ProvisionStore | None = None
_progress: ProgressService | None = None
_engine: ProvisioningEngine | None = None
_availability: DomainAvailabilityClient | None = None
_checkout: StripeCheckoutGateway | None = None
_submitter: CheckoutSubmitter | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_tier_service() -> TierService:
    global _tiers
    if _tiers is None:
        _tiers = TierService()
    return _tiers


def get_store() -> ProvisionStore:
    global _store
    if _store is None:
        _store = ProvisionStore()
    return _store


def get_progress_service() -> ProgressService:
    global _progress
    if _progress is None:
        _progress = ProgressService(get_store())
    return _progress


def get_engine() -> ProvisioningEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        db = get_db()
        store = get_store()
        zapmail = ZapmailClient(
            settings.zapmail_base_url, settings.zapmail_api_key, timeout=settings.vendor_timeout,
        )
        plusvibe = PlusVibeClient(
            settings.plusvibe_base_url, settings.plusvibe_api_key, timeout=settings.vendor_timeout,
        )
        heyreach = HeyReachClient(
            settings.heyreach_base_url, settings.heyreach_api_key, timeout=settings.vendor_timeout,
        )
        _engine = ProvisioningEngine(
            settings,
            db,
            store,
            pipelines={
                EMAIL_INFRA: EmailInfraPipeline(db, store, zapmail),
                OUTREACH_TOOLS: OutreachPipeline(db, store, plusvibe, heyreach),
            },
        )
    return _engine


def get_availability_client() -> DomainAvailabilityClient:
    global _availability
    if _availability is None:
        settings = get_settings()
        _availability = DomainAvailabilityClient(
            settings.domain_check_url,
            timeout=settings.domain_check_timeout,
            default_service_provider=settings.default_service_provider,
        )
    return _availability


def get_checkout_gateway() -> StripeCheckoutGateway:
    global _checkout
    if _checkout is None:
        settings = get_settings()
        _checkout = StripeCheckoutGateway(
            settings.stripe_secret_key,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )
    return _checkout


def get_submitter() -> CheckoutSubmitter:
    global _submitter
    if _submitter is None:
        _submitter = CheckoutSubmitter(
            get_db(), get_store(), get_tier_service(), get_checkout_gateway(),
        )
    return _submitter


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _tiers, _store, _progress, _engine, _availability, _checkout, _submitter
    _db = None
    _tiers = None
    _store = None
    _progress = None
    _engine = None
    _availability = None
    _checkout = None
    _submitter = None
