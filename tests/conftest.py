"""Shared test fixtures for GTM-Infra."""


import pytest
from httpx import ASGITransport, AsyncClient

from gtm_infra.common.config import InfraSettings
from gtm_infra.common.database import DatabaseManager
from gtm_infra.common.exceptions import TerminalStepError, TransientStepError
from gtm_infra.engine.pipelines import EmailInfraPipeline, OutreachPipeline
from gtm_infra.engine.service import ProvisioningEngine
from gtm_infra.provisions.models import EMAIL_INFRA, OUTREACH_TOOLS, PROVISIONING
from gtm_infra.provisions.store import ProvisionStore
from gtm_infra.tiers.service import TierService


API_KEY = "test-admin-api-key"


def make_settings(**overrides) -> InfraSettings:
    defaults = {
        "db_url": "sqlite+aiosqlite://",
        "api_key": API_KEY,
        "step_backoff_base": 0.0,
    }
    defaults.update(overrides)
    return InfraSettings(**defaults)


# ── Vendor fakes ──

class FakeZapmail:
    """In-memory stand-in for the email infrastructure provider."""

    def __init__(self):
        self.workspaces: dict[str, str] = {}
        self.domains: dict[str, str] = {}
        self.mailboxes: dict[str, dict[str, str]] = {}
        self.purchase_calls: list[str] = []
        self.dmarc: list[str] = []
        self.unavailable: set[str] = set()
        self.lose_purchase_response: set[str] = set()
        self.dns_checks_until_ready = 0
        self.dns_never_ready = False
        self.dns_checks = 0

    async def create_workspace(self, name, reference):
        workspace_id = f"ws-{len(self.workspaces) + 1}"
        self.workspaces[reference] = workspace_id
        return workspace_id

    async def find_workspace(self, reference):
        return self.workspaces.get(reference)

    async def purchase_domain(self, workspace_id, domain_name, service_provider):
        self.purchase_calls.append(domain_name)
        if domain_name in self.unavailable:
            raise TerminalStepError(f"Domain {domain_name} is no longer available")
        domain_id = f"dom-{domain_name}"
        self.domains[domain_name] = domain_id
        if domain_name in self.lose_purchase_response:
            self.lose_purchase_response.discard(domain_name)
            raise TransientStepError("Zapmail request timed out")
        return domain_id

    async def get_domain(self, workspace_id, domain_name):
        return self.domains.get(domain_name)

    async def check_dns(self, workspace_id, domain_id):
        self.dns_checks += 1
        if self.dns_never_ready:
            return False
        return self.dns_checks > self.dns_checks_until_ready

    async def configure_dmarc(self, workspace_id, domain_id):
        self.dmarc.append(domain_id)

    async def create_mailbox(self, workspace_id, domain_id, username):
        created = self.mailboxes.setdefault(domain_id, {})
        created[username] = f"mb-{username}@{domain_id}"
        return created[username]

    async def list_mailboxes(self, workspace_id, domain_id):
        return dict(self.mailboxes.get(domain_id, {}))


class FakePlusVibe:
    def __init__(self):
        self.workspaces: dict[str, dict] = {}
        self.imported: list[str] = []
        self.warmed: list[str] = []

    async def create_workspace(self, name, reference):
        workspace = {"id": f"pv-{len(self.workspaces) + 1}", "client_email": "client@plusvibe.test"}
        self.workspaces[reference] = workspace
        return workspace

    async def find_workspace(self, reference):
        return self.workspaces.get(reference)

    async def import_mailboxes(self, workspace_id, emails):
        self.imported.extend(emails)
        return len(emails)

    async def enable_warmup(self, workspace_id, emails):
        self.warmed.extend(emails)


class FakeHeyReach:
    def __init__(self):
        self.lists: dict[str, int] = {}

    async def create_lead_list(self, name, reference):
        list_id = 100 + len(self.lists) + 1
        self.lists[reference] = list_id
        return list_id

    async def find_lead_list(self, reference):
        return self.lists.get(reference)


class FakeCheckoutGateway:
    def __init__(self, fail: Exception | None = None):
        self.fail = fail
        self.requests = []

    async def create_session(self, request):
        self.requests.append(request)
        if self.fail is not None:
            raise self.fail
        from gtm_infra.checkout.gateway import CheckoutSession
        return CheckoutSession(
            url=f"https://checkout.stripe.test/{len(self.requests)}",
            session_id=f"cs_test_{len(self.requests)}",
        )


# ── Database-backed fixtures ──

@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def store():
    return ProvisionStore()


@pytest.fixture
def tier_service():
    return TierService()


@pytest.fixture
def zapmail():
    return FakeZapmail()


@pytest.fixture
def plusvibe():
    return FakePlusVibe()


@pytest.fixture
def heyreach():
    return FakeHeyReach()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def engine(settings, db, store, zapmail, plusvibe, heyreach, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return ProvisioningEngine(
        settings,
        db,
        store,
        pipelines={
            EMAIL_INFRA: EmailInfraPipeline(db, store, zapmail),
            OUTREACH_TOOLS: OutreachPipeline(db, store, plusvibe, heyreach),
        },
        sleep=fake_sleep,
    )


@pytest.fixture
def make_provision(db, store, tier_service):
    """Create a provision (optionally already paid) with its domain rows."""

    async def _make(
        owner_id="owner-1",
        product_type=EMAIL_INFRA,
        domains=("acme.com", "acmehq.com"),
        patterns=("tim", "tim.keen"),
        status=PROVISIONING,
        submission_key=None,
    ):
        async with db.get_session() as session:
            tier_id = None
            if product_type == EMAIL_INFRA:
                tier = await tier_service.get_by_slug(session, f"t{len(domains)}")
                if tier is None:
                    tier = await tier_service.create_tier(
                        session, slug=f"t{len(domains)}", name=f"{len(domains)} domains",
                        domain_count=len(domains),
                    )
                tier_id = tier.id
            provision = await store.create_provision(
                session,
                owner_id=owner_id,
                product_type=product_type,
                tier_id=tier_id,
                mailbox_pattern_1=patterns[0] if product_type == EMAIL_INFRA else None,
                mailbox_pattern_2=patterns[1] if product_type == EMAIL_INFRA else None,
                submission_key=submission_key,
            )
            if product_type == EMAIL_INFRA:
                await store.replace_domains(session, provision, [
                    {"domain_name": d, "domain_price": 1200} for d in domains
                ])
            if status != "pending_payment":
                await store.transition_status(session, provision.id, PROVISIONING)
            if status in ("active", "failed"):
                await store.transition_status(session, provision.id, status)
            return provision.id

    return _make


# ── API fixtures ──

@pytest.fixture
def app(monkeypatch):
    """Create a test app with in-memory DB."""
    monkeypatch.setenv("GTM_INFRA_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("GTM_INFRA_API_KEY", API_KEY)
    monkeypatch.setenv("GTM_INFRA_STRIPE_WEBHOOK_SECRET", "")

    # Clear caches and singletons so new env vars take effect
    from gtm_infra.common.config import get_settings
    get_settings.cache_clear()

    from gtm_infra.deps import reset_singletons
    reset_singletons()

    from gtm_infra.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from gtm_infra.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Infra-Api-Key": API_KEY}


@pytest.fixture
def checkout_gateway():
    return FakeCheckoutGateway()
