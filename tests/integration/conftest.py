"""API-level fixtures: seed through the app's own singletons."""

import pytest

from gtm_infra.wizard.submission import CheckoutSubmitter


@pytest.fixture
def db(client):
    from gtm_infra.deps import get_db
    return get_db()


@pytest.fixture
def store(client):
    from gtm_infra.deps import get_store
    return get_store()


@pytest.fixture
def tier_service(client):
    from gtm_infra.deps import get_tier_service
    return get_tier_service()


@pytest.fixture
def wired(engine, db, store, tier_service, checkout_gateway):
    """Swap vendor-backed singletons for the in-memory fakes."""
    import gtm_infra.deps as deps

    deps._engine = engine
    deps._submitter = CheckoutSubmitter(db, store, tier_service, checkout_gateway)
    return deps
