#!/usr/bin/env python3
"""Seed the database with the infrastructure tiers and outreach pricing.

Stripe price ids are read from GTM_INFRA_SEED_<SLUG>_SETUP_PRICE /
GTM_INFRA_SEED_<SLUG>_MONTHLY_PRICE (and GTM_INFRA_SEED_OUTREACH_*) when set.

Usage:
    python -m scripts.seed_tiers
    # or from project root:
    python scripts/seed_tiers.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from gtm_infra.common.config import get_settings
from gtm_infra.common.database import DatabaseManager
from gtm_infra.tiers.service import TierService

TIER_SEEDS = [
    {
        "slug": "starter",
        "name": "Starter",
        "domain_count": 3,
        "mailboxes_per_domain": 2,
        "setup_fee_cents": 19900,
        "monthly_fee_cents": 4900,
        "sort_order": 1,
    },
    {
        "slug": "growth",
        "name": "Growth",
        "domain_count": 5,
        "mailboxes_per_domain": 2,
        "setup_fee_cents": 29900,
        "monthly_fee_cents": 7900,
        "sort_order": 2,
    },
    {
        "slug": "scale",
        "name": "Scale",
        "domain_count": 10,
        "mailboxes_per_domain": 2,
        "setup_fee_cents": 49900,
        "monthly_fee_cents": 14900,
        "sort_order": 3,
    },
]

OUTREACH_SEED = {
    "setup_fee_cents": 9900,
    "monthly_fee_cents": 9900,
}


def _price_ids(name: str) -> dict[str, str | None]:
    prefix = f"GTM_INFRA_SEED_{name.upper()}"
    return {
        "stripe_setup_price_id": os.environ.get(f"{prefix}_SETUP_PRICE"),
        "stripe_monthly_price_id": os.environ.get(f"{prefix}_MONTHLY_PRICE"),
    }


async def seed_tiers() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = TierService()

    async with db.get_session() as session:
        for seed in TIER_SEEDS:
            existing = await svc.get_by_slug(session, seed["slug"])
            if existing:
                print(f"  [skip] {seed['slug']} ({seed['name']}) already exists")
                continue
            await svc.create_tier(session, **seed, **_price_ids(seed["slug"]))
            print(f"  [created] {seed['slug']} ({seed['name']}, {seed['domain_count']} domains)")

        if await svc.get_outreach_pricing(session) is None:
            await svc.create_outreach_pricing(session, **OUTREACH_SEED, **_price_ids("outreach"))
            print("  [created] outreach pricing")
        else:
            print("  [skip] outreach pricing already exists")

    await db.close()
    print(f"\nDone. {len(TIER_SEEDS)} tiers seeded.")


if __name__ == "__main__":
    asyncio.run(seed_tiers())
