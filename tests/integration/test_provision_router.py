"""Integration tests for owner views, progress and pipeline runs."""

from gtm_infra.provisions.models import OUTREACH_TOOLS


class TestOwnerView:
    async def test_new_owner_sees_wizard(self, client):
        resp = await client.get("/owners/nobody/view")
        assert resp.status_code == 200
        data = resp.json()
        assert data["view"] == "wizard"
        assert data["missing_products"] == ["email_infra", "outreach_tools"]

    async def test_provisioning_owner_sees_progress(self, client, make_provision):
        await make_provision()
        data = (await client.get("/owners/owner-1/view")).json()
        assert data["view"] == "progress"
        assert data["aggregate"]["any_provisioning"] is True
        assert [d["domain_name"] for d in data["provisions"][0]["domains"]] == ["acme.com", "acmehq.com"]

    async def test_failed_owner_sees_failure(self, client, make_provision):
        provision_id = await make_provision(status="failed")
        data = (await client.get("/owners/owner-1/view")).json()
        assert data["view"] == "failure"
        assert data["failed_provision"]["id"] == provision_id

    async def test_unpaid_owner_gets_prefill(self, client, make_provision):
        provision_id = await make_provision(status="pending_payment", submission_key="key-abcdefgh")
        data = (await client.get("/owners/owner-1/view")).json()
        assert data["view"] == "wizard_prefilled"
        assert [p["id"] for p in data["prefill_from"]] == [provision_id]

    async def test_list_owner_provisions(self, client, make_provision):
        await make_provision()
        await make_provision(product_type=OUTREACH_TOOLS)
        resp = await client.get("/owners/owner-1/provisions")
        assert resp.status_code == 200
        assert {p["product_type"] for p in resp.json()} == {"email_infra", "outreach_tools"}


class TestProgress:
    async def test_owner_progress_before_run(self, client, make_provision):
        await make_provision()
        data = (await client.get("/owners/owner-1/progress")).json()
        section = data["sections"][0]
        assert section["product_type"] == "email_infra"
        assert [s["status"] for s in section["steps"]] == ["pending"] * 6
        assert data["aggregate"]["any_provisioning"] is True

    async def test_provision_progress_missing(self, client):
        resp = await client.get("/provisions/missing/progress")
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"

    async def test_log_missing(self, client):
        resp = await client.get("/provisions/missing/log")
        assert resp.status_code == 404


class TestRunEndpoint:
    async def test_run_completes_pipeline(self, client, admin_headers, make_provision, wired):
        provision_id = await make_provision()

        resp = await client.post(f"/provisions/{provision_id}/run", headers=admin_headers)
        assert resp.status_code == 202
        assert resp.json() == {"provision_id": provision_id, "scheduled": True}

        progress = (await client.get(f"/provisions/{provision_id}/progress")).json()
        assert progress["status"] == "active"
        assert progress["is_provisioning"] is False
        assert [s["status"] for s in progress["steps"]] == ["completed"] * 6

        log = (await client.get(f"/provisions/{provision_id}/log")).json()
        assert (log[0]["step"], log[0]["name"], log[0]["status"]) == (
            1, "Creating workspace account", "in_progress",
        )
        assert log[-1]["status"] == "completed"

    async def test_run_requires_admin(self, client, make_provision):
        provision_id = await make_provision()
        resp = await client.post(f"/provisions/{provision_id}/run", headers={"X-Infra-Api-Key": "nope"})
        assert resp.status_code == 403

    async def test_run_missing(self, client, admin_headers):
        resp = await client.post("/provisions/missing/run", headers=admin_headers)
        assert resp.status_code == 404

    async def test_run_unpaid_conflicts(self, client, admin_headers, make_provision):
        provision_id = await make_provision(status="pending_payment")
        resp = await client.post(f"/provisions/{provision_id}/run", headers=admin_headers)
        assert resp.status_code == 409

    async def test_run_while_held_conflicts(self, client, admin_headers, db, store, make_provision):
        provision_id = await make_provision()
        async with db.get_session() as session:
            await store.claim_run(session, provision_id, "worker-a", 900)
        resp = await client.post(f"/provisions/{provision_id}/run", headers=admin_headers)
        assert resp.status_code == 409
        progress = (await client.get(f"/provisions/{provision_id}/progress")).json()
        assert [s["status"] for s in progress["steps"]] == ["pending"] * 6
