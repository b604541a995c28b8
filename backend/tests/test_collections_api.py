from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import auth_headers, make_user

pytestmark = pytest.mark.anyio


def _pickup(**kw):
    body = {
        "waste_type": "plastic",
        "scheduled_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "address": "Ngong Road, Nairobi",
        "notes": "Gate code 1234",
    }
    body.update(kw)
    return body


async def _household_headers(ac: AsyncClient):
    r = await ac.post("/api/auth/register", json={
        "username": "wanjiru",
        "password": "secret123",
        "full_name": "Wanjiru Mwangi",
        "email": "wanjiru@example.com",
        "role": "household",
    })
    assert r.status_code == 201, r.text
    tok = (await ac.post("/api/auth/token", data={"username": "wanjiru", "password": "secret123"})).json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}


async def test_full_pickup_flow(test_client: AsyncClient, collector_a, collector_b):
    home = await _household_headers(test_client)
    a, b = auth_headers(collector_a), auth_headers(collector_b)

    r = await test_client.post("/api/collections", headers=home, json=_pickup())
    assert r.status_code == 201, r.text
    pickup = r.json()
    assert pickup["status"] == "scheduled" and pickup["collector_id"] is None
    cid = pickup["id"]

    available = (await test_client.get("/api/collections/available", headers=a)).json()
    assert [c["id"] for c in available] == [cid]

    r = await test_client.post(f"/api/collections/{cid}/claim", headers=a)
    assert r.status_code == 200, r.text
    assert r.json()["collector_id"] == collector_a.id

    r = await test_client.post(f"/api/collections/{cid}/claim", headers=b)
    assert r.status_code == 409
    assert r.json()["error"] == "already_claimed"
    assert (await test_client.get("/api/collections/available", headers=b)).json() == []

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "in_progress"})
    assert r.json()["status"] == "in_progress"

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "completed"})
    assert r.status_code == 422
    assert r.json()["error"] == "missing_required_field"

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "completed", "waste_amount": 12.5})
    assert r.status_code == 200, r.text
    done = r.json()
    assert done["status"] == "completed"
    assert done["waste_amount"] == 12.5
    assert done["completed_date"] is not None

    impact = (await test_client.get("/api/impact", headers=home)).json()
    assert impact["water_saved"] == 125
    assert impact["co2_reduced"] == 31.25

    me = (await test_client.get("/api/auth/me", headers=home)).json()
    assert me["sustainability_score"] == 63

    completed = (await test_client.get(f"/api/collections/collector/{collector_a.id}/completed", headers=a)).json()
    assert [c["id"] for c in completed] == [cid]


async def test_patch_confirmed_claims_for_collector(test_client: AsyncClient, repo, household, collector_a):
    r = await test_client.post("/api/collections", headers=auth_headers(household), json=_pickup(status="pending"))
    cid = r.json()["id"]

    r = await test_client.patch(f"/api/collections/{cid}", headers=auth_headers(collector_a), json={"status": "confirmed"})
    assert r.status_code == 200, r.text
    assert r.json()["collector_id"] == collector_a.id
    assert r.json()["status"] == "confirmed"


async def test_cancel_then_collector_is_rejected(test_client: AsyncClient, household, collector_a):
    home, a = auth_headers(household), auth_headers(collector_a)
    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]
    await test_client.post(f"/api/collections/{cid}/claim", headers=a)

    r = await test_client.post(f"/api/collections/{cid}/transition", headers=home, json={"status": "cancelled"})
    assert r.json()["status"] == "cancelled"

    r = await test_client.post(f"/api/collections/{cid}/transition", headers=a, json={"status": "in_progress"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"


async def test_details_lock_after_claim(test_client: AsyncClient, household, collector_a):
    home, a = auth_headers(household), auth_headers(collector_a)
    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]

    r = await test_client.patch(f"/api/collections/{cid}", headers=home, json={"address": "Kilimani, Nairobi"})
    assert r.json()["address"] == "Kilimani, Nairobi"

    await test_client.post(f"/api/collections/{cid}/claim", headers=a)
    r = await test_client.patch(f"/api/collections/{cid}", headers=home, json={"address": "Elsewhere"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_state"

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"notes": "Bags by the gate"})
    assert r.json()["notes"] == "Bags by the gate"

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"address": "Elsewhere"})
    assert r.status_code == 403


async def test_access_rules(test_client: AsyncClient, repo, household, collector_a):
    home = auth_headers(household)
    assert (await test_client.get("/api/collections")).status_code == 401

    r = await test_client.post("/api/collections", headers=auth_headers(collector_a), json=_pickup())
    assert r.status_code == 403

    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]
    stranger = await make_user(repo, "stranger", "household")
    r = await test_client.get(f"/api/collections/{cid}", headers=auth_headers(stranger))
    assert r.status_code == 403
    assert r.json()["error"] == "unauthorized"

    r = await test_client.get("/api/collections/unknown", headers=home)
    assert r.status_code == 404

    r = await test_client.post("/api/collections", headers=home, json=_pickup(status="confirmed"))
    assert r.status_code == 422


async def test_upcoming_excludes_cancelled(test_client: AsyncClient, household):
    home = auth_headers(household)
    soon = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]
    later = (await test_client.post("/api/collections", headers=home, json=_pickup(
        scheduled_date=(datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
    ))).json()["id"]
    dropped = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]
    await test_client.post(f"/api/collections/{dropped}/transition", headers=home, json={"status": "cancelled"})

    upcoming = (await test_client.get("/api/collections/upcoming", headers=home)).json()
    assert [c["id"] for c in upcoming] == [soon, later]

    mine = (await test_client.get("/api/collections", headers=home, params={"status": "cancelled"})).json()
    assert [c["id"] for c in mine] == [dropped]


async def test_material_interest_endpoints(test_client: AsyncClient, household, collector_a, recycler):
    home, a, rec = auth_headers(household), auth_headers(collector_a), auth_headers(recycler)
    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]
    await test_client.post(f"/api/collections/{cid}/claim", headers=a)
    await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "in_progress"})

    r = await test_client.post("/api/material-interests", headers=rec, json={
        "collection_id": cid, "amount_requested": 5, "price_per_kg": 20,
    })
    assert r.status_code == 201, r.text
    iid = r.json()["id"]

    rows = (await test_client.get(f"/api/material-interests/collector/{collector_a.id}", headers=a)).json()
    assert rows[0]["recycler"]["username"] == "greencycle"

    r = await test_client.patch(f"/api/material-interests/{iid}", headers=a, json={"status": "accepted"})
    assert r.json()["status"] == "accepted"

    r = await test_client.patch(f"/api/material-interests/{iid}", headers=rec, json={"status": "completed"})
    assert r.status_code == 403

    mine = (await test_client.get("/api/material-interests/mine", headers=rec)).json()
    assert [i["status"] for i in mine] == ["accepted"]


async def test_rejected_status_change_keeps_details(test_client: AsyncClient, repo, household, collector_a):
    home, a = auth_headers(household), auth_headers(collector_a)
    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]

    r = await test_client.patch(f"/api/collections/{cid}", headers=home, json={"address": "Changed", "status": "in_progress"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"

    await test_client.post(f"/api/collections/{cid}/claim", headers=a)
    await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "in_progress"})
    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"notes": "Weighed twice", "status": "completed"})
    assert r.status_code == 422

    doc = await repo.get_collection(cid)
    assert doc["address"] == "Ngong Road, Nairobi"
    assert doc["notes"] == "Gate code 1234"
    assert doc["status"] == "in_progress"
    assert doc["version"] == 3


async def test_details_and_status_are_one_write(test_client: AsyncClient, repo, household, collector_a):
    home, a = auth_headers(household), auth_headers(collector_a)
    cid = (await test_client.post("/api/collections", headers=home, json=_pickup())).json()["id"]

    r = await test_client.patch(f"/api/collections/{cid}", headers=a, json={"status": "confirmed", "notes": "Coming by 10am"})
    assert r.status_code == 200, r.text
    assert r.json()["notes"] == "Coming by 10am"
    assert r.json()["version"] == 2

    r = await test_client.patch(f"/api/collections/{cid}", headers=home, json={"notes": "Moved house", "status": "cancelled"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"
    assert r.json()["notes"] == "Moved house"
    assert r.json()["version"] == 3

    r = await test_client.patch(f"/api/collections/{cid}", headers=home, json={"address": "Elsewhere"})
    assert r.status_code == 409
