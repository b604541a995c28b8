import httpx
import pytest
from httpx import AsyncClient

from pipapal.core.events import sign
from pipapal.services.claims import claim
from pipapal.services.webhook_worker import SIGNATURE_HEADER, process_next

from conftest import auth_headers, make_user, schedule_pickup

pytestmark = pytest.mark.anyio


async def test_events_fan_out_to_enabled_hooks(repo, household, collector_a):
    await repo.insert_webhook({"url": "https://hooks.example.com/a", "enabled": True})
    await repo.insert_webhook({"url": "https://hooks.example.com/off", "enabled": False})

    doc = await schedule_pickup(repo, household)
    await claim(repo, doc["_id"], collector_a)

    queued = list(repo.outbox.values())
    assert [q["target"] for q in queued] == ["https://hooks.example.com/a"]
    assert queued[0]["body"]["data"]["to_status"] == "confirmed"
    assert queued[0]["sig"] == sign(queued[0]["body"])


async def test_worker_delivers_signed_body(repo, household, collector_a):
    await repo.insert_webhook({"url": "https://hooks.example.com/a", "enabled": True})
    doc = await schedule_pickup(repo, household)
    await claim(repo, doc["_id"], collector_a)

    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(204)

    assert await process_next(repo, transport=httpx.MockTransport(handler)) is True
    assert await process_next(repo, transport=httpx.MockTransport(handler)) is False

    rec = next(iter(repo.outbox.values()))
    assert rec["status"] == "delivered"
    assert seen[0].headers[SIGNATURE_HEADER] == rec["sig"]


async def test_worker_backs_off_on_failure(repo, household, collector_a):
    await repo.insert_webhook({"url": "https://hooks.example.com/a", "enabled": True})
    doc = await schedule_pickup(repo, household)
    await claim(repo, doc["_id"], collector_a)

    await process_next(repo, transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    rec = next(iter(repo.outbox.values()))
    assert rec["status"] == "pending"
    assert rec["attempts"] == 1
    # rescheduled into the future, so nothing is due right now
    assert await process_next(repo) is False


async def test_worker_survives_unexpected_errors(repo, household, collector_a):
    await repo.insert_webhook({"url": "https://hooks.example.com/a", "enabled": True})
    doc = await schedule_pickup(repo, household)
    await claim(repo, doc["_id"], collector_a)

    def broken(request: httpx.Request):
        raise RuntimeError("boom")

    assert await process_next(repo, transport=httpx.MockTransport(broken)) is True

    rec = next(iter(repo.outbox.values()))
    assert rec["status"] == "pending"
    assert rec["attempts"] == 1


async def test_webhook_admin_endpoints(test_client: AsyncClient, repo, household):
    admin = await make_user(repo, "root", "admin")
    headers = auth_headers(admin)

    r = await test_client.post("/api/webhooks", headers=headers, json={"url": "https://hooks.example.com/x"})
    assert r.status_code == 201, r.text
    hook_id = r.json()["id"]

    hooks = (await test_client.get("/api/webhooks", headers=headers)).json()
    assert [h["url"] for h in hooks] == ["https://hooks.example.com/x"]

    assert (await test_client.get("/api/webhooks", headers=auth_headers(household))).status_code == 403
    assert (await test_client.delete(f"/api/webhooks/{hook_id}", headers=headers)).json() == {"ok": True}
    assert (await test_client.delete(f"/api/webhooks/{hook_id}", headers=headers)).status_code == 404
