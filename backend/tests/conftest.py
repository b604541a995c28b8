# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

from pipapal.core.security import create_token, hash_password
from pipapal.deps import get_repo
from pipapal.main import app
from pipapal.models.collection import CollectionCreate
from pipapal.models.user import Actor
from pipapal.repos.inmemory import InMemoryRepo
from pipapal.services.collections import create_collection

@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"

@pytest.fixture
def repo():
    return InMemoryRepo()

@pytest.fixture
async def test_client(repo):
    app.dependency_overrides[get_repo] = lambda: repo
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.pop(get_repo, None)

async def make_user(repo, username: str, role: str) -> Actor:
    doc = await repo.create_user({
        "username": username,
        "password_hash": hash_password("secret"),
        "full_name": username.title(),
        "email": f"{username}@example.com",
        "role": role,
        "phone": "+254700000000",
        "sustainability_score": 0,
        "created_at": datetime.now(timezone.utc),
    })
    return Actor(id=doc["_id"], role=role)

def auth_headers(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_token(actor.id, actor.role)}"}

async def schedule_pickup(repo, requester: Actor, **overrides) -> dict:
    data = {
        "waste_type": "plastic",
        "scheduled_date": datetime.now(timezone.utc) + timedelta(days=2),
        "address": "12 Moi Avenue, Nairobi",
        **overrides,
    }
    return await create_collection(repo, CollectionCreate(**data), requester)

@pytest.fixture
async def household(repo):
    return await make_user(repo, "wanjiru", "household")

@pytest.fixture
async def collector_a(repo):
    return await make_user(repo, "otieno", "collector")

@pytest.fixture
async def collector_b(repo):
    return await make_user(repo, "kamau", "collector")

@pytest.fixture
async def recycler(repo):
    return await make_user(repo, "greencycle", "recycler")
