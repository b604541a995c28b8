# pipapal/services/interests.py
from typing import List

from pipapal.core.errors import InvalidState, InvalidTransition, NotFound, Unauthorized
from pipapal.core.states import INTEREST_TRANSITIONS, InterestStatus, can_transition_interest
from pipapal.models.interest import InterestCreate
from pipapal.models.user import Actor
from pipapal.services.collections import MARKETPLACE_STATES, serialize, utcnow


async def express_interest(repo, data: InterestCreate, actor: Actor) -> dict:
    if actor.role != "recycler":
        raise Unauthorized("Only recyclers can express interest in materials")

    collection = await repo.get_collection(data.collection_id)
    if collection is None:
        raise NotFound("Collection not found")
    if collection["status"] not in {s.value for s in MARKETPLACE_STATES}:
        raise InvalidState("Materials are only offered from in-progress or completed collections")

    now = utcnow()
    return await repo.insert_interest({
        "collection_id": data.collection_id,
        "recycler_id": actor.id,
        "amount_requested": data.amount_requested,
        "price_per_kg": data.price_per_kg,
        "message": data.message,
        "status": InterestStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    })


async def change_interest_status(repo, interest_id: str, status: InterestStatus, actor: Actor) -> dict:
    status = InterestStatus(status)
    interest = await repo.get_interest(interest_id)
    if interest is None:
        raise NotFound("Interest not found")
    collection = await repo.get_collection(interest["collection_id"])
    if collection is None:
        raise NotFound("Collection not found")

    src = InterestStatus(interest["status"])
    if status not in INTEREST_TRANSITIONS[src]:
        raise InvalidTransition(f"Transition {src.value} -> {status.value} not allowed")
    if not can_transition_interest(src, status, collection.get("collector_id") == actor.id):
        raise Unauthorized("Only the collector of this collection can respond to interests")

    updated = await repo.update_interest(
        interest_id,
        {"status": status.value, "updated_at": utcnow()},
        expected={"status": src.value},
    )
    if updated is None:
        raise InvalidTransition("Interest was updated by another request; refresh and retry")
    return updated


def _recycler_summary(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "username": user["username"],
        "full_name": user["full_name"],
        "email": user["email"],
        "phone": user.get("phone"),
    }


def _collection_summary(c: dict) -> dict:
    return {
        "id": str(c["_id"]),
        "waste_type": c["waste_type"],
        "waste_amount": c.get("waste_amount"),
        "address": c["address"],
    }


async def list_for_collector(repo, collector_id: str, actor: Actor) -> List[dict]:
    """Interests in any of the collector's collections, with recycler and collection summaries."""
    if actor.role != "admin" and actor.id != collector_id:
        raise Unauthorized("Collectors can only list interests in their own collections")

    collections = {c["_id"]: c for c in await repo.list_collections(collector_id=collector_id)}
    if not collections:
        return []

    users: dict = {}
    out = []
    for interest in await repo.list_interests(collection_ids=list(collections)):
        rid = interest["recycler_id"]
        if rid not in users:
            users[rid] = await repo.get_user(rid)
        item = serialize(interest)
        item["collection"] = _collection_summary(collections[interest["collection_id"]])
        item["recycler"] = _recycler_summary(users[rid]) if users[rid] else None
        out.append(item)
    return out


async def list_for_recycler(repo, actor: Actor) -> List[dict]:
    return await repo.list_interests(recycler_id=actor.id)
