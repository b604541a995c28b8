# pipapal/services/collections.py
from datetime import datetime, timezone
from typing import List, Optional

from pipapal.core.errors import InvalidState, NotFound, Unauthorized
from pipapal.core.policy import REQUESTER_ROLES
from pipapal.core.states import INTAKE_STATES, TERMINAL_STATES, CollectionStatus
from pipapal.models.collection import CollectionCreate
from pipapal.models.user import Actor
from pipapal.services.impact import record_activity

# fields a requester may edit before the pickup is claimed
REQUESTER_FIELDS = frozenset({
    "waste_type", "waste_description", "waste_amount",
    "scheduled_date", "address", "location", "notes",
})
# fields the assigned collector may edit while the pickup is live
COLLECTOR_FIELDS = frozenset({"notes", "waste_amount"})
# a requester cancelling a claimed pickup may still leave a note
CANCEL_FIELDS = frozenset({"notes"})

MARKETPLACE_STATES = frozenset({CollectionStatus.IN_PROGRESS, CollectionStatus.COMPLETED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # naive datetimes from clients are taken as UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def serialize(doc: dict) -> dict:
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


def is_unassigned_intake(doc: dict) -> bool:
    return doc.get("collector_id") is None and CollectionStatus(doc["status"]) in INTAKE_STATES


async def create_collection(repo, data: CollectionCreate, actor: Actor) -> dict:
    if actor.role not in REQUESTER_ROLES:
        raise Unauthorized("Only households and organizations can request pickups")

    now = utcnow()
    status = CollectionStatus(data.status)
    doc = {
        "requester_id": actor.id,
        "collector_id": None,
        "status": status.value,
        "waste_type": data.waste_type,
        "waste_description": data.waste_description,
        "waste_amount": data.waste_amount,
        "scheduled_date": as_utc(data.scheduled_date),
        "completed_date": None,
        "address": data.address,
        "location": data.location.model_dump() if data.location else None,
        "notes": data.notes,
        "version": 1,
        "history": [{
            "at": now, "by_user": actor.id,
            "from_status": None, "to_status": status.value, "note": "created",
        }],
        "created_at": now,
        "updated_at": now,
    }
    saved = await repo.insert_collection(doc)
    await record_activity(
        repo, actor.id, "collection_scheduled",
        f"Scheduled a {data.waste_type} waste collection",
    )
    return saved


def can_view(doc: dict, actor: Actor) -> bool:
    if actor.role == "admin" or doc["requester_id"] == actor.id:
        return True
    if actor.role == "collector":
        return doc.get("collector_id") == actor.id or is_unassigned_intake(doc)
    if actor.role == "recycler":
        return CollectionStatus(doc["status"]) in MARKETPLACE_STATES
    return False


async def get_collection(repo, collection_id: str, actor: Actor) -> dict:
    doc = await repo.get_collection(collection_id)
    if doc is None:
        raise NotFound("Collection not found")
    if not can_view(doc, actor):
        raise Unauthorized("You don't have access to this collection")
    return doc


async def list_mine(repo, actor: Actor, status: Optional[str] = None) -> List[dict]:
    if actor.role == "collector":
        return await repo.list_collections(collector_id=actor.id, status=status)
    if actor.role == "recycler":
        return await repo.list_collections(status=status or CollectionStatus.COMPLETED.value)
    if actor.role == "admin":
        return await repo.list_collections(status=status)
    return await repo.list_collections(requester_id=actor.id, status=status)


async def list_upcoming(repo, actor: Actor) -> List[dict]:
    return await repo.list_upcoming(actor.id, utcnow())


async def list_available(repo) -> List[dict]:
    return await repo.list_unassigned_scheduled()


async def list_completed_for_collector(repo, collector_id: str, actor: Actor) -> List[dict]:
    if actor.role != "admin" and actor.id != collector_id:
        raise Unauthorized("Collectors can only list their own completed collections")
    return await repo.list_collections(collector_id=collector_id, status=CollectionStatus.COMPLETED.value)


def editable_fields(doc: dict, actor: Actor) -> frozenset:
    """Descriptive fields ``actor`` may change on ``doc`` as it stands now."""
    if doc["requester_id"] == actor.id:
        if not is_unassigned_intake(doc):
            raise InvalidState("Collection details are locked once a collector has claimed it")
        return REQUESTER_FIELDS
    if actor.role == "collector" and doc.get("collector_id") == actor.id:
        if CollectionStatus(doc["status"]) in TERMINAL_STATES:
            raise InvalidState(f"Collection is {doc['status']}")
        return COLLECTOR_FIELDS
    raise Unauthorized("You don't have ownership of this collection")


def check_changes(changes: dict, allowed: frozenset) -> dict:
    changes = {k: v for k, v in changes.items() if k not in ("status", "collector_id")}
    forbidden = set(changes) - allowed
    if forbidden:
        raise Unauthorized(f"Not allowed to edit: {', '.join(sorted(forbidden))}")
    if "scheduled_date" in changes:
        changes["scheduled_date"] = as_utc(changes["scheduled_date"])
    return changes


async def update_details(repo, collection_id: str, changes: dict, actor: Actor) -> dict:
    """Apply descriptive edits. Last writer wins; status and collector are never touched here."""
    doc = await repo.get_collection(collection_id)
    if doc is None:
        raise NotFound("Collection not found")

    changes = {k: v for k, v in changes.items() if k not in ("status", "collector_id")}
    if not changes:
        return doc

    changes = check_changes(changes, editable_fields(doc, actor))
    changes["updated_at"] = utcnow()

    updated = await repo.update_collection(collection_id, changes)
    if updated is None:
        raise NotFound("Collection not found")
    return updated
