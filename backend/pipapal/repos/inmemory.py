# pipapal/repos/inmemory.py
import copy
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Optional, List, Dict

from pipapal.core.states import INTAKE_STATES, CollectionStatus

def _id() -> str:
    return uuid.uuid4().hex

def _out(doc: Optional[dict]) -> Optional[dict]:
    return copy.deepcopy(doc) if doc is not None else None

def _matches(doc: dict, expected: Optional[dict]) -> bool:
    return all(doc.get(k) == v for k, v in (expected or {}).items())

class InMemoryRepo:
    """Dict-backed repository for development and tests.

    Methods never await between reading and writing a record, so each
    conditional update is atomic with respect to other coroutines.
    """

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.collections: Dict[str, dict] = {}
        self.interests: Dict[str, dict] = {}
        self.impacts: Dict[str, dict] = {}
        self.activities: Dict[str, dict] = {}
        self.badges: Dict[str, dict] = {}
        self.events: Dict[str, dict] = {}
        self.webhooks: Dict[str, dict] = {}
        self.outbox: Dict[str, dict] = {}

    # Users
    async def create_user(self, doc: dict) -> dict:
        for u in self.users.values():
            if u["username"] == doc["username"] or u["email"] == doc["email"]:
                raise ValueError("Username or email exists")
        doc = {**doc, "_id": _id()}
        self.users[doc["_id"]] = doc
        return _out(doc)

    async def get_user(self, user_id: str) -> Optional[dict]:
        return _out(self.users.get(user_id))

    async def find_user_by_username(self, username: str) -> Optional[dict]:
        return _out(next((u for u in self.users.values() if u["username"] == username), None))

    async def increment_score(self, user_id: str, points: int) -> Optional[dict]:
        user = self.users.get(user_id)
        if user is None:
            return None
        user["sustainability_score"] = user.get("sustainability_score", 0) + points
        return _out(user)

    # Collections
    async def insert_collection(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.collections[doc["_id"]] = copy.deepcopy(doc)
        return _out(doc)

    async def get_collection(self, collection_id: str) -> Optional[dict]:
        return _out(self.collections.get(collection_id))

    async def update_collection(
        self,
        collection_id: str,
        patch: dict,
        expected: Optional[dict] = None,
        history: Optional[dict] = None,
    ) -> Optional[dict]:
        doc = self.collections.get(collection_id)
        if doc is None or not _matches(doc, expected):
            return None
        doc.update(copy.deepcopy(patch))
        doc["version"] = doc.get("version", 0) + 1
        if history is not None:
            doc.setdefault("history", []).append(copy.deepcopy(history))
        return _out(doc)

    async def list_collections(
        self,
        requester_id: Optional[str] = None,
        collector_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[dict]:
        vals = [
            c for c in self.collections.values()
            if (requester_id is None or c["requester_id"] == requester_id)
            and (collector_id is None or c.get("collector_id") == collector_id)
            and (status is None or c["status"] == status)
        ]
        vals.sort(key=lambda c: c["scheduled_date"], reverse=True)
        return [_out(c) for c in vals]

    async def list_upcoming(self, requester_id: str, now: datetime) -> List[dict]:
        vals = [
            c for c in self.collections.values()
            if c["requester_id"] == requester_id
            and c["scheduled_date"] >= now
            and c["status"] != CollectionStatus.CANCELLED.value
        ]
        vals.sort(key=lambda c: c["scheduled_date"])
        return [_out(c) for c in vals]

    async def list_unassigned_scheduled(self) -> List[dict]:
        intake = {s.value for s in INTAKE_STATES}
        vals = [c for c in self.collections.values() if c.get("collector_id") is None and c["status"] in intake]
        vals.sort(key=lambda c: c["scheduled_date"])
        return [_out(c) for c in vals]

    # Material interests
    async def insert_interest(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.interests[doc["_id"]] = copy.deepcopy(doc)
        return _out(doc)

    async def get_interest(self, interest_id: str) -> Optional[dict]:
        return _out(self.interests.get(interest_id))

    async def update_interest(self, interest_id: str, patch: dict, expected: Optional[dict] = None) -> Optional[dict]:
        doc = self.interests.get(interest_id)
        if doc is None or not _matches(doc, expected):
            return None
        doc.update(copy.deepcopy(patch))
        return _out(doc)

    async def list_interests(
        self,
        collection_ids: Optional[List[str]] = None,
        recycler_id: Optional[str] = None,
    ) -> List[dict]:
        vals = [
            i for i in self.interests.values()
            if (collection_ids is None or i["collection_id"] in collection_ids)
            and (recycler_id is None or i["recycler_id"] == recycler_id)
        ]
        vals.sort(key=lambda i: i["created_at"], reverse=True)
        return [_out(i) for i in vals]

    # Impact & activity
    async def insert_impact(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.impacts[doc["_id"]] = doc
        return _out(doc)

    async def total_impact(self, user_id: str) -> dict:
        totals = defaultdict(float)
        for imp in self.impacts.values():
            if imp["user_id"] != user_id:
                continue
            for k in ("water_saved", "co2_reduced", "trees_equivalent", "energy_conserved", "waste_amount"):
                totals[k] += imp.get(k) or 0
        return dict(totals)

    async def insert_activity(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.activities[doc["_id"]] = doc
        return _out(doc)

    async def list_activities(self, user_id: str, limit: int = 10) -> List[dict]:
        vals = [a for a in self.activities.values() if a["user_id"] == user_id]
        vals.sort(key=lambda a: a["created_at"], reverse=True)
        return [_out(a) for a in vals[:limit]]

    async def insert_badge(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.badges[doc["_id"]] = doc
        return _out(doc)

    async def list_badges(self, user_id: str) -> List[dict]:
        vals = [b for b in self.badges.values() if b["user_id"] == user_id]
        vals.sort(key=lambda b: b["awarded_at"], reverse=True)
        return [_out(b) for b in vals]

    # Events, webhooks & outbox
    async def insert_event(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.events[doc["_id"]] = doc
        return _out(doc)

    async def insert_webhook(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.webhooks[doc["_id"]] = doc
        return _out(doc)

    async def list_webhooks(self, enabled_only: bool = False) -> List[dict]:
        return [_out(h) for h in self.webhooks.values() if not enabled_only or h.get("enabled", True)]

    async def delete_webhook(self, hook_id: str) -> bool:
        return self.webhooks.pop(hook_id, None) is not None

    async def insert_outbox(self, doc: dict) -> dict:
        doc = {**doc, "_id": _id()}
        self.outbox[doc["_id"]] = doc
        return _out(doc)

    async def claim_outbox(self, now: datetime) -> Optional[dict]:
        for rec in self.outbox.values():
            if rec["status"] == "pending" and rec["next_try_at"] <= now:
                rec["status"] = "delivering"
                return _out(rec)
        return None

    async def update_outbox(self, rec_id: str, patch: dict) -> None:
        if rec_id in self.outbox:
            self.outbox[rec_id].update(patch)
