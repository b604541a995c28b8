# pipapal/repos/mongo.py
from datetime import datetime
from typing import Optional, List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from pipapal.core.states import INTAKE_STATES, CollectionStatus

def oid() -> str:
    return str(ObjectId())

class MongoRepo:
    """Motor-backed repository.

    Conditional updates put the expected fields in the filter of a single
    find_one_and_update, so MongoDB applies the compare-and-set atomically.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _insert(self, col, doc: dict) -> dict:
        doc = {**doc, "_id": oid()}
        await col.insert_one(doc)
        return doc

    # Users
    async def create_user(self, doc: dict) -> dict:
        try:
            return await self._insert(self.db.users, doc)
        except DuplicateKeyError:
            raise ValueError("Username or email exists")

    async def get_user(self, user_id: str) -> Optional[dict]:
        return await self.db.users.find_one({"_id": user_id})

    async def find_user_by_username(self, username: str) -> Optional[dict]:
        return await self.db.users.find_one({"username": username})

    async def increment_score(self, user_id: str, points: int) -> Optional[dict]:
        return await self.db.users.find_one_and_update(
            {"_id": user_id},
            {"$inc": {"sustainability_score": points}},
            return_document=ReturnDocument.AFTER,
        )

    # Collections
    async def insert_collection(self, doc: dict) -> dict:
        return await self._insert(self.db.collections, doc)

    async def get_collection(self, collection_id: str) -> Optional[dict]:
        return await self.db.collections.find_one({"_id": collection_id})

    async def update_collection(
        self,
        collection_id: str,
        patch: dict,
        expected: Optional[dict] = None,
        history: Optional[dict] = None,
    ) -> Optional[dict]:
        update = {"$set": patch, "$inc": {"version": 1}}
        if history is not None:
            update["$push"] = {"history": history}
        return await self.db.collections.find_one_and_update(
            {"_id": collection_id, **(expected or {})},
            update,
            return_document=ReturnDocument.AFTER,
        )

    async def list_collections(
        self,
        requester_id: Optional[str] = None,
        collector_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[dict]:
        q = {}
        if requester_id is not None:
            q["requester_id"] = requester_id
        if collector_id is not None:
            q["collector_id"] = collector_id
        if status is not None:
            q["status"] = status
        cur = self.db.collections.find(q).sort("scheduled_date", -1)
        return [c async for c in cur]

    async def list_upcoming(self, requester_id: str, now: datetime) -> List[dict]:
        cur = self.db.collections.find({
            "requester_id": requester_id,
            "scheduled_date": {"$gte": now},
            "status": {"$ne": CollectionStatus.CANCELLED.value},
        }).sort("scheduled_date", 1)
        return [c async for c in cur]

    async def list_unassigned_scheduled(self) -> List[dict]:
        cur = self.db.collections.find({
            "collector_id": None,
            "status": {"$in": [s.value for s in INTAKE_STATES]},
        }).sort("scheduled_date", 1)
        return [c async for c in cur]

    # Material interests
    async def insert_interest(self, doc: dict) -> dict:
        return await self._insert(self.db.material_interests, doc)

    async def get_interest(self, interest_id: str) -> Optional[dict]:
        return await self.db.material_interests.find_one({"_id": interest_id})

    async def update_interest(self, interest_id: str, patch: dict, expected: Optional[dict] = None) -> Optional[dict]:
        return await self.db.material_interests.find_one_and_update(
            {"_id": interest_id, **(expected or {})},
            {"$set": patch},
            return_document=ReturnDocument.AFTER,
        )

    async def list_interests(
        self,
        collection_ids: Optional[List[str]] = None,
        recycler_id: Optional[str] = None,
    ) -> List[dict]:
        q = {}
        if collection_ids is not None:
            q["collection_id"] = {"$in": collection_ids}
        if recycler_id is not None:
            q["recycler_id"] = recycler_id
        cur = self.db.material_interests.find(q).sort("created_at", -1)
        return [i async for i in cur]

    # Impact & activity
    async def insert_impact(self, doc: dict) -> dict:
        return await self._insert(self.db.impacts, doc)

    async def total_impact(self, user_id: str) -> dict:
        fields = ("water_saved", "co2_reduced", "trees_equivalent", "energy_conserved", "waste_amount")
        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$group": {"_id": None, **{f: {"$sum": f"${f}"} for f in fields}}},
        ]
        rows = [r async for r in self.db.impacts.aggregate(pipeline)]
        if not rows:
            return {}
        rows[0].pop("_id", None)
        return rows[0]

    async def insert_activity(self, doc: dict) -> dict:
        return await self._insert(self.db.activities, doc)

    async def list_activities(self, user_id: str, limit: int = 10) -> List[dict]:
        cur = self.db.activities.find({"user_id": user_id}).sort("created_at", -1).limit(limit)
        return [a async for a in cur]

    async def insert_badge(self, doc: dict) -> dict:
        return await self._insert(self.db.badges, doc)

    async def list_badges(self, user_id: str) -> List[dict]:
        return [b async for b in self.db.badges.find({"user_id": user_id}).sort("awarded_at", -1)]

    # Events, webhooks & outbox
    async def insert_event(self, doc: dict) -> dict:
        return await self._insert(self.db.events, doc)

    async def insert_webhook(self, doc: dict) -> dict:
        return await self._insert(self.db.webhooks, doc)

    async def list_webhooks(self, enabled_only: bool = False) -> List[dict]:
        q = {"enabled": True} if enabled_only else {}
        return [h async for h in self.db.webhooks.find(q)]

    async def delete_webhook(self, hook_id: str) -> bool:
        res = await self.db.webhooks.delete_one({"_id": hook_id})
        return res.deleted_count > 0

    async def insert_outbox(self, doc: dict) -> dict:
        return await self._insert(self.db.outbox, doc)

    async def claim_outbox(self, now: datetime) -> Optional[dict]:
        return await self.db.outbox.find_one_and_update(
            {"status": "pending", "next_try_at": {"$lte": now}},
            {"$set": {"status": "delivering"}},
            return_document=ReturnDocument.AFTER,
        )

    async def update_outbox(self, rec_id: str, patch: dict) -> None:
        await self.db.outbox.update_one({"_id": rec_id}, {"$set": patch})
