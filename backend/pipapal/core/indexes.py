# pipapal/core/indexes.py
from pymongo import ASCENDING, DESCENDING

async def ensure_indexes(db):
    await db.users.create_index("username", unique=True)
    await db.users.create_index("email", unique=True)
    # Collections: dashboards filter by owner/collector, the claim board by status
    await db.collections.create_index([("requester_id", ASCENDING), ("scheduled_date", DESCENDING)])
    await db.collections.create_index([("collector_id", ASCENDING), ("status", ASCENDING)])
    await db.collections.create_index([("status", ASCENDING), ("scheduled_date", ASCENDING)])
    await db.material_interests.create_index([("collection_id", ASCENDING)])
    await db.material_interests.create_index([("recycler_id", ASCENDING)])
    await db.impacts.create_index([("user_id", ASCENDING)])
    await db.activities.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await db.badges.create_index([("user_id", ASCENDING), ("awarded_at", DESCENDING)])
    await db.outbox.create_index([("status", ASCENDING), ("next_try_at", ASCENDING)])
