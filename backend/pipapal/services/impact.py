# pipapal/services/impact.py
import logging
import math
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

# per kg of collected waste
WATER_L_PER_KG = 10
CO2_KG_PER_KG = 2.5
TREES_PER_KG = 0.1
ENERGY_KWH_PER_KG = 5
SCORE_PER_KG = 5

IMPACT_FIELDS = ("water_saved", "co2_reduced", "trees_equivalent", "energy_conserved", "waste_amount")


def compute_impact(waste_amount: float) -> dict:
    return {
        "water_saved": waste_amount * WATER_L_PER_KG,
        "co2_reduced": waste_amount * CO2_KG_PER_KG,
        "trees_equivalent": waste_amount * TREES_PER_KG,
        "energy_conserved": waste_amount * ENERGY_KWH_PER_KG,
        "waste_amount": waste_amount,
    }


async def record_activity(repo, user_id: str, activity_type: str, description: str, points: Optional[int] = None) -> dict:
    return await repo.insert_activity({
        "user_id": user_id,
        "activity_type": activity_type,
        "description": description,
        "points": points,
        "created_at": datetime.now(timezone.utc),
    })


async def award_badge(repo, user_id: str, badge_type: str) -> dict:
    badge = await repo.insert_badge({
        "user_id": user_id,
        "badge_type": badge_type,
        "awarded_at": datetime.now(timezone.utc),
    })
    await record_activity(repo, user_id, "badge_earned", f"Earned the {badge_type} badge")
    logger.info("user %s earned %s", user_id, badge_type)
    return badge


async def record_impact(repo, collection: dict) -> Optional[dict]:
    """Credit the requester of a completed collection.

    Runs after the transition has committed, outside the request that caused it.
    """
    amount = collection.get("waste_amount")
    if collection.get("status") != "completed" or not amount:
        return None

    user_id = collection["requester_id"]
    impact = await repo.insert_impact({
        "user_id": user_id,
        "collection_id": str(collection["_id"]),
        **compute_impact(float(amount)),
        "created_at": datetime.now(timezone.utc),
    })
    await record_activity(
        repo, user_id, "collection_completed",
        f"Completed a {collection['waste_type']} waste collection",
    )

    score = math.floor(float(amount) * SCORE_PER_KG + 0.5)
    if await repo.increment_score(user_id, score) is not None:
        await record_activity(
            repo, user_id, "score_increase",
            f"Sustainability score increased by {score} points", points=score,
        )
    logger.info("impact recorded for collection %s (%.2f kg)", collection["_id"], float(amount))
    return impact


async def total_impact(repo, user_id: str) -> dict:
    totals = await repo.total_impact(user_id)
    return {k: float(totals.get(k) or 0) for k in IMPACT_FIELDS}
