from typing import List

from fastapi import APIRouter, Depends, Query

from pipapal.deps import get_current_user, get_repo
from pipapal.models.impact import ActivityOut, BadgeOut, ImpactTotals
from pipapal.models.user import Actor
from pipapal.services.collections import serialize
from pipapal.services.impact import total_impact

router = APIRouter(prefix="/api", tags=["impact"])

@router.get("/impact", response_model=ImpactTotals)
async def get_impact(repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return await total_impact(repo, actor.id)

@router.get("/activities", response_model=List[ActivityOut])
async def list_activities(
    limit: int = Query(10, ge=1, le=100),
    repo=Depends(get_repo),
    actor: Actor = Depends(get_current_user),
):
    return [serialize(a) for a in await repo.list_activities(actor.id, limit)]

@router.get("/badges", response_model=List[BadgeOut])
async def list_badges(repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return [serialize(b) for b in await repo.list_badges(actor.id)]
