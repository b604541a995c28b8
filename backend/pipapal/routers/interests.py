from typing import List

from fastapi import APIRouter, Depends

from pipapal.deps import get_current_user, get_repo, require_scopes
from pipapal.models.interest import InterestCreate, InterestOut, InterestStatusIn
from pipapal.models.user import Actor
from pipapal.services import interests as svc
from pipapal.services.collections import serialize

router = APIRouter(prefix="/api/material-interests", tags=["material-interests"])

@router.post("", response_model=InterestOut, status_code=201)
async def express_interest(
    data: InterestCreate,
    repo=Depends(get_repo),
    actor: Actor = Depends(require_scopes(["interests:create"])),
):
    return serialize(await svc.express_interest(repo, data, actor))

@router.get("/mine", response_model=List[InterestOut])
async def my_interests(repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return [serialize(i) for i in await svc.list_for_recycler(repo, actor)]

@router.get("/collector/{collector_id}", response_model=List[InterestOut])
async def interests_for_collector(collector_id: str, repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return await svc.list_for_collector(repo, collector_id, actor)

@router.patch("/{interest_id}", response_model=InterestOut)
async def change_status(
    interest_id: str,
    body: InterestStatusIn,
    repo=Depends(get_repo),
    actor: Actor = Depends(require_scopes(["interests:manage"])),
):
    return serialize(await svc.change_interest_status(repo, interest_id, body.status, actor))
