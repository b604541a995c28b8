from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field

from pipapal.core.states import CollectionStatus
from pipapal.deps import get_current_user, get_repo, require_scopes
from pipapal.models.collection import CollectionCreate, CollectionOut, CollectionPatch
from pipapal.models.user import Actor
from pipapal.services import collections as svc
from pipapal.services.claims import claim
from pipapal.services.impact import record_impact
from pipapal.services.lifecycle import apply_transition

router = APIRouter(prefix="/api/collections", tags=["collections"])

class StatusChange(BaseModel):
    status: CollectionStatus
    waste_amount: Optional[float] = Field(None, gt=0)
    note: Optional[str] = None

def _after_commit(background: BackgroundTasks, repo, updated: dict) -> None:
    if updated["status"] == CollectionStatus.COMPLETED.value:
        background.add_task(record_impact, repo, updated)

@router.post("", response_model=CollectionOut, status_code=201)
async def create_collection(
    data: CollectionCreate,
    repo=Depends(get_repo),
    actor: Actor = Depends(require_scopes(["collections:create"])),
):
    return svc.serialize(await svc.create_collection(repo, data, actor))

@router.get("", response_model=List[CollectionOut])
async def list_collections(
    status: Optional[CollectionStatus] = Query(None),
    repo=Depends(get_repo),
    actor: Actor = Depends(get_current_user),
):
    docs = await svc.list_mine(repo, actor, status.value if status else None)
    return [svc.serialize(d) for d in docs]

@router.get("/upcoming", response_model=List[CollectionOut])
async def list_upcoming(repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return [svc.serialize(d) for d in await svc.list_upcoming(repo, actor)]

@router.get("/available", response_model=List[CollectionOut])
async def list_available(repo=Depends(get_repo), actor: Actor = Depends(require_scopes(["collections:claim"]))):
    return [svc.serialize(d) for d in await svc.list_available(repo)]

@router.get("/collector/{collector_id}/completed", response_model=List[CollectionOut])
async def list_completed_for_collector(
    collector_id: str,
    repo=Depends(get_repo),
    actor: Actor = Depends(get_current_user),
):
    docs = await svc.list_completed_for_collector(repo, collector_id, actor)
    return [svc.serialize(d) for d in docs]

@router.get("/{collection_id}", response_model=CollectionOut)
async def get_collection(collection_id: str, repo=Depends(get_repo), actor: Actor = Depends(get_current_user)):
    return svc.serialize(await svc.get_collection(repo, collection_id, actor))

@router.post("/{collection_id}/claim", response_model=CollectionOut)
async def claim_collection(
    collection_id: str,
    repo=Depends(get_repo),
    actor: Actor = Depends(require_scopes(["collections:claim"])),
):
    updated, _ = await claim(repo, collection_id, actor)
    return svc.serialize(updated)

@router.post("/{collection_id}/transition", response_model=CollectionOut)
async def transition_status(
    collection_id: str,
    body: StatusChange,
    background: BackgroundTasks,
    repo=Depends(get_repo),
    actor: Actor = Depends(get_current_user),
):
    updated, _ = await apply_transition(repo, collection_id, body.status, actor, body.waste_amount, body.note)
    _after_commit(background, repo, updated)
    return svc.serialize(updated)

@router.patch("/{collection_id}", response_model=CollectionOut)
async def patch_collection(
    collection_id: str,
    patch: CollectionPatch,
    background: BackgroundTasks,
    repo=Depends(get_repo),
    actor: Actor = Depends(get_current_user),
):
    """Edit details and/or change status.

    With a status the descriptive fields ride along in the transition's
    single write, so a rejected transition leaves the record untouched.
    A collector asking for ``confirmed`` on an unassigned pickup is a claim.
    """
    changes = patch.model_dump(exclude_unset=True, exclude={"status", "note"})
    if patch.status is None:
        return svc.serialize(await svc.update_details(repo, collection_id, changes, actor))

    doc = await repo.get_collection(collection_id)
    if (
        patch.status is CollectionStatus.CONFIRMED
        and actor.role == "collector"
        and doc is not None
        and svc.is_unassigned_intake(doc)
    ):
        updated, _ = await claim(repo, collection_id, actor, changes)
    else:
        updated, _ = await apply_transition(
            repo, collection_id, patch.status, actor, note=patch.note, changes=changes,
        )
    _after_commit(background, repo, updated)
    return svc.serialize(updated)
