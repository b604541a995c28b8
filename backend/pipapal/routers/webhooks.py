from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, AnyHttpUrl

from pipapal.deps import get_repo, require_scopes

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

class HookIn(BaseModel):
    url: AnyHttpUrl
    enabled: bool = True

@router.post("", status_code=201, dependencies=[Depends(require_scopes(["webhooks:manage"]))])
async def create_webhook(h: HookIn, repo=Depends(get_repo)):
    doc = await repo.insert_webhook({"url": str(h.url), "enabled": h.enabled})
    return {"id": doc["_id"], "created": True}

@router.get("", dependencies=[Depends(require_scopes(["webhooks:manage"]))])
async def list_webhooks(repo=Depends(get_repo)):
    return [{"id": str(d["_id"]), "url": d["url"], "enabled": d.get("enabled", True)} for d in await repo.list_webhooks()]

@router.delete("/{hook_id}", dependencies=[Depends(require_scopes(["webhooks:manage"]))])
async def delete_webhook(hook_id: str, repo=Depends(get_repo)):
    if not await repo.delete_webhook(hook_id):
        raise HTTPException(404, "Not found")
    return {"ok": True}
