from typing import List

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from pipapal.core.config import settings
from pipapal.core.policy import has_scopes
from pipapal.core.security import decode_token
from pipapal.models.user import Actor

if settings.use_mongo:
    from pipapal.core.db import get_db
    from pipapal.repos.mongo import MongoRepo
    _repo_singleton = MongoRepo(get_db())
else:
    from pipapal.repos.inmemory import InMemoryRepo
    _repo_singleton = InMemoryRepo()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

def get_repo():
    return _repo_singleton

async def get_current_user(token: str = Depends(oauth2_scheme), repo=Depends(get_repo)) -> Actor:
    data = decode_token(token)
    if not data or "sub" not in data:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await repo.get_user(data["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return Actor(id=user["_id"], role=user["role"])

def require_scopes(required: List[str]):
    async def checker(actor: Actor = Depends(get_current_user)) -> Actor:
        if not has_scopes(actor.role, required):
            raise HTTPException(status_code=403, detail="Not enough permissions")
        return actor
    return checker
