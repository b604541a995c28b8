from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm

from pipapal.core.security import create_token, hash_password, verify_password
from pipapal.deps import get_current_user, get_repo
from pipapal.models.user import Actor, TokenOut, UserCreate, UserOut
from pipapal.services.collections import serialize
from pipapal.services.impact import award_badge, record_activity

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=UserOut, status_code=201)
async def register(user: UserCreate, repo=Depends(get_repo)):
    if user.role == "admin":
        raise HTTPException(403, "Admin accounts cannot self-register")
    try:
        doc = await repo.create_user({
            "username": user.username,
            "password_hash": hash_password(user.password),
            "full_name": user.full_name,
            "email": user.email,
            "role": user.role,
            "address": user.address,
            "phone": user.phone,
            "sustainability_score": 0,
            "created_at": datetime.now(timezone.utc),
        })
    except ValueError:
        raise HTTPException(409, "Username or email already registered")
    await award_badge(repo, doc["_id"], "eco_starter")
    await record_activity(repo, doc["_id"], "registration", "Joined PipaPal")
    return serialize(doc)

@router.post("/token", response_model=TokenOut)
async def token(form: OAuth2PasswordRequestForm = Depends(), repo=Depends(get_repo)):
    user = await repo.find_user_by_username(form.username)
    if not user or not verify_password(form.password, user.get("password_hash", "")):
        raise HTTPException(401, "Invalid credentials")
    return {"access_token": create_token(user["_id"], user["role"])}

@router.get("/me", response_model=UserOut)
async def me(actor: Actor = Depends(get_current_user), repo=Depends(get_repo)):
    user = await repo.get_user(actor.id)
    return serialize(user)
