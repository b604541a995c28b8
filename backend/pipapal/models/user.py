from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Literal
from datetime import datetime

Role = Literal["household", "collector", "recycler", "organization", "admin"]

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=4)
    full_name: str
    email: EmailStr
    role: Role = "household"
    address: Optional[str] = None
    phone: Optional[str] = None

class UserOut(BaseModel):
    id: str
    username: str
    full_name: str
    email: EmailStr
    role: Role
    address: Optional[str] = None
    phone: Optional[str] = None
    sustainability_score: int = 0
    created_at: Optional[datetime] = None

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

class Actor(BaseModel):
    """The authenticated caller, as trusted by the services."""
    id: str
    role: Role
