from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from pipapal.core.states import InterestStatus

class InterestCreate(BaseModel):
    collection_id: str
    amount_requested: float = Field(..., gt=0)
    price_per_kg: float = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=500)

class InterestStatusIn(BaseModel):
    status: InterestStatus

class RecyclerSummary(BaseModel):
    id: str
    username: str
    full_name: str
    email: str
    phone: Optional[str] = None

class CollectionSummary(BaseModel):
    id: str
    waste_type: str
    waste_amount: Optional[float] = None
    address: str

class InterestOut(BaseModel):
    id: str
    collection_id: str
    recycler_id: str
    amount_requested: float
    price_per_kg: float
    message: Optional[str] = None
    status: InterestStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    recycler: Optional[RecyclerSummary] = None
    collection: Optional[CollectionSummary] = None
