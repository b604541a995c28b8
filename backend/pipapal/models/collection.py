from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Any
from datetime import datetime

from pipapal.core.states import CollectionStatus

WasteType = Literal[
    "general", "plastic", "paper", "glass", "metal",
    "electronic", "organic", "hazardous", "cardboard",
]
IntakeStatus = Literal["scheduled", "pending"]

class LatLng(BaseModel):
    lat: float
    lng: float

class CollectionCreate(BaseModel):
    waste_type: WasteType
    waste_description: Optional[str] = None
    waste_amount: Optional[float] = Field(None, gt=0)
    scheduled_date: datetime
    address: str
    location: Optional[LatLng] = None
    notes: Optional[str] = None
    status: IntakeStatus = "scheduled"

class CollectionPatch(BaseModel):
    # status routes through the lifecycle controller; the rest is descriptive
    status: Optional[CollectionStatus] = None
    waste_amount: Optional[float] = Field(None, gt=0)
    note: Optional[str] = None
    waste_type: Optional[WasteType] = None
    waste_description: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    address: Optional[str] = None
    location: Optional[LatLng] = None
    notes: Optional[str] = None

class StatusEvent(BaseModel):
    at: datetime
    by_user: str
    from_status: Optional[CollectionStatus]
    to_status: CollectionStatus
    note: Optional[str] = None

class CollectionOut(BaseModel):
    id: str
    requester_id: str
    collector_id: Optional[str] = None
    status: CollectionStatus
    waste_type: str
    waste_description: Optional[str] = None
    waste_amount: Optional[float] = None
    scheduled_date: datetime
    completed_date: Optional[datetime] = None
    address: str
    location: Optional[LatLng] = None
    notes: Optional[str] = None
    version: int
    history: List[StatusEvent] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LifecycleEvent(BaseModel):
    collection_id: str
    from_status: Optional[CollectionStatus]
    to_status: CollectionStatus
    actor_id: str
    actor_role: str
    at: datetime
    meta: Optional[dict[str, Any]] = None
