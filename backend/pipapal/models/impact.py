from pydantic import BaseModel
from typing import Literal, Optional
from datetime import datetime

class ImpactTotals(BaseModel):
    water_saved: float = 0
    co2_reduced: float = 0
    trees_equivalent: float = 0
    energy_conserved: float = 0
    waste_amount: float = 0

class ActivityOut(BaseModel):
    id: str
    user_id: str
    activity_type: str
    description: str
    points: Optional[int] = None
    created_at: datetime

BadgeType = Literal[
    "eco_starter", "water_saver", "energy_pro",
    "recycling_champion", "zero_waste_hero", "community_leader",
]

class BadgeOut(BaseModel):
    id: str
    user_id: str
    badge_type: BadgeType
    awarded_at: datetime
