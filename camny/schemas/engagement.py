from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LoyaltyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    passenger_id: int
    total_points: int
    redeemed_points: int
    available_points: int
    tier: str


class LoyaltyAddRequest(BaseModel):
    passenger_id: int
    points: int = Field(..., gt=0)
    reason: Optional[str] = None


class LoyaltyRedeemRequest(BaseModel):
    points: int = Field(..., gt=0)
    reason: Optional[str] = None
    # admins may redeem on behalf of a passenger
    passenger_id: Optional[int] = None


class LoyaltyTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    passenger_id: int
    points: int
    type: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    route_id: Optional[int] = None
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None

    @model_validator(mode="after")
    def one_target(self):
        if not (self.route_id or self.driver_id or self.vehicle_id):
            raise ValueError("one of route_id, driver_id or vehicle_id is required")
        return self


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    passenger_id: int
    route_id: Optional[int] = None
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationIn(BaseModel):
    user_id: int
    message: str = Field(..., min_length=1, max_length=1024)
    title: Optional[str] = None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: Optional[str] = None
    message: str
    channel: str
    read: bool
    created_at: Optional[datetime] = None
