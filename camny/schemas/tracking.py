from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LocationUpdateRequest(BaseModel):
    vehicle_id: int
    current_location: str = Field(..., min_length=1)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    speed: Optional[float] = Field(None, ge=0)
    heading: Optional[float] = Field(None, ge=0, lt=360)
    estimated_arrival: Optional[str] = None


class TrackingPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vehicle_id: int
    driver_id: Optional[int] = None
    current_location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    estimated_arrival: Optional[str] = None
    created_at: Optional[datetime] = None


class LiveLocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vehicle_id: int
    driver_id: Optional[int] = None
    current_location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    estimated_arrival: Optional[str] = None
    last_updated: Optional[datetime] = None
    plate_number: Optional[str] = None


class LocationUpdateResponse(BaseModel):
    message: str = "Location updated successfully"
    location: TrackingPointOut
    passengers_notified: int
