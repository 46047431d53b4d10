from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CompanyCreate(BaseModel):
    name: str
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None


class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class DriverCreate(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    password: str = Field(..., min_length=6)
    license_number: str
    status: Optional[str] = "active"


class DriverUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    license_number: Optional[str] = None
    status: Optional[str] = None
    assigned_line_id: Optional[int] = None


class DriverOut(BaseModel):
    id: int
    user_id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    license_number: str
    status: str
    assigned_line_id: Optional[int] = None


class VehicleCreate(BaseModel):
    plate_number: str
    model: Optional[str] = None
    capacity: int = Field(0, ge=0)
    status: str = "active"
    company_id: Optional[int] = None


class VehicleUpdate(BaseModel):
    model: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    company_id: Optional[int] = None


class VehicleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plate_number: str
    model: Optional[str] = None
    capacity: int
    status: str
    company_id: Optional[int] = None
    assigned_driver: Optional[int] = None
    assigned_route: Optional[int] = None


class RouteCreate(BaseModel):
    route_name: str
    start_location: str
    end_location: str
    distance_km: Optional[float] = Field(None, ge=0)
    fare_base: float = Field(0, ge=0)
    map_url: Optional[str] = None
    company_id: Optional[int] = None
    expected_start_time: Optional[time] = None


class RouteUpdate(BaseModel):
    route_name: Optional[str] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    distance_km: Optional[float] = Field(None, ge=0)
    fare_base: Optional[float] = Field(None, ge=0)
    map_url: Optional[str] = None
    company_id: Optional[int] = None
    expected_start_time: Optional[time] = None


class RouteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_name: str
    start_location: str
    end_location: str
    distance_km: Optional[float] = None
    fare_base: float
    map_url: Optional[str] = None
    company_id: Optional[int] = None
    assigned_vehicle: Optional[int] = None
    assigned_driver: Optional[int] = None
    expected_start_time: Optional[time] = None
    created_at: Optional[datetime] = None


class StopCreate(BaseModel):
    route_id: int
    stop_name: str
    stop_order: int = Field(..., ge=0)
    distance_from_start_km: float = Field(0, ge=0)
    fare_from_start: float = Field(0, ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class StopUpdate(BaseModel):
    stop_name: Optional[str] = None
    stop_order: Optional[int] = Field(None, ge=0)
    distance_from_start_km: Optional[float] = Field(None, ge=0)
    fare_from_start: Optional[float] = Field(None, ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class StopOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_id: int
    stop_name: str
    stop_order: int
    distance_from_start_km: float
    fare_from_start: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AssignDriverIn(BaseModel):
    driver_id: int


class AssignVehicleIn(BaseModel):
    vehicle_id: int
