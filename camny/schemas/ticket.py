from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class BookTicketRequest(BaseModel):
    route_id: int
    vehicle_id: Optional[int] = None
    start_stop_id: Optional[int] = None
    end_stop_id: Optional[int] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    travel_date: Optional[date] = None
    seat_number: Optional[str] = None
    # set when booking for someone else
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    passenger_email: Optional[EmailStr] = None


class PayTicketRequest(BaseModel):
    ticket_id: int
    phone_number: str
    payment_method: Optional[str] = None


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    buyer_id: Optional[int] = None
    passenger_id: Optional[int] = None
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    passenger_email: Optional[str] = None
    route_id: int
    vehicle_id: Optional[int] = None
    start_stop_id: Optional[int] = None
    end_stop_id: Optional[int] = None
    actual_start_location: Optional[str] = None
    actual_end_location: Optional[str] = None
    travel_date: Optional[date] = None
    seat_number: Optional[str] = None
    calculated_fare: float
    amount_paid: float
    distance_km: Optional[float] = None
    payment_status: str
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    boarding_status: str
    boarding_confirmed_at: Optional[datetime] = None
    journey_status: str
    journey_completed_at: Optional[datetime] = None
    qr_code: Optional[str] = None
    lifecycle_state: str
    created_at: Optional[datetime] = None


class FareQuoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    route_id: int
    fare: float
    distance_km: Optional[float] = None
    start_location: str
    end_location: str
    used_stops: bool
    start_stop_id: Optional[int] = None
    end_stop_id: Optional[int] = None


class BookingResponse(BaseModel):
    message: str = "Ticket booked successfully"
    ticket: TicketOut
    fare: FareQuoteOut


class PaymentResponse(BaseModel):
    message: str = "Payment successful"
    ticket: TicketOut
    transaction_id: str
    notifications_sent: int


class ScanTicketRequest(BaseModel):
    qr_code: str = Field(..., min_length=1)
    vehicle_id: int


class ScanTicketResponse(BaseModel):
    valid: bool = True
    ticket: TicketOut
    route_name: Optional[str] = None
    plate_number: Optional[str] = None


class ConfirmBoardingRequest(BaseModel):
    ticket_id: int


class VehicleRequest(BaseModel):
    vehicle_id: int


class JourneyResponse(BaseModel):
    message: str
    vehicle_id: int
    tickets_updated: int
    passengers_notified: int
