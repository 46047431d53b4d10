from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camny.auth.deps import get_current_user
from camny.db.session import get_session, get_session_factory
from camny.enums import RecordStatus
from camny.models.models import Route, Ticket, Vehicle
from camny.schemas.fleet import RouteOut, VehicleOut
from camny.schemas.ticket import (
    BookingResponse,
    BookTicketRequest,
    FareQuoteOut,
    PaymentResponse,
    PayTicketRequest,
    TicketOut,
)
from camny.services.auth import Principal
from camny.services.tickets import BookingRequest, TicketLifecycle

router = APIRouter()


@router.get("/")
async def passenger_root():
    return {"module": "passenger", "status": "ok"}


@router.get("/routes")
async def browse_routes(db: AsyncSession = Depends(get_session)):
    res = await db.execute(sa_select(Route).order_by(Route.route_name))
    return [RouteOut.model_validate(r).model_dump() for r in res.scalars().all()]


@router.get("/vehicles")
async def available_vehicles(db: AsyncSession = Depends(get_session)):
    res = await db.execute(sa_select(Vehicle).where(Vehicle.status == RecordStatus.ACTIVE).order_by(Vehicle.id))
    return [VehicleOut.model_validate(v).model_dump() for v in res.scalars().all()]


@router.get("/vehicles/route/{route_id}")
async def vehicles_for_route(route_id: int, db: AsyncSession = Depends(get_session)):
    stmt = (
        sa_select(Vehicle)
        .where(Vehicle.assigned_route == route_id)
        .where(Vehicle.status == RecordStatus.ACTIVE)
        .order_by(Vehicle.id)
    )
    res = await db.execute(stmt)
    return [VehicleOut.model_validate(v).model_dump() for v in res.scalars().all()]


@router.get("/tickets")
async def my_tickets(current_user: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    """Tickets the caller bought or travels on, newest first."""
    stmt = (
        sa_select(Ticket, Route.route_name, Vehicle.plate_number)
        .join(Route, Ticket.route_id == Route.id)
        .outerjoin(Vehicle, Ticket.vehicle_id == Vehicle.id)
        .where(or_(Ticket.buyer_id == current_user.user_id, Ticket.passenger_id == current_user.user_id))
        .order_by(Ticket.id.desc())
    )
    res = await db.execute(stmt)
    return [
        dict(TicketOut.model_validate(t).model_dump(), route_name=route_name, plate_number=plate)
        for t, route_name, plate in res.all()
    ]


@router.post("/tickets/book", response_model=BookingResponse, status_code=201)
async def book_ticket(
    payload: BookTicketRequest,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    result = await TicketLifecycle(db, session_factory).book(current_user.user_id, BookingRequest(**payload.model_dump()))
    return BookingResponse(
        ticket=TicketOut.model_validate(result.ticket),
        fare=FareQuoteOut.model_validate(result.quote),
    )


@router.post("/tickets/pay", response_model=PaymentResponse)
async def pay_ticket(
    payload: PayTicketRequest,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Simulated MTN mobile-money payment."""
    result = await TicketLifecycle(db, session_factory).pay(
        payload.ticket_id,
        payload.phone_number,
        payment_method=payload.payment_method,
        payer_id=current_user.user_id,
        payer_is_admin=current_user.is_admin,
    )
    return PaymentResponse(
        ticket=TicketOut.model_validate(result.ticket),
        transaction_id=result.ticket.transaction_id,
        notifications_sent=result.notifications_sent,
    )
