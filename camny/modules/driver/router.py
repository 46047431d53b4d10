from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camny.auth.deps import role_required
from camny.db.session import get_session, get_session_factory
from camny.enums import PaymentStatus, Role
from camny.exceptions import NotFound
from camny.models.models import Driver, Route, Ticket, Vehicle
from camny.schemas.fleet import RouteOut, VehicleOut
from camny.schemas.ticket import (
    ConfirmBoardingRequest,
    JourneyResponse,
    ScanTicketRequest,
    ScanTicketResponse,
    TicketOut,
    VehicleRequest,
)
from camny.schemas.tracking import LocationUpdateRequest, LocationUpdateResponse, TrackingPointOut
from camny.services.auth import Principal
from camny.services.tickets import TicketLifecycle

router = APIRouter()

driver_only = role_required([Role.DRIVER])


async def _current_driver(db: AsyncSession, principal: Principal) -> Driver:
    res = await db.execute(sa_select(Driver).where(Driver.user_id == principal.user_id))
    driver = res.scalars().first()
    if not driver:
        raise NotFound("Driver not found for this user")
    return driver


async def _driver_vehicle(db: AsyncSession, driver: Driver) -> Vehicle:
    res = await db.execute(sa_select(Vehicle).where(Vehicle.assigned_driver == driver.id).order_by(Vehicle.id))
    vehicle = res.scalars().first()
    if not vehicle:
        raise NotFound("No vehicle assigned to this driver")
    return vehicle


@router.get("/")
async def driver_root():
    return {"module": "driver", "status": "ok"}


@router.get("/assignments")
async def my_assignments(current_user: Principal = Depends(driver_only), db: AsyncSession = Depends(get_session)):
    driver = await _current_driver(db, current_user)
    vehicles = (await db.execute(sa_select(Vehicle).where(Vehicle.assigned_driver == driver.id).order_by(Vehicle.id))).scalars().all()
    route_ids = {v.assigned_route for v in vehicles if v.assigned_route}
    if driver.assigned_line_id:
        route_ids.add(driver.assigned_line_id)
    stmt = sa_select(Route).where(or_(Route.id.in_(route_ids), Route.assigned_driver == driver.id)).order_by(Route.id)
    routes = (await db.execute(stmt)).scalars().all()
    return {
        "driver_id": driver.id,
        "license_number": driver.license_number,
        "status": driver.status,
        "vehicles": [VehicleOut.model_validate(v).model_dump() for v in vehicles],
        "routes": [RouteOut.model_validate(r).model_dump() for r in routes],
    }


@router.get("/passengers")
async def my_passengers(current_user: Principal = Depends(driver_only), db: AsyncSession = Depends(get_session)):
    """Paid tickets on the driver's vehicle."""
    driver = await _current_driver(db, current_user)
    vehicle = await _driver_vehicle(db, driver)
    stmt = (
        sa_select(Ticket, Route.route_name)
        .join(Route, Ticket.route_id == Route.id)
        .where(Ticket.vehicle_id == vehicle.id)
        .where(Ticket.payment_status == PaymentStatus.COMPLETED)
        .order_by(Ticket.travel_date.desc(), Ticket.id)
    )
    res = await db.execute(stmt)
    return {
        "vehicle_id": vehicle.id,
        "plate_number": vehicle.plate_number,
        "passengers": [dict(TicketOut.model_validate(t).model_dump(), route_name=name) for t, name in res.all()],
    }


@router.post("/scan-ticket", response_model=ScanTicketResponse)
async def scan_ticket(payload: ScanTicketRequest, current_user: Principal = Depends(driver_only), db: AsyncSession = Depends(get_session)):
    result = await TicketLifecycle(db).scan_and_validate(payload.qr_code, payload.vehicle_id, driver_user_id=current_user.user_id)
    return ScanTicketResponse(
        ticket=TicketOut.model_validate(result.ticket),
        route_name=result.route_name,
        plate_number=result.plate_number,
    )


@router.post("/confirm-boarding")
async def confirm_boarding(payload: ConfirmBoardingRequest, current_user: Principal = Depends(driver_only), db: AsyncSession = Depends(get_session)):
    ticket = await TicketLifecycle(db).confirm_boarding(payload.ticket_id, driver_user_id=current_user.user_id)
    return {"message": "Boarding confirmed", "ticket": TicketOut.model_validate(ticket).model_dump()}


@router.post("/start-journey", response_model=JourneyResponse)
async def start_journey(
    payload: VehicleRequest,
    current_user: Principal = Depends(driver_only),
    db: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    result = await TicketLifecycle(db, session_factory).start_journey(payload.vehicle_id, driver_user_id=current_user.user_id)
    return JourneyResponse(message="Journey started", **result.__dict__)


@router.post("/stop-journey", response_model=JourneyResponse)
async def stop_journey(
    payload: VehicleRequest,
    current_user: Principal = Depends(driver_only),
    db: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    result = await TicketLifecycle(db, session_factory).stop_journey(payload.vehicle_id, driver_user_id=current_user.user_id)
    return JourneyResponse(message="Journey completed", **result.__dict__)


@router.post("/update-location", response_model=LocationUpdateResponse)
async def update_location(
    payload: LocationUpdateRequest,
    current_user: Principal = Depends(driver_only),
    db: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    result = await TicketLifecycle(db, session_factory).update_location(
        driver_user_id=current_user.user_id,
        **payload.model_dump(),
    )
    return LocationUpdateResponse(
        location=TrackingPointOut.model_validate(result.tracking),
        passengers_notified=result.passengers_notified,
    )
