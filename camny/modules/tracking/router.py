from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camny.auth.deps import get_current_user, role_required
from camny.db.session import get_session, get_session_factory
from camny.enums import Role
from camny.exceptions import Forbidden, NotFound
from camny.models.models import Route, Ticket, Vehicle, VehicleLocationLive, VehicleTracking
from camny.schemas.tracking import LiveLocationOut, LocationUpdateRequest, LocationUpdateResponse, TrackingPointOut
from camny.services.auth import Principal
from camny.services.tickets import TicketLifecycle

router = APIRouter()


def _live_out(live: VehicleLocationLive, vehicle: Vehicle, route: Route = None) -> dict:
    out = LiveLocationOut.model_validate(live).model_dump()
    out["plate_number"] = vehicle.plate_number
    out["route_id"] = route.id if route else None
    out["route_name"] = route.route_name if route else None
    return out


def _live_query():
    return (
        sa_select(VehicleLocationLive, Vehicle, Route)
        .join(Vehicle, VehicleLocationLive.vehicle_id == Vehicle.id)
        .outerjoin(Route, Vehicle.assigned_route == Route.id)
    )


@router.get("/")
async def tracking_root():
    return {"module": "tracking", "status": "ok"}


@router.post("/update", response_model=LocationUpdateResponse)
async def update_vehicle_location(
    payload: LocationUpdateRequest,
    current_user: Principal = Depends(role_required([Role.DRIVER])),
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


@router.get("/vehicle/{vehicle_id}")
async def vehicle_location(vehicle_id: int, db: AsyncSession = Depends(get_session)):
    res = await db.execute(_live_query().where(VehicleLocationLive.vehicle_id == vehicle_id))
    row = res.first()
    if not row:
        raise NotFound("Vehicle location not available")
    return _live_out(*row)


@router.get("/all")
async def all_locations(db: AsyncSession = Depends(get_session)):
    res = await db.execute(_live_query().order_by(VehicleLocationLive.last_updated.desc()))
    return [_live_out(*row) for row in res.all()]


@router.get("/history/{vehicle_id}")
async def location_history(
    vehicle_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    stmt = (
        sa_select(VehicleTracking)
        .where(VehicleTracking.vehicle_id == vehicle_id)
        .order_by(VehicleTracking.created_at.desc(), VehicleTracking.id.desc())
        .limit(limit)
        .offset(offset)
    )
    history = (await db.execute(stmt)).scalars().all()
    total = (await db.execute(sa_select(func.count()).select_from(VehicleTracking).where(VehicleTracking.vehicle_id == vehicle_id))).scalar()
    return {
        "history": [TrackingPointOut.model_validate(p).model_dump() for p in history],
        "total": total or 0,
        "limit": limit,
        "offset": offset,
    }


@router.get("/my-vehicle/{ticket_id}")
async def my_vehicle_location(ticket_id: int, current_user: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    """Latest position of the vehicle a ticket is bound to; ticket holders and admins only."""
    ticket = await db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFound("Ticket not found")
    if not current_user.is_admin and current_user.user_id not in (ticket.buyer_id, ticket.passenger_id):
        raise Forbidden("Unauthorized to view this ticket's vehicle")
    if not ticket.vehicle_id:
        raise NotFound("No vehicle assigned to this ticket")
    res = await db.execute(_live_query().where(VehicleLocationLive.vehicle_id == ticket.vehicle_id))
    row = res.first()
    if not row:
        raise NotFound("Vehicle location not available")
    return dict(_live_out(*row), ticket_id=ticket.id, journey_status=ticket.journey_status)
