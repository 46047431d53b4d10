"""
Ticket lifecycle: booking, payment, boarding and journey transitions.

pending_payment -> payment_completed -> boarding_confirmed
    -> journey_in_progress -> journey_completed

Single-ticket transitions write their notification in the same transaction
as the state change. Vehicle-wide transitions (start/stop journey, location
broadcast) commit first and then notify every affected passenger in an
independent session, so one passenger's failure never touches the others.
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from camny.config import settings
from camny.enums import BoardingStatus, JourneyStatus, PaymentStatus
from camny.exceptions import (
    BadRequest,
    Forbidden,
    InvalidPhoneFormat,
    NotAssignedToVehicle,
    NotFound,
    TicketAlreadyPaid,
    TicketNotFound,
    TicketNotPaid,
    VehicleMismatch,
)
from camny.metrics import (
    JOURNEY_TRANSITIONS,
    LOCATION_UPDATES,
    PAYMENT_FAILURE,
    PAYMENT_SUCCESS,
    TICKETS_BOOKED,
)
from camny.models.models import (
    Driver,
    Route,
    Ticket,
    User,
    Vehicle,
    VehicleLocationLive,
    VehicleTracking,
)
from camny.services.fares import FareQuote, FareResolver
from camny.services.notification_service import (
    NotificationService,
    TicketContact,
    notify_ticket_holders,
)
from camny.services.phones import is_valid_momo_phone, normalize_phone

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def build_qr_code(ticket_id: int, vehicle_id: Optional[int], route_id: int, booked_at: datetime) -> str:
    """32-char upper-case token derived from the ticket's identity and booking time."""
    stamp = int(booked_at.timestamp() * 1000)
    raw = f"{ticket_id}:{vehicle_id or 0}:{route_id}:{stamp}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest().upper()[:32]


def new_transaction_id() -> str:
    return "TXN" + uuid.uuid4().hex[:16].upper()


@dataclass
class BookingRequest:
    route_id: int
    vehicle_id: Optional[int] = None
    start_stop_id: Optional[int] = None
    end_stop_id: Optional[int] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    travel_date: Optional[date] = None
    seat_number: Optional[str] = None
    passenger_name: Optional[str] = None
    passenger_phone: Optional[str] = None
    passenger_email: Optional[str] = None


@dataclass
class BookingResult:
    ticket: Ticket
    quote: FareQuote


@dataclass
class PaymentResult:
    ticket: Ticket
    notifications_sent: int


@dataclass
class ScanResult:
    ticket: Ticket
    route_name: Optional[str]
    plate_number: Optional[str]


@dataclass
class JourneyResult:
    vehicle_id: int
    tickets_updated: int
    passengers_notified: int


@dataclass
class LocationResult:
    tracking: VehicleTracking
    passengers_notified: int


class TicketLifecycle:
    def __init__(self, session: AsyncSession, session_factory: async_sessionmaker = None):
        self.session = session
        self.session_factory = session_factory

    # helpers

    async def _vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.session.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFound("Vehicle not found")
        return vehicle

    async def _driver_for_vehicle(self, driver_user_id: Optional[int], vehicle: Vehicle) -> Optional[Driver]:
        """The acting driver; raises NotAssignedToVehicle unless the vehicle is theirs."""
        if driver_user_id is None:
            return None
        res = await self.session.execute(sa_select(Driver).where(Driver.user_id == driver_user_id))
        driver = res.scalars().first()
        if not driver or vehicle.assigned_driver != driver.id:
            raise NotAssignedToVehicle()
        return driver

    async def _route_names(self, route_ids) -> Dict[int, str]:
        ids = set(route_ids)
        if not ids:
            return {}
        res = await self.session.execute(sa_select(Route.id, Route.route_name).where(Route.id.in_(ids)))
        return {rid: name for rid, name in res.all()}

    async def _vehicle_tickets(self, vehicle_id: int, **status) -> List[Ticket]:
        q = sa_select(Ticket).where(Ticket.vehicle_id == vehicle_id)
        if "payment_status" in status:
            q = q.where(Ticket.payment_status == status["payment_status"])
        if "journey_status" in status:
            q = q.where(Ticket.journey_status == status["journey_status"])
        res = await self.session.execute(q.order_by(Ticket.id))
        return list(res.scalars().all())

    async def _fan_out(self, contacts: List[TicketContact], kind: str, title: str, context_for) -> int:
        if not contacts:
            return 0
        if self.session_factory is None:
            raise RuntimeError("TicketLifecycle needs a session factory to notify passengers")
        return await notify_ticket_holders(self.session_factory, contacts, kind, title, context_for)

    async def assert_driver_owns_vehicle(self, driver_user_id: int, vehicle_id: int) -> Driver:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            return await self._driver_for_vehicle(driver_user_id, vehicle)

    # transitions

    async def book(self, buyer_id: int, req: BookingRequest) -> BookingResult:
        async with self.session.begin():
            buyer = await self.session.get(User, buyer_id)
            if not buyer:
                raise NotFound("User not found")

            resolver = FareResolver(self.session)
            quote = await resolver.resolve(
                req.route_id,
                start_stop_id=req.start_stop_id,
                end_stop_id=req.end_stop_id,
                start_location=req.start_location,
                end_location=req.end_location,
            )
            route = await resolver.get_route(req.route_id)
            if req.vehicle_id is not None:
                await self._vehicle(req.vehicle_id)

            phone = normalize_phone(req.passenger_phone) or None
            for_other = (phone and phone != normalize_phone(buyer.phone)) or (
                req.passenger_email and req.passenger_email != buyer.email
            )
            if for_other:
                if not req.passenger_name or not phone:
                    raise BadRequest("passenger_name and passenger_phone are required when booking for someone else")
                passenger_id = None
                name, email = req.passenger_name, req.passenger_email
            else:
                passenger_id = buyer.id
                name = req.passenger_name or buyer.full_name
                phone = phone or buyer.phone
                email = req.passenger_email or buyer.email

            booked_at = _now()
            ticket = Ticket(
                buyer_id=buyer.id,
                passenger_id=passenger_id,
                passenger_name=name,
                passenger_phone=phone,
                passenger_email=email,
                route_id=route.id,
                vehicle_id=req.vehicle_id,
                start_stop_id=quote.start_stop_id,
                end_stop_id=quote.end_stop_id,
                actual_start_location=quote.start_location,
                actual_end_location=quote.end_location,
                travel_date=req.travel_date or booked_at.date(),
                seat_number=req.seat_number,
                calculated_fare=quote.fare,
                amount_paid=quote.fare,
                distance_km=quote.distance_km,
                payment_status=PaymentStatus.PENDING,
                boarding_status=BoardingStatus.PENDING,
                journey_status=JourneyStatus.PENDING,
                created_at=booked_at,
            )
            self.session.add(ticket)
            await self.session.flush()
            ticket.qr_code = build_qr_code(ticket.id, ticket.vehicle_id, ticket.route_id, booked_at)

            await NotificationService(self.session).notify(
                buyer.id,
                "ticket_booked",
                "Ticket Booked",
                {
                    "ticket_id": ticket.id,
                    "route_name": route.route_name,
                    "start_location": quote.start_location,
                    "end_location": quote.end_location,
                    "amount": quote.fare,
                    "currency": settings.CURRENCY,
                },
            )

        TICKETS_BOOKED.labels(fare_source="stops" if quote.used_stops else "base").inc()
        logger.info("Ticket %s booked on route %s by user %s (fare %s)", ticket.id, route.id, buyer.id, quote.fare)
        return BookingResult(ticket=ticket, quote=quote)

    async def pay(
        self,
        ticket_id: int,
        phone_number: str,
        payment_method: Optional[str] = None,
        payer_id: Optional[int] = None,
        payer_is_admin: bool = False,
    ) -> PaymentResult:
        if not is_valid_momo_phone(phone_number):
            PAYMENT_FAILURE.labels(reason="invalid_phone").inc()
            raise InvalidPhoneFormat()

        method = payment_method or settings.DEFAULT_PAYMENT_METHOD
        sent = 0
        async with self.session.begin():
            ticket = await self.session.get(Ticket, ticket_id)
            if not ticket:
                raise TicketNotFound("Ticket not found")
            if payer_id is not None and not payer_is_admin and payer_id not in (ticket.buyer_id, ticket.passenger_id):
                raise Forbidden("You can only pay for your own tickets")
            if ticket.payment_status == PaymentStatus.COMPLETED:
                PAYMENT_FAILURE.labels(reason="already_paid").inc()
                raise TicketAlreadyPaid()

            ticket.payment_status = PaymentStatus.COMPLETED
            ticket.payment_method = method
            ticket.transaction_id = new_transaction_id()
            ticket.paid_at = _now()

            route = await self.session.get(Route, ticket.route_id)
            svc = NotificationService(self.session)
            context = {
                "ticket_id": ticket.id,
                "route_name": route.route_name if route else "",
                "amount": ticket.amount_paid,
                "currency": settings.CURRENCY,
                "transaction_id": ticket.transaction_id,
                "passenger_name": ticket.passenger_name,
            }
            traveller_id = await svc.resolve_recipient(TicketContact.from_ticket(ticket))
            if traveller_id:
                await svc.notify(traveller_id, "payment_received", "Payment Successful", context)
                sent += 1
            else:
                logger.info("No user account for the traveller of ticket %s", ticket.id)
            if ticket.buyer_id and ticket.buyer_id != traveller_id:
                await svc.notify(ticket.buyer_id, "payment_received_buyer", "Payment Successful", context)
                sent += 1

        PAYMENT_SUCCESS.labels(method=method).inc()
        logger.info("Ticket %s paid (%s, %s)", ticket.id, method, ticket.transaction_id)
        return PaymentResult(ticket=ticket, notifications_sent=sent)

    async def scan_and_validate(self, qr_code: str, vehicle_id: int, driver_user_id: Optional[int] = None) -> ScanResult:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            await self._driver_for_vehicle(driver_user_id, vehicle)

            res = await self.session.execute(
                sa_select(Ticket)
                .where(Ticket.qr_code == qr_code)
                .where(Ticket.payment_status == PaymentStatus.COMPLETED)
            )
            ticket = res.scalars().first()
            if not ticket:
                raise TicketNotFound()
            if ticket.vehicle_id != vehicle.id:
                raise VehicleMismatch()
            route = await self.session.get(Route, ticket.route_id)

        return ScanResult(
            ticket=ticket,
            route_name=route.route_name if route else None,
            plate_number=vehicle.plate_number,
        )

    async def confirm_boarding(self, ticket_id: int, driver_user_id: Optional[int] = None) -> Ticket:
        async with self.session.begin():
            ticket = await self.session.get(Ticket, ticket_id)
            if not ticket:
                raise TicketNotFound("Ticket not found")
            plate_number = None
            if ticket.vehicle_id is not None:
                vehicle = await self._vehicle(ticket.vehicle_id)
                await self._driver_for_vehicle(driver_user_id, vehicle)
                plate_number = vehicle.plate_number
            elif driver_user_id is not None:
                raise NotAssignedToVehicle()
            if ticket.payment_status != PaymentStatus.COMPLETED:
                raise TicketNotPaid()

            ticket.boarding_status = BoardingStatus.CONFIRMED
            ticket.journey_status = JourneyStatus.IN_PROGRESS
            ticket.boarding_confirmed_at = _now()

            svc = NotificationService(self.session)
            user_id = await svc.resolve_recipient(TicketContact.from_ticket(ticket))
            if user_id:
                await svc.notify(
                    user_id,
                    "boarding_confirmed",
                    "Boarding Confirmed",
                    {"ticket_id": ticket.id, "plate_number": plate_number},
                )

        JOURNEY_TRANSITIONS.labels(to_state=JourneyStatus.IN_PROGRESS).inc()
        return ticket

    async def start_journey(self, vehicle_id: int, driver_user_id: Optional[int] = None) -> JourneyResult:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            await self._driver_for_vehicle(driver_user_id, vehicle)

            tickets = await self._vehicle_tickets(
                vehicle.id,
                payment_status=PaymentStatus.COMPLETED,
                journey_status=JourneyStatus.PENDING,
            )
            now = _now()
            for ticket in tickets:
                ticket.journey_status = JourneyStatus.IN_PROGRESS
                ticket.boarding_status = BoardingStatus.CONFIRMED
                ticket.boarding_confirmed_at = ticket.boarding_confirmed_at or now
            route_names = await self._route_names(t.route_id for t in tickets)
            contacts = [TicketContact.from_ticket(t) for t in tickets]
            routes_by_ticket = {t.id: route_names.get(t.route_id, "") for t in tickets}

        JOURNEY_TRANSITIONS.labels(to_state=JourneyStatus.IN_PROGRESS).inc(len(tickets))
        plate = vehicle.plate_number
        notified = await self._fan_out(
            contacts,
            "journey_started",
            "Journey Started",
            lambda c: {"ticket_id": c.ticket_id, "route_name": routes_by_ticket.get(c.ticket_id, ""), "plate_number": plate},
        )
        logger.info("Journey started on vehicle %s: %s tickets, %s notified", vehicle_id, len(tickets), notified)
        return JourneyResult(vehicle_id=vehicle.id, tickets_updated=len(tickets), passengers_notified=notified)

    async def stop_journey(self, vehicle_id: int, driver_user_id: Optional[int] = None) -> JourneyResult:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            await self._driver_for_vehicle(driver_user_id, vehicle)

            tickets = await self._vehicle_tickets(vehicle.id, journey_status=JourneyStatus.IN_PROGRESS)
            now = _now()
            for ticket in tickets:
                ticket.journey_status = JourneyStatus.COMPLETED
                ticket.journey_completed_at = now
            route_names = await self._route_names(t.route_id for t in tickets)
            contacts = [TicketContact.from_ticket(t) for t in tickets]
            routes_by_ticket = {t.id: route_names.get(t.route_id, "") for t in tickets}

        JOURNEY_TRANSITIONS.labels(to_state=JourneyStatus.COMPLETED).inc(len(tickets))
        notified = await self._fan_out(
            contacts,
            "journey_completed",
            "Journey Completed",
            lambda c: {"ticket_id": c.ticket_id, "route_name": routes_by_ticket.get(c.ticket_id, "")},
        )
        logger.info("Journey completed on vehicle %s: %s tickets, %s notified", vehicle_id, len(tickets), notified)
        return JourneyResult(vehicle_id=vehicle.id, tickets_updated=len(tickets), passengers_notified=notified)

    async def update_location(
        self,
        vehicle_id: int,
        current_location: str,
        latitude=None,
        longitude=None,
        speed=None,
        heading=None,
        estimated_arrival: Optional[str] = None,
        driver_user_id: Optional[int] = None,
    ) -> LocationResult:
        async with self.session.begin():
            vehicle = await self._vehicle(vehicle_id)
            driver = await self._driver_for_vehicle(driver_user_id, vehicle)
            driver_id = driver.id if driver else vehicle.assigned_driver
            now = _now()

            position = dict(
                driver_id=driver_id,
                current_location=current_location,
                latitude=latitude,
                longitude=longitude,
                speed=speed,
                heading=heading,
                estimated_arrival=estimated_arrival,
            )
            tracking = VehicleTracking(vehicle_id=vehicle.id, created_at=now, **position)
            self.session.add(tracking)

            live = await self.session.get(VehicleLocationLive, vehicle.id)
            if live is None:
                live = VehicleLocationLive(vehicle_id=vehicle.id)
                self.session.add(live)
            for field, value in position.items():
                setattr(live, field, value)
            live.last_updated = now

            tickets = await self._vehicle_tickets(vehicle.id, journey_status=JourneyStatus.IN_PROGRESS)
            contacts = [TicketContact.from_ticket(t) for t in tickets]

        LOCATION_UPDATES.inc()
        context = {
            "plate_number": vehicle.plate_number,
            "current_location": current_location,
            "estimated_arrival": estimated_arrival,
        }
        notified = await self._fan_out(contacts, "location_update", "Journey Update", lambda c: context)
        return LocationResult(tracking=tracking, passengers_notified=notified)
