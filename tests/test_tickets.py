from datetime import datetime, timezone
from decimal import Decimal

import pytest

from camny.enums import BoardingStatus, JourneyStatus, PaymentStatus, TicketState
from camny.exceptions import (
    BadRequest,
    InvalidPhoneFormat,
    NotAssignedToVehicle,
    TicketAlreadyPaid,
    TicketNotFound,
    TicketNotPaid,
    VehicleMismatch,
)
from camny.models.models import Notification, Ticket, VehicleLocationLive, VehicleTracking
from camny.services.notification_service import NotificationService, TicketContact
from camny.services.phones import is_valid_momo_phone, normalize_phone
from camny.services.tickets import BookingRequest, TicketLifecycle, build_qr_code

pytestmark = pytest.mark.anyio


def _paid(**kw):
    return dict(payment_status=PaymentStatus.COMPLETED, **kw)


async def test_book_and_pay_for_someone_else(seed, session_factory):
    buyer = await seed.user(phone="0781111111", full_name="Alice")
    traveller = await seed.user(phone="0788123456", full_name="Bob")
    route = await seed.route(fare_base=1000)

    async with session_factory() as session:
        booking = await TicketLifecycle(session, session_factory).book(
            buyer.id,
            BookingRequest(route_id=route.id, passenger_name="Bob", passenger_phone="0788 123 456"),
        )
    ticket = booking.ticket
    assert ticket.calculated_fare == Decimal("1000")
    assert ticket.buyer_id == buyer.id
    assert ticket.passenger_id is None
    assert ticket.passenger_phone == "0788123456"
    assert ticket.lifecycle_state == TicketState.PENDING_PAYMENT
    assert len(ticket.qr_code) == 32

    async with session_factory() as session:
        result = await TicketLifecycle(session, session_factory).pay(ticket.id, "0788123456", payer_id=buyer.id)
    paid = result.ticket
    assert paid.payment_status == PaymentStatus.COMPLETED
    assert paid.transaction_id.startswith("TXN") and len(paid.transaction_id) == 19
    assert paid.paid_at is not None
    assert result.notifications_sent == 2

    titles = {n.user_id: n.title for n in await seed.all(Notification, Notification.title == "Payment Successful")}
    assert titles == {buyer.id: "Payment Successful", traveller.id: "Payment Successful"}


async def test_self_booking_notifies_once_on_payment(seed, session_factory):
    buyer = await seed.user(phone="0781111111")
    route = await seed.route(fare_base=1500)

    async with session_factory() as session:
        booking = await TicketLifecycle(session, session_factory).book(buyer.id, BookingRequest(route_id=route.id))
    assert booking.ticket.passenger_id == buyer.id
    assert booking.ticket.passenger_phone == "0781111111"
    assert not booking.quote.used_stops

    async with session_factory() as session:
        result = await TicketLifecycle(session).pay(booking.ticket.id, "+250781111111", payer_id=buyer.id)
    assert result.notifications_sent == 1
    assert await seed.count(Notification, Notification.title == "Ticket Booked") == 1


async def test_booking_between_stops_charges_segment_fare(seed, session_factory):
    buyer = await seed.user()
    route = await seed.route(fare_base=1000)
    s1 = await seed.stop(route, "Nyabugogo", 1, 0)
    await seed.stop(route, "Muhanga", 2, 500)
    s3 = await seed.stop(route, "Huye", 3, 1200)

    async with session_factory() as session:
        booking = await TicketLifecycle(session).book(
            buyer.id, BookingRequest(route_id=route.id, start_stop_id=s3.id, end_stop_id=s1.id)
        )
    assert booking.ticket.calculated_fare == Decimal("1200")
    assert booking.ticket.actual_start_location == "Huye"
    assert booking.ticket.actual_end_location == "Nyabugogo"
    assert booking.quote.used_stops


async def test_booking_for_someone_else_requires_name(seed, session_factory):
    buyer = await seed.user(phone="0781111111")
    route = await seed.route()

    async with session_factory() as session:
        with pytest.raises(BadRequest):
            await TicketLifecycle(session).book(
                buyer.id, BookingRequest(route_id=route.id, passenger_phone="0789999999")
            )
    assert await seed.count(Ticket) == 0


@pytest.mark.parametrize(
    "phone,valid",
    [
        ("0788123456", True),
        ("0798123456", True),
        ("+250788123456", True),
        ("250 788-123-456", True),
        ("0728123456", False),
        ("078812345", False),
        ("", False),
    ],
)
def test_momo_phone_format(phone, valid):
    assert is_valid_momo_phone(phone) is valid


def test_normalize_phone_folds_country_code():
    assert normalize_phone("+250 788-123-456") == "0788123456"
    assert normalize_phone("250788123456") == "0788123456"
    assert normalize_phone("0788123456") == "0788123456"
    assert normalize_phone(None) == ""


async def test_recipient_matches_phone_in_any_spelling(seed, session_factory):
    stored_intl = await seed.user(phone="+250788123456")
    stored_local = await seed.user(phone="0798765432")

    async with session_factory() as session:
        svc = NotificationService(session)
        assert await svc.resolve_recipient(TicketContact(ticket_id=1, passenger_phone="0788123456")) == stored_intl.id
        assert await svc.resolve_recipient(TicketContact(ticket_id=2, passenger_phone="+250 798 765 432")) == stored_local.id
        assert await svc.resolve_recipient(TicketContact(ticket_id=3, passenger_phone="0722000000")) is None


async def test_pay_rejects_bad_phone_and_double_payment(seed, session_factory):
    buyer = await seed.user()
    route = await seed.route()
    ticket = await seed.ticket(route, passenger=buyer)

    async with session_factory() as session:
        with pytest.raises(InvalidPhoneFormat):
            await TicketLifecycle(session).pay(ticket.id, "0721234567")
    async with session_factory() as session:
        await TicketLifecycle(session).pay(ticket.id, "0788123456")
    async with session_factory() as session:
        with pytest.raises(TicketAlreadyPaid):
            await TicketLifecycle(session).pay(ticket.id, "0788123456")
    async with session_factory() as session:
        with pytest.raises(TicketNotFound):
            await TicketLifecycle(session).pay(9999, "0788123456")


async def test_scan_validates_vehicle_and_payment(seed, session_factory):
    driver = await seed.driver()
    route = await seed.route(name="Kigali - Huye")
    bus = await seed.vehicle(driver=driver, route=route, plate="RAD 001A")
    other_bus = await seed.vehicle()
    ticket = await seed.ticket(route, vehicle=bus, **_paid(qr_code="A" * 32))
    elsewhere = await seed.ticket(route, vehicle=other_bus, **_paid(qr_code="B" * 32))
    unpaid = await seed.ticket(route, vehicle=bus, qr_code="C" * 32)

    async with session_factory() as session:
        scan = await TicketLifecycle(session).scan_and_validate(ticket.qr_code, bus.id, driver_user_id=driver.user_id)
    assert scan.ticket.id == ticket.id
    assert (scan.route_name, scan.plate_number) == ("Kigali - Huye", "RAD 001A")

    async with session_factory() as session:
        with pytest.raises(VehicleMismatch):
            await TicketLifecycle(session).scan_and_validate(elsewhere.qr_code, bus.id, driver_user_id=driver.user_id)
    for code in (unpaid.qr_code, "UNKNOWN"):
        async with session_factory() as session:
            with pytest.raises(TicketNotFound):
                await TicketLifecycle(session).scan_and_validate(code, bus.id, driver_user_id=driver.user_id)


async def test_booked_qr_code_scans_on_its_vehicle_only(seed, session_factory):
    buyer = await seed.user(phone="0788123456")
    driver = await seed.driver()
    other_driver = await seed.driver()
    route = await seed.route(name="Kigali - Huye")
    bus = await seed.vehicle(driver=driver, route=route, plate="RAG 555E")
    other_bus = await seed.vehicle(driver=other_driver, route=route)

    async with session_factory() as session:
        booking = await TicketLifecycle(session).book(buyer.id, BookingRequest(route_id=route.id, vehicle_id=bus.id))
    async with session_factory() as session:
        await TicketLifecycle(session).pay(booking.ticket.id, "0788123456", payer_id=buyer.id)

    qr_code = booking.ticket.qr_code
    async with session_factory() as session:
        scan = await TicketLifecycle(session).scan_and_validate(qr_code, bus.id, driver_user_id=driver.user_id)
    assert scan.ticket.id == booking.ticket.id
    assert scan.plate_number == "RAG 555E"

    async with session_factory() as session:
        with pytest.raises(VehicleMismatch):
            await TicketLifecycle(session).scan_and_validate(qr_code, other_bus.id, driver_user_id=other_driver.user_id)


async def test_scan_by_driver_of_another_vehicle_is_refused(seed, session_factory):
    owner = await seed.driver()
    stranger = await seed.driver()
    route = await seed.route()
    bus = await seed.vehicle(driver=owner, route=route)
    ticket = await seed.ticket(route, vehicle=bus, **_paid())

    async with session_factory() as session:
        with pytest.raises(NotAssignedToVehicle):
            await TicketLifecycle(session).scan_and_validate(ticket.qr_code, bus.id, driver_user_id=stranger.user_id)


async def test_confirm_boarding_requires_payment(seed, session_factory):
    driver = await seed.driver()
    passenger = await seed.user()
    route = await seed.route()
    bus = await seed.vehicle(driver=driver, route=route)
    unpaid = await seed.ticket(route, vehicle=bus, passenger=passenger)
    paid = await seed.ticket(route, vehicle=bus, passenger=passenger, **_paid())

    async with session_factory() as session:
        with pytest.raises(TicketNotPaid):
            await TicketLifecycle(session).confirm_boarding(unpaid.id, driver_user_id=driver.user_id)

    async with session_factory() as session:
        ticket = await TicketLifecycle(session).confirm_boarding(paid.id, driver_user_id=driver.user_id)
    assert ticket.boarding_status == BoardingStatus.CONFIRMED
    assert ticket.journey_status == JourneyStatus.IN_PROGRESS
    assert ticket.lifecycle_state == TicketState.JOURNEY_IN_PROGRESS
    assert await seed.count(Notification, Notification.user_id == passenger.id) == 1


async def test_start_journey_isolates_failing_notification(seed, session_factory, monkeypatch):
    driver = await seed.driver()
    route = await seed.route()
    bus = await seed.vehicle(driver=driver, route=route)
    riders = [await seed.user() for _ in range(3)]
    tickets = [await seed.ticket(route, vehicle=bus, passenger=r, **_paid()) for r in riders]
    await seed.ticket(route, vehicle=bus, passenger=riders[0])  # unpaid, left alone
    broken = tickets[1].id

    real_resolve = NotificationService.resolve_recipient

    async def _flaky(self, contact):
        if contact.ticket_id == broken:
            raise RuntimeError("lookup failed")
        return await real_resolve(self, contact)

    monkeypatch.setattr(NotificationService, "resolve_recipient", _flaky)

    async with session_factory() as session:
        result = await TicketLifecycle(session, session_factory).start_journey(bus.id, driver_user_id=driver.user_id)

    assert result.tickets_updated == 3
    assert result.passengers_notified == 2
    for t in tickets:
        stored = await seed.get(Ticket, t.id)
        assert stored.journey_status == JourneyStatus.IN_PROGRESS
        assert stored.boarding_status == BoardingStatus.CONFIRMED
        assert stored.boarding_confirmed_at is not None
    assert await seed.count(Notification, Notification.title == "Journey Started") == 2


async def test_stop_journey_completes_in_progress_tickets(seed, session_factory):
    driver = await seed.driver()
    rider = await seed.user()
    route = await seed.route()
    bus = await seed.vehicle(driver=driver, route=route)
    riding = await seed.ticket(route, vehicle=bus, passenger=rider, **_paid(journey_status=JourneyStatus.IN_PROGRESS))
    waiting = await seed.ticket(route, vehicle=bus, passenger=rider, **_paid())

    async with session_factory() as session:
        result = await TicketLifecycle(session, session_factory).stop_journey(bus.id, driver_user_id=driver.user_id)

    assert (result.tickets_updated, result.passengers_notified) == (1, 1)
    done = await seed.get(Ticket, riding.id)
    assert done.journey_status == JourneyStatus.COMPLETED
    assert done.journey_completed_at is not None
    assert (await seed.get(Ticket, waiting.id)).journey_status == JourneyStatus.PENDING


async def test_stop_journey_reaches_traveller_known_by_phone(seed, session_factory):
    driver = await seed.driver()
    traveller = await seed.user(phone="+250788123456")
    route = await seed.route()
    bus = await seed.vehicle(driver=driver, route=route)
    await seed.ticket(
        route,
        vehicle=bus,
        passenger_name="Aline",
        passenger_phone="0788123456",
        **_paid(journey_status=JourneyStatus.IN_PROGRESS),
    )

    async with session_factory() as session:
        result = await TicketLifecycle(session, session_factory).stop_journey(bus.id, driver_user_id=driver.user_id)

    assert result.passengers_notified == 1
    assert await seed.count(Notification, Notification.user_id == traveller.id) == 1


async def test_location_updates_keep_one_live_row(seed, session_factory):
    driver = await seed.driver()
    rider = await seed.user()
    route = await seed.route()
    bus = await seed.vehicle(driver=driver, route=route, plate="RAE 777B")
    await seed.ticket(route, vehicle=bus, passenger=rider, **_paid(journey_status=JourneyStatus.IN_PROGRESS))

    async with session_factory() as session:
        first = await TicketLifecycle(session, session_factory).update_location(
            bus.id, "Muhanga", latitude=-2.08, longitude=29.75, driver_user_id=driver.user_id
        )
    async with session_factory() as session:
        await TicketLifecycle(session, session_factory).update_location(
            bus.id, "Nyanza", estimated_arrival="30 min", driver_user_id=driver.user_id
        )

    assert first.passengers_notified == 1
    assert await seed.count(VehicleTracking, VehicleTracking.vehicle_id == bus.id) == 2
    (live,) = await seed.all(VehicleLocationLive)
    assert live.current_location == "Nyanza"
    assert live.driver_id == driver.id
    messages = [n.message for n in await seed.all(Notification, Notification.user_id == rider.id)]
    assert any("RAE 777B" in m and "30 min" in m for m in messages)


def test_qr_code_is_deterministic():
    booked = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
    code = build_qr_code(7, 3, 2, booked)
    assert code == build_qr_code(7, 3, 2, booked)
    assert code != build_qr_code(8, 3, 2, booked)
    assert len(code) == 32 and code == code.upper()
