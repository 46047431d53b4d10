from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    Time,
    ForeignKey,
    Numeric,
    JSON,
    Text,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from camny.db.base import Base
from camny.enums import (
    Role,
    RecordStatus,
    PaymentStatus,
    BoardingStatus,
    JourneyStatus,
    TicketState,
    LoyaltyTier,
)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(32), nullable=True, unique=True)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # admin, driver or passenger
    role = Column(String(50), nullable=False, default=Role.PASSENGER, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Company(Base):
    __tablename__ = "companies"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class Route(Base):
    __tablename__ = "routes"
    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    route_name = Column(String(255), nullable=False)
    start_location = Column(String(128), nullable=False, index=True)
    end_location = Column(String(128), nullable=False, index=True)
    distance_km = Column(Numeric(8, 2), nullable=True)
    fare_base = Column(Numeric(10, 2), nullable=False, default=0)
    map_url = Column(String(512), nullable=True)
    # routes <-> vehicles/drivers reference each other; the FKs from this side are added after create
    assigned_vehicle = Column(
        Integer,
        ForeignKey("vehicles.id", ondelete="SET NULL", use_alter=True, name="fk_routes_assigned_vehicle"),
        nullable=True,
        index=True,
    )
    assigned_driver = Column(
        Integer,
        ForeignKey("drivers.id", ondelete="SET NULL", use_alter=True, name="fk_routes_assigned_driver"),
        nullable=True,
        index=True,
    )
    expected_start_time = Column(Time, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("fare_base >= 0", name="ck_routes_fare_base_non_negative"),)


class RouteStop(Base):
    __tablename__ = "route_stops"
    id = Column(Integer, primary_key=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    stop_name = Column(String(128), nullable=False)
    stop_order = Column(Integer, nullable=False)
    # cumulative from the first stop, non-decreasing with stop_order
    distance_from_start_km = Column(Numeric(8, 2), nullable=False, default=0)
    fare_from_start = Column(Numeric(10, 2), nullable=False, default=0)
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)

    __table_args__ = (UniqueConstraint("route_id", "stop_order", name="uq_route_stop_order"),)


class Driver(Base):
    __tablename__ = "drivers"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    license_number = Column(String(64), nullable=False, unique=True)
    status = Column(String(50), nullable=False, default=RecordStatus.ACTIVE)
    assigned_line_id = Column(Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", lazy="joined")


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    plate_number = Column(String(32), nullable=False, unique=True, index=True)
    model = Column(String(128), nullable=True)
    capacity = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default=RecordStatus.ACTIVE, index=True)
    assigned_driver = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_route = Column(Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class Ticket(Base):
    __tablename__ = "tickets"
    id = Column(Integer, primary_key=True)
    # user who booked; passenger_id is the traveller when they have an account
    buyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    passenger_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    passenger_name = Column(String(255), nullable=True)
    passenger_phone = Column(String(32), nullable=True, index=True)
    passenger_email = Column(String(255), nullable=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True, index=True)
    start_stop_id = Column(Integer, ForeignKey("route_stops.id", ondelete="SET NULL"), nullable=True)
    end_stop_id = Column(Integer, ForeignKey("route_stops.id", ondelete="SET NULL"), nullable=True)
    actual_start_location = Column(String(128), nullable=True)
    actual_end_location = Column(String(128), nullable=True)
    travel_date = Column(Date, nullable=True)
    seat_number = Column(String(16), nullable=True)
    calculated_fare = Column(Numeric(10, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    distance_km = Column(Numeric(8, 2), nullable=True)
    payment_status = Column(String(32), nullable=False, default=PaymentStatus.PENDING, index=True)
    payment_method = Column(String(64), nullable=True)
    transaction_id = Column(String(64), nullable=True, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    boarding_status = Column(String(32), nullable=False, default=BoardingStatus.PENDING)
    boarding_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    journey_status = Column(String(32), nullable=False, default=JourneyStatus.PENDING, index=True)
    journey_completed_at = Column(DateTime(timezone=True), nullable=True)
    qr_code = Column(String(64), nullable=True, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("ix_tickets_vehicle_payment", "vehicle_id", "payment_status"),)

    @property
    def lifecycle_state(self) -> str:
        if self.journey_status == JourneyStatus.COMPLETED:
            return TicketState.JOURNEY_COMPLETED
        if self.journey_status == JourneyStatus.IN_PROGRESS:
            return TicketState.JOURNEY_IN_PROGRESS
        if self.boarding_status == BoardingStatus.CONFIRMED:
            return TicketState.BOARDING_CONFIRMED
        if self.payment_status == PaymentStatus.COMPLETED:
            return TicketState.PAYMENT_COMPLETED
        return TicketState.PENDING_PAYMENT


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    message = Column(String(1024), nullable=False)
    channel = Column(String(64), nullable=False, default="in_app")
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class VehicleTracking(Base):
    __tablename__ = "vehicle_tracking"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    current_location = Column(String(255), nullable=True)
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)
    speed = Column(Numeric(6, 2), nullable=True)
    heading = Column(Numeric(5, 2), nullable=True)
    estimated_arrival = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


class VehicleLocationLive(Base):
    __tablename__ = "vehicle_location_live"
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    current_location = Column(String(255), nullable=True)
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)
    speed = Column(Numeric(6, 2), nullable=True)
    heading = Column(Numeric(5, 2), nullable=True)
    estimated_arrival = Column(String(64), nullable=True)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class LoyaltyAccount(Base):
    __tablename__ = "loyalty_points"
    id = Column(Integer, primary_key=True)
    passenger_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    total_points = Column(Integer, nullable=False, default=0)
    redeemed_points = Column(Integer, nullable=False, default=0)
    available_points = Column(Integer, nullable=False, default=0)
    tier = Column(String(20), nullable=False, default=LoyaltyTier.BRONZE)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class LoyaltyTransaction(Base):
    __tablename__ = "loyalty_transactions"
    id = Column(Integer, primary_key=True)
    passenger_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("type IN ('earned', 'redeemed')", name="ck_loyalty_transactions_type"),)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True)
    passenger_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=True, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(255), nullable=False)
    object_type = Column(String(128), nullable=True)
    object_id = Column(String(128), nullable=True)
    detail = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
