"""String values stored in the status/role columns."""


class Role:
    ADMIN = "admin"
    DRIVER = "driver"
    PASSENGER = "passenger"

    ALL = (ADMIN, DRIVER, PASSENGER)


class RecordStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentStatus:
    PENDING = "pending"
    COMPLETED = "completed"


class BoardingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"


class JourneyStatus:
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TicketState:
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_COMPLETED = "payment_completed"
    BOARDING_CONFIRMED = "boarding_confirmed"
    JOURNEY_IN_PROGRESS = "journey_in_progress"
    JOURNEY_COMPLETED = "journey_completed"


class LoyaltyTier:
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    # (minimum total points, tier), highest first
    THRESHOLDS = ((10000, PLATINUM), (5000, GOLD), (1000, SILVER), (0, BRONZE))


class LoyaltyTransactionType:
    EARNED = "earned"
    REDEEMED = "redeemed"
