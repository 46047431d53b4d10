from .models import *

__all__ = [
    "Base",
    "User",
    "Company",
    "Route",
    "RouteStop",
    "Driver",
    "Vehicle",
    "Ticket",
    "Notification",
    "VehicleTracking",
    "VehicleLocationLive",
    "LoyaltyAccount",
    "LoyaltyTransaction",
    "Review",
    "AuditLog",
]
