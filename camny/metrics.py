from prometheus_client import Counter

# Booking / payment metrics
TICKETS_BOOKED = Counter("camny_tickets_booked_total", "Tickets booked", ["fare_source"])
PAYMENT_SUCCESS = Counter("camny_payments_success_total", "Successful payments processed", ["method"])
PAYMENT_FAILURE = Counter("camny_payments_failure_total", "Rejected payments", ["reason"])

# Fare resolution falling back to the route's base fare
FARE_FALLBACKS = Counter("camny_fare_fallbacks_total", "Stop-based fares replaced by the base fare", ["reason"])

# Notification metrics
NOTIFICATIONS_CREATED = Counter("camny_notifications_created_total", "Notifications inserted", ["kind"])
NOTIFICATIONS_FAILED = Counter("camny_notifications_failed_total", "Notifications that could not be delivered to a user", ["kind"])

# Journey / tracking
JOURNEY_TRANSITIONS = Counter("camny_journey_transitions_total", "Tickets moved between journey states", ["to_state"])
LOCATION_UPDATES = Counter("camny_location_updates_total", "GPS location updates received")
