"""
Exceptions raised by services and routers.

Each class carries its HTTP status and a default message so callers can
`raise TicketNotFound()` or override the text with `raise NotFound("Driver not found")`.
The handlers in `camny.main` render every one of them as `{"error": detail}`.
"""

from fastapi import HTTPException, status


class APIException(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Bad request"
    headers = None

    def __init__(self, detail: str = None, headers: dict = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.detail,
            headers=headers or self.headers,
        )


class BadRequest(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Bad request"


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Insufficient permissions"


# fares
class InvalidStopPair(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Both start and end stops must be found on the route"


# payments
class InvalidPhoneFormat(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid MTN Mobile Money phone number"


class TicketAlreadyPaid(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Ticket already paid"


# boarding
class TicketNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid or unpaid ticket"


class TicketNotPaid(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "Ticket has not been paid"


class VehicleMismatch(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This ticket is not for your vehicle"


class NotAssignedToVehicle(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "You are not assigned to this vehicle"
