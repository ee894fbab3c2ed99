"""
Domain errors raised by the booking service and the account functions.
Each error carries the HTTP status and a stable code that the exception
handlers in run.py render as {"detail": ..., "error": ...}.
"""


class ServiceError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class SlotNotFound(NotFound):
    code = "slot_not_found"


class ConnectorMismatch(ServiceError):
    status_code = 400
    code = "connector_mismatch"


class InvalidSlot(ServiceError):
    status_code = 400
    code = "invalid_slot"


class InvalidStationUpdate(ServiceError):
    status_code = 400
    code = "invalid_station_update"


class DuplicateUsername(ServiceError):
    status_code = 400
    code = "duplicate_username"


class DuplicateEmail(ServiceError):
    status_code = 400
    code = "duplicate_email"


class SlotUnavailable(ServiceError):
    status_code = 409
    code = "slot_unavailable"


class StationNotOperational(ServiceError):
    status_code = 409
    code = "station_not_operational"


class StationInUse(ServiceError):
    status_code = 409
    code = "station_in_use"


class InvalidStatusTransition(ServiceError):
    status_code = 409
    code = "invalid_status_transition"


class InvalidCredentials(ServiceError):
    status_code = 401
    code = "invalid_credentials"
