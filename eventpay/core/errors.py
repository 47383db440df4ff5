"""Application errors. Routes render these through a single exception handler."""


class AppError(Exception):
    """Base class for application errors."""

    status_code = 400
    code = "APP_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)


class ValidationError(AppError):
    """Invalid input, rejected before any state change."""

    status_code = 422
    code = "VALIDATION_ERROR"


class NotFound(AppError):
    """Resource not found."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """A concurrent transition already changed the record."""

    status_code = 409
    code = "CONFLICT"


class IllegalTransition(AppError):
    """Requested status change is not an edge of the ticket state machine."""

    status_code = 500
    code = "ILLEGAL_TRANSITION"


class TicketStateError(AppError):
    """Operation not allowed in the current state."""

    status_code = 409
    code = "INVALID_STATE"


class ReceiptUnavailable(AppError):
    """Receipt is only available once the ticket is paid."""

    status_code = 409
    code = "RECEIPT_UNAVAILABLE"


class GatewayUnavailable(AppError):
    """Checkout is temporarily unavailable, please try again."""

    status_code = 503
    code = "GATEWAY_UNAVAILABLE"


class InvalidSignature(AppError):
    """Callback authenticity could not be verified."""

    status_code = 401
    code = "INVALID_SIGNATURE"


def to_payload(error: AppError) -> dict:
    return {"detail": error.message, "code": error.code}
