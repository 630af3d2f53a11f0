class BookingError(Exception):
    """Base for errors surfaced to API callers as {"error", "code"}."""
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(BookingError):
    status_code = 400
    code = "invalid_request"


class InvalidPriceError(BookingError):
    status_code = 400
    code = "invalid_price"


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class SlotTakenError(BookingError):
    status_code = 409
    code = "slot_taken"


class BookingConflictError(BookingError):
    status_code = 409
    code = "booking_conflict"


class InvalidStateError(BookingError):
    status_code = 409
    code = "invalid_state"


class PaymentRequiredError(BookingError):
    status_code = 402
    code = "payment_incomplete"


class PaymentProviderError(BookingError):
    status_code = 502
    code = "payment_provider_error"
