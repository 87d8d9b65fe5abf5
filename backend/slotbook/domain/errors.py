class BookingError(Exception):
    """Base class for booking domain errors."""


class NotFoundError(BookingError):
    pass


class LeadTimeViolationError(BookingError):
    pass


class OutsideAvailabilityError(BookingError):
    pass


class ConflictError(BookingError):
    pass


class PaymentInitiationError(BookingError):
    def __init__(self, message: str, *, booking_id: int) -> None:
        super().__init__(message)
        self.booking_id = booking_id


class InvalidPaymentEventError(BookingError):
    pass
