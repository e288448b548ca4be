"""Domain errors raised by the booking engine.

Each error carries a user-displayable ``detail`` and the name of the operation
that failed. Routes map them onto HTTP status codes; nothing in the core retries.
"""


class BookingError(Exception):
    status_code = 400

    def __init__(self, detail: str, operation: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.operation = operation


class ValidationError(BookingError):
    status_code = 400


class PermissionDeniedError(BookingError):
    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class CapacityExceededError(BookingError):
    status_code = 409


class ConcurrencyConflictError(BookingError):
    status_code = 409


class PaymentFailedError(BookingError):
    status_code = 402


class TooLateError(BookingError):
    status_code = 422


class StoreError(BookingError):
    status_code = 503

    def __init__(self, operation: str):
        super().__init__(f'{operation} failed', operation=operation)
