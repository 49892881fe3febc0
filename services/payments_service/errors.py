"""Domain errors raised by the payments service.

Every error carries the HTTP status it maps to; ``app.main`` registers one
handler that renders them as ``{"detail": message}``.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class PaymentError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Payment processing failed"):
        self.message = message
        super().__init__(message)


class RequestValidationFailed(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class BusinessRuleViolation(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyEnrolled(BusinessRuleViolation):
    def __init__(self, message: str = "Student is already enrolled in this product"):
        super().__init__(message)


class CapacityExceeded(BusinessRuleViolation):
    def __init__(self, message: str = "Product has reached its enrollment limit"):
        super().__init__(message)


class InactiveEntity(BusinessRuleViolation):
    pass


class InvalidProductType(BusinessRuleViolation):
    pass


class InvalidPrice(BusinessRuleViolation):
    def __init__(self, message: str = "Product price must be greater than zero"):
        super().__init__(message)


class OrderMismatch(BusinessRuleViolation):
    def __init__(self, message: str = "Order id does not match payment intent"):
        super().__init__(message)


class SignatureMismatch(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class NotFound(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND


class SettlementConflict(PaymentError):
    status_code = status.HTTP_409_CONFLICT


class GatewayCommunicationError(PaymentError):
    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(PaymentError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Failed to persist payment record"):
        super().__init__(message)


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
