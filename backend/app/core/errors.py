"""Typed failures raised by the billing services.

Every rejected operation surfaces as one of these; the API layer renders them
through a single exception handler as ``{"detail": ..., "code": ...}``.
"""


class BillingError(Exception):
    status_code = 400
    code = "billing_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    status_code = 400
    code = "validation_error"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class NothingToBill(ValidationError):
    code = "nothing_to_bill"


class ConfirmationRequired(ValidationError):
    status_code = 428
    code = "confirmation_required"


class InsufficientBalance(BillingError):
    status_code = 400
    code = "insufficient_balance"


class IllegalTransition(BillingError):
    status_code = 409
    code = "illegal_transition"


class NotFound(BillingError):
    status_code = 404
    code = "not_found"


class ConcurrencyConflict(BillingError):
    status_code = 409
    code = "concurrency_conflict"
