# homenet/errors.py
"""Exceptions surfaced at the HTTP boundary.

Pricing, duration and slot checks never raise these for an ordinary "no";
they return result objects and the request handlers translate those into
the exceptions below when a response has to be aborted.
"""

# Machine-readable rejection reasons
NOTHING_SELECTED = 'nothing selected'
SLOT_UNAVAILABLE = 'slot unavailable'
DUPLICATE_RECENT_BOOKING = 'duplicate recent booking'
OUTSIDE_BUSINESS_RULES = 'outside business rules'
DUPLICATE_RECENT_QUOTE = 'duplicate recent quote'
DUPLICATE_RECENT_REQUEST = 'duplicate recent request'
INVALID_TRANSITION = 'invalid status transition'
STILL_REFERENCED = 'still referenced'


class ApiError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(ApiError):
    """Bad shape or range on input; nothing was computed or persisted."""

    def __init__(self, details) -> None:
        if isinstance(details, str):
            details = [details]
        super().__init__('Validation failed', 400)
        self.details = list(details)

    def to_dict(self) -> dict:
        return {'error': self.message, 'details': self.details}


class BusinessRuleError(ApiError):
    """Well-formed request refused by a business rule."""

    def __init__(self, message: str, reason: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)
        self.reason = reason

    def to_dict(self) -> dict:
        return {'error': self.message, 'reason': self.reason}


class QuoteNumberExhausted(ApiError):
    """No unique 8-digit number could be drawn; the whole request may be retried."""

    status_code = 503

    def __init__(self, attempts: int, label: str = 'quote number') -> None:
        super().__init__(f'Could not allocate a {label}, please retry', 503)
        self.attempts = attempts

    def to_dict(self) -> dict:
        return {'error': self.message, 'retryable': True}
