# shared/errors.py
"""
Typed errors raised by CharacterForge services.
Each error carries the HTTP status it maps to and a stable machine-readable code,
so routes can raise them and the shared handlers turn them into JSON responses.
"""

from typing import Optional


class FunctionError(Exception):
    """Base error for all service-level failures"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self, message: str, status_code: Optional[int] = None, code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class AuthenticationError(FunctionError):
    status_code = 401
    code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication required", code: Optional[str] = None):
        super().__init__(message, code=code)


class ValidationError(FunctionError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class InsufficientCreditsError(FunctionError):
    status_code = 402
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, message: str = "Insufficient Credits"):
        super().__init__(message)


class RateLimitError(FunctionError):
    status_code = 429
    code = "RATE_LIMIT"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class PaymentError(FunctionError):
    status_code = 400
    code = "PAYMENT_ERROR"


class ProviderBillingError(FunctionError):
    """The upstream image provider refused the request for account/billing reasons"""

    status_code = 424
    code = "PROVIDER_BILLING"

    def __init__(
        self,
        message: str = "System Error: The AI provider requires a billed account. Please contact the developer.",
    ):
        super().__init__(message)
