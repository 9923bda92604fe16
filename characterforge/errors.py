# characterforge/errors.py
"""
Errors raised by the CharacterForge SDK.

Every error has a stable ``code`` so callers can branch on the kind of failure
without matching on messages, and a ``retryable`` flag used by the retry engine.
"""

from typing import Any, Optional

RETRYABLE_MESSAGE_HINTS = ("network", "timeout", "fetch", "connection")


class CharacterForgeError(Exception):
    code = "CHARACTERFORGE_ERROR"
    retryable = False

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class AuthenticationError(CharacterForgeError):
    code = "AUTH_ERROR"

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(message)


class InsufficientCreditsError(CharacterForgeError):
    code = "INSUFFICIENT_CREDITS"
    call_to_action = "Please purchase more credits to continue generating characters."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or f"Insufficient credits. {self.call_to_action}")


class RateLimitError(CharacterForgeError):
    code = "RATE_LIMIT"
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please wait a moment and try again.",
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after


class NetworkError(CharacterForgeError):
    code = "NETWORK_ERROR"
    retryable = True


class ApiError(CharacterForgeError):
    """The API answered with an infrastructure failure (408 or 5xx)"""

    code = "API_ERROR"
    retryable = True

    def __init__(self, message: str, status_code: int, operation: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation


class GenerationError(CharacterForgeError):
    code = "GENERATION_ERROR"


class ValidationError(CharacterForgeError):
    code = "VALIDATION_ERROR"


class ConfigValidationError(ValidationError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CacheError(CharacterForgeError):
    code = "CACHE_ERROR"


class PaymentError(CharacterForgeError):
    code = "PAYMENT_ERROR"


def is_retryable_error(error: BaseException) -> bool:
    if isinstance(error, CharacterForgeError):
        return error.retryable
    message = str(error).lower()
    return any(hint in message for hint in RETRYABLE_MESSAGE_HINTS)


def error_from_response(
    status: int, body: Any, operation: str = "generate-character"
) -> CharacterForgeError:
    """Classify an HTTP failure: status code first, then the message text"""
    server_message = None
    retry_after = None
    if isinstance(body, dict):
        server_message = body.get("error") or body.get("message")
        retry_after = body.get("retry_after")
    server_message = str(server_message) if server_message else None
    message = server_message or "An unexpected error occurred"

    if status == 401:
        return AuthenticationError(message)
    if status == 402:
        return InsufficientCreditsError(server_message)
    if status == 429:
        return RateLimitError(retry_after=retry_after)
    if status == 400:
        return ValidationError(message)
    if status == 408 or status >= 500:
        return ApiError(message, status, operation)

    lowered = message.lower()
    if "api key" in lowered or "unauthorized" in lowered:
        return AuthenticationError(message)
    if "credits" in lowered:
        return InsufficientCreditsError(message)
    if "rate limit" in lowered:
        return RateLimitError(retry_after=retry_after)

    return GenerationError(message)
