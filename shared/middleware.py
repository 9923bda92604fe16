# shared/middleware.py
"""
Centralized middleware for the CharacterForge services.
Provides consistent request validation, error handling, and security headers across all services.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from shared.errors import FunctionError, RateLimitError

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create the standard `{"error": ..., "code": ...}` body"""
    content: Dict[str, Any] = {"error": message}
    if code:
        content["code"] = code
    if details:
        content.update(details)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """
    Request validation middleware with:
    - Request size limits
    - Content type validation
    - Request logging
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 1024 * 1024,
        allowed_content_types: Optional[list] = None,
        log_requests: bool = True,
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.allowed_content_types = allowed_content_types or [
            "application/json",
            "text/plain",
        ]
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        if self._should_skip_validation(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            return error_response(
                413,
                f"Request too large. Maximum size: {self.max_request_size} bytes",
                code="REQUEST_TOO_LARGE",
            )

        if request.method in ["POST", "PUT", "PATCH"]:
            content_type = request.headers.get("content-type", "").split(";")[0].strip()
            if content_type and content_type not in self.allowed_content_types:
                return error_response(
                    415, f"Unsupported content type: {content_type}", code="UNSUPPORTED_MEDIA_TYPE"
                )

        if self.log_requests:
            logger.info(
                f"{request.method} {request.url.path} - Client: {request.client.host if request.client else 'unknown'}"
            )

        response = await call_next(request)

        if self.log_requests:
            process_time = time.time() - start_time
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s"
            )

        return response

    def _should_skip_validation(self, path: str) -> bool:
        skip_paths = ["/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"]
        return any(path.startswith(skip_path) for skip_path in skip_paths)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    def __init__(self, app: ASGIApp, service_name: str = "characterforge"):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Service-Name"] = self.service_name

        if "json" in response.headers.get("content-type", ""):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"

        return response


def create_standard_error_handlers() -> dict:
    """Create standardized error handlers for FastAPI apps"""

    async def function_error_handler(request: Request, exc: FunctionError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.url.path}: {exc.message}")
        headers = None
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
        payload = exc.to_dict()
        return JSONResponse(status_code=exc.status_code, content=payload, headers=headers)

    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Pydantic validation errors surface as 400 with the first offending field"""
        errors = exc.errors()
        field = None
        message = "Invalid request body"
        if errors:
            first = errors[0]
            location = [str(part) for part in first.get("loc", ()) if part != "body"]
            field = ".".join(location) or None
            message = first.get("msg", message)
            if field:
                message = f"Invalid {field}: {message}"
        details = {"field": field} if field else None
        return error_response(400, message, code="VALIDATION_ERROR", details=details)

    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return error_response(500, str(exc) or "Internal Server Error", code="INTERNAL_ERROR")

    return {
        "function_error_handler": function_error_handler,
        "validation_exception_handler": validation_exception_handler,
        "http_exception_handler": http_exception_handler,
        "general_exception_handler": general_exception_handler,
    }


def add_middleware_to_app(
    app,
    service_name: str,
    max_request_size: int = 1024 * 1024,
    log_requests: bool = True,
):
    """
    Add all standard middleware and exception handlers to a FastAPI app

    Args:
        app: FastAPI application instance
        service_name: Name of the service (for headers and logging)
        max_request_size: Maximum request size in bytes
        log_requests: Whether to log requests
    """
    # Last added is executed first
    app.add_middleware(SecurityHeadersMiddleware, service_name=service_name)
    app.add_middleware(
        RequestValidationMiddleware,
        max_request_size=max_request_size,
        log_requests=log_requests,
    )

    handlers = create_standard_error_handlers()
    app.add_exception_handler(FunctionError, handlers["function_error_handler"])
    app.add_exception_handler(RequestValidationError, handlers["validation_exception_handler"])
    app.add_exception_handler(HTTPException, handlers["http_exception_handler"])
    app.add_exception_handler(Exception, handlers["general_exception_handler"])
