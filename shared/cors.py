# shared/cors.py
import os

from fastapi.middleware.cors import CORSMiddleware

DEFAULT_ALLOWED_ORIGINS = [
    "https://characterforge.app",
    "https://www.characterforge.app",
    "https://app.characterforge.app",
    "http://localhost:3000",
    "http://localhost:5173",
]

ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type", "x-api-key"]
ALLOWED_METHODS = ["POST", "GET", "OPTIONS", "DELETE", "PUT"]


def get_allowed_origins() -> list[str]:
    """Origins allowed to call the services; ALLOWED_ORIGINS overrides the defaults"""
    configured = os.getenv("ALLOWED_ORIGINS")
    if not configured:
        return list(DEFAULT_ALLOWED_ORIGINS)
    # Wildcards are never accepted, the list must be explicit
    return [origin.strip() for origin in configured.split(",") if origin.strip() and origin.strip() != "*"]


def add_cors_to_app(app, allowed_origins: list[str] = None) -> None:
    """Attach the CORS policy; preflight OPTIONS requests are answered by the middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or get_allowed_origins(),
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
