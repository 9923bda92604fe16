# shared/auth_middleware.py
import hashlib
import hmac
import logging
import os
from typing import Optional

import jwt
from fastapi import Depends, Request
from pydantic import BaseModel

from shared.database import Database, get_db
from shared.errors import AuthenticationError

logger = logging.getLogger(__name__)

# Supabase signs session tokens with the project's JWT secret
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"
API_KEY_PREFIX = "sk_"


class TokenData(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None


class AuthContext(BaseModel):
    """Who is calling and which credential they used"""

    user_id: str
    api_key_id: Optional[str] = None
    is_api_request: bool = False
    email: Optional[str] = None


def _jwt_secret() -> str:
    return os.getenv("SUPABASE_JWT_SECRET", "dev-secret-key-change-in-production")


def verify_token(token: str) -> TokenData:
    """Verify and decode a session JWT"""
    try:
        payload = jwt.decode(
            token, _jwt_secret(), algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired", code="INVALID_TOKEN")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid authentication token", code="INVALID_TOKEN")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user ID", code="INVALID_TOKEN")

    return TokenData(user_id=user_id, email=payload.get("email"), role=payload.get("role"))


def hash_api_key(api_key: str) -> str:
    """Salted digest of a raw API key; only this value is ever stored"""
    salt = os.getenv("API_KEY_SALT", "")
    return hmac.new(salt.encode("utf-8"), api_key.encode("utf-8"), hashlib.sha256).hexdigest()


def _strip_bearer(value: str) -> str:
    value = value.strip()
    if value.lower().startswith("bearer "):
        value = value[7:]
    return value.strip()


def extract_api_key(request: Request) -> Optional[str]:
    """API key from x-api-key, or an sk_-prefixed Authorization token (legacy clients)"""
    header = request.headers.get("x-api-key")
    if header:
        return _strip_bearer(header) or None

    auth_header = request.headers.get("authorization")
    if auth_header:
        token = _strip_bearer(auth_header)
        if token.startswith(API_KEY_PREFIX):
            logger.warning("⚠️ AUTH: API key sent in Authorization header, use x-api-key instead")
            return token
    return None


def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    token = _strip_bearer(auth_header)
    if not token or token.startswith(API_KEY_PREFIX):
        return None
    return token


async def authenticate_with_api_key(api_key: str, db: Database) -> AuthContext:
    logger.info(f"🔑 AUTH: Authenticating with API key {api_key[:10]}...")

    record = await db.fetch_one(
        "SELECT id, user_id, deleted_at FROM api_keys WHERE key_hash = $1",
        hash_api_key(api_key),
    )

    if not record:
        raise AuthenticationError("Invalid or inactive API key", code="INVALID_API_KEY")

    if record.get("deleted_at"):
        raise AuthenticationError(
            "This API key has been revoked. Please create a new key.", code="REVOKED_API_KEY"
        )

    try:
        await db.execute(
            "UPDATE api_keys SET last_used_at = CURRENT_TIMESTAMP WHERE id = $1", record["id"]
        )
    except Exception as e:
        logger.warning(f"⚠️ AUTH: Failed to update last_used_at for key {record['id']}: {e}")

    return AuthContext(
        user_id=str(record["user_id"]), api_key_id=str(record["id"]), is_api_request=True
    )


def authenticate_with_token(token: str) -> AuthContext:
    token_data = verify_token(token)
    return AuthContext(user_id=token_data.user_id, email=token_data.email, is_api_request=False)


async def get_auth_context(request: Request, db: Database = Depends(get_db)) -> AuthContext:
    """FastAPI dependency accepting either an API key or a session token"""
    api_key = extract_api_key(request)
    if api_key:
        return await authenticate_with_api_key(api_key, db)

    token = extract_bearer_token(request)
    if token:
        return authenticate_with_token(token)

    raise AuthenticationError(
        "No authentication provided. Please provide either an API key (x-api-key header) "
        "or Bearer token (Authorization header)",
        code="NO_AUTH",
    )


async def get_current_user(request: Request) -> AuthContext:
    """FastAPI dependency that only accepts an interactive session token"""
    token = extract_bearer_token(request)
    if not token:
        raise AuthenticationError("Missing Authorization header", code="NO_AUTH")
    return authenticate_with_token(token)
