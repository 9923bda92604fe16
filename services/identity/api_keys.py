# services/identity/api_keys.py
import logging
import secrets
from typing import Union
from uuid import UUID

from services.identity.models import ApiKeyCreatedResponse, ApiKeySummary
from shared.auth_middleware import hash_api_key
from shared.database import Database
from shared.errors import FunctionError

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "sk_characterforge_"
# Visible part of a key shown in listings so users can tell keys apart
DISPLAY_PREFIX_LENGTH = len(API_KEY_PREFIX) + 6


def generate_api_key() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_hex(24)}"


class ApiKeyService:
    """Issues, lists and revokes API keys; only salted digests are persisted"""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, user_id: str, label: str) -> ApiKeyCreatedResponse:
        raw_key = generate_api_key()
        row = await self.db.fetch_one(
            """
            INSERT INTO api_keys (user_id, label, key_hash, key_prefix)
            VALUES ($1, $2, $3, $4)
            RETURNING id, label, created_at
            """,
            user_id,
            label,
            hash_api_key(raw_key),
            raw_key[:DISPLAY_PREFIX_LENGTH],
        )
        if not row:
            raise FunctionError("Failed to create API key", code="API_KEY_ERROR")

        logger.info(f"🔑 API_KEYS: Created key {row['id']} for user {user_id}")
        return ApiKeyCreatedResponse(
            id=str(row["id"]), label=row["label"], apiKey=raw_key, created_at=row.get("created_at")
        )

    async def list_keys(self, user_id: str) -> list[ApiKeySummary]:
        rows = await self.db.fetch_all(
            """
            SELECT id, label, key_prefix, last_used_at, created_at
            FROM api_keys
            WHERE user_id = $1 AND deleted_at IS NULL
            ORDER BY created_at DESC
            """,
            user_id,
        )
        return [
            ApiKeySummary(
                id=str(row["id"]),
                label=row["label"],
                key_prefix=row.get("key_prefix"),
                last_used_at=row.get("last_used_at"),
                created_at=row.get("created_at"),
            )
            for row in rows
        ]

    async def revoke(self, user_id: str, key_id: Union[str, UUID]) -> str:
        """Soft-delete a key owned by user_id; revoked keys fail authentication"""
        revoked_id = await self.db.fetch_val(
            """
            UPDATE api_keys SET deleted_at = CURRENT_TIMESTAMP
            WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL
            RETURNING id
            """,
            key_id,
            user_id,
        )
        if not revoked_id:
            raise FunctionError("API key not found", status_code=404, code="NOT_FOUND")

        logger.info(f"🔑 API_KEYS: Revoked key {key_id} for user {user_id}")
        return str(revoked_id)
