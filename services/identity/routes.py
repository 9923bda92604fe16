# services/identity/routes.py
import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from services.identity.api_keys import ApiKeyService
from services.identity.models import (
    AccountDeletionResponse,
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyRevokedResponse,
    CreateApiKeyRequest,
)
from shared.auth_middleware import AuthContext, get_current_user
from shared.database import Database, get_db
from shared.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from shared.storage_service import get_storage_service

logger = logging.getLogger(__name__)

api_key_router = APIRouter()
account_router = APIRouter()


async def get_api_key_service(db: Database = Depends(get_db)) -> ApiKeyService:
    return ApiKeyService(db)


@api_key_router.post("/create-api-key", response_model=ApiKeyCreatedResponse)
async def create_api_key(
    request: CreateApiKeyRequest,
    user: AuthContext = Depends(get_current_user),
    rate_limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
    service: ApiKeyService = Depends(get_api_key_service),
):
    """Issue a new API key. The raw key is returned here and never again."""
    rate_limiter.check(f"api-key:{user.user_id}")
    return await service.create(user.user_id, request.label)


@api_key_router.get("/api-keys", response_model=ApiKeyListResponse)
async def list_api_keys(
    user: AuthContext = Depends(get_current_user),
    service: ApiKeyService = Depends(get_api_key_service),
):
    return ApiKeyListResponse(keys=await service.list_keys(user.user_id))


@api_key_router.delete("/api-keys/{key_id}", response_model=ApiKeyRevokedResponse)
async def revoke_api_key(
    key_id: UUID,
    user: AuthContext = Depends(get_current_user),
    service: ApiKeyService = Depends(get_api_key_service),
):
    revoked_id = await service.revoke(user.user_id, key_id)
    return ApiKeyRevokedResponse(id=revoked_id)


@account_router.post("/delete-account", response_model=AccountDeletionResponse)
async def delete_account(
    user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Delete the caller's own account, generated images and keys"""
    user_id = user.user_id
    logger.info(f"🗑️ ACCOUNT: User {user_id} requested account deletion")

    # Generation history goes with the account; api_keys and credit_transactions cascade from profiles
    async with db.transaction() as conn:
        await conn.execute("DELETE FROM generations WHERE user_id = $1", user_id)
        await conn.execute("DELETE FROM profiles WHERE id = $1", user_id)

    deleted_objects = 0
    try:
        summary = await get_storage_service().delete_user_assets(user_id)
        deleted_objects = summary["deleted"]
        for error in summary["errors"]:
            logger.warning(f"⚠️ ACCOUNT: {error}")
    except ValueError as e:
        # Storage not configured in this environment
        logger.warning(f"⚠️ ACCOUNT: Skipping storage cleanup for {user_id}: {e}")

    logger.info(f"✅ ACCOUNT: Deleted account {user_id}")
    return AccountDeletionResponse(
        message="Account deleted successfully", storage_objects_deleted=deleted_objects
    )
