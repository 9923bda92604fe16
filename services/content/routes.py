# services/content/routes.py
import logging

from fastapi import APIRouter, Depends

from services.content.credit_guard import CreditGuard, PostgresCreditStore
from services.content.generation_service import CharacterGenerationService
from services.content.image_generation_service import ImageGenerationService
from services.content.models import GenerateCharacterRequest, GenerateCharacterResponse
from shared.auth_middleware import AuthContext, get_auth_context
from shared.credits import CreditType
from shared.database import Database, get_db
from shared.rate_limiter import InMemoryRateLimiter, get_rate_limiter
from shared.storage_service import get_storage_service

logger = logging.getLogger(__name__)

content_router = APIRouter()


async def get_generation_service(db: Database = Depends(get_db)) -> CharacterGenerationService:
    return CharacterGenerationService(
        db=db,
        guard=CreditGuard(PostgresCreditStore(db)),
        images=ImageGenerationService(),
        storage=get_storage_service(),
    )


@content_router.post("/generate-character", response_model=GenerateCharacterResponse)
async def generate_character(
    request: GenerateCharacterRequest,
    auth: AuthContext = Depends(get_auth_context),
    rate_limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
    service: CharacterGenerationService = Depends(get_generation_service),
):
    """Generate a character image, charging one credit unless an identical config was generated before"""
    rate_limiter.check(f"generate:{auth.user_id}")

    credit_type = CreditType.API if auth.is_api_request else CreditType.APP
    logger.info(
        f"🎨 GENERATE: Request from {auth.user_id} ({credit_type.value}), transparent={request.transparent}"
    )

    return await service.generate(auth.user_id, credit_type, request)
