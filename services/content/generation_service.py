# services/content/generation_service.py
import hashlib
import json
import logging
from typing import Optional

from services.content.background_removal import remove_background
from services.content.credit_guard import COST_PER_GENERATION, CreditGuard
from services.content.image_generation_service import ImageGenerationService
from services.content.models import GenerateCharacterRequest, GenerateCharacterResponse
from services.content.prompt_builder import build_character_prompt
from shared.credits import CreditType
from shared.database import Database
from shared.storage_service import StorageService

logger = logging.getLogger(__name__)


def hash_config(config: GenerateCharacterRequest) -> str:
    """sha256 of the sorted-key JSON of the config, used as the server-side cache key"""
    canonical = json.dumps(config.canonical_payload(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CharacterGenerationService:
    """Server-side generate-character pipeline"""

    def __init__(
        self,
        db: Database,
        guard: CreditGuard,
        images: ImageGenerationService,
        storage: StorageService,
    ):
        self.db = db
        self.guard = guard
        self.images = images
        self.storage = storage

    async def find_cached(self, config_hash: str) -> Optional[dict]:
        return await self.db.fetch_one(
            """
            SELECT image_url, is_transparent FROM generations
            WHERE config_hash = $1
            ORDER BY created_at DESC
            LIMIT 1
            """,
            config_hash,
        )

    async def generate(
        self, user_id: str, credit_type: CreditType, config: GenerateCharacterRequest
    ) -> GenerateCharacterResponse:
        config_hash = hash_config(config)

        if config.cache is not False:
            cached = await self.find_cached(config_hash)
            if cached:
                logger.info(f"✅ GENERATE: Cache hit for {config_hash[:12]}")
                return GenerateCharacterResponse(
                    image=cached["image_url"],
                    cached=True,
                    transparent=bool(cached.get("is_transparent")),
                )

        async def produce() -> GenerateCharacterResponse:
            return await self._produce(user_id, config, config_hash)

        return await self.guard.run(user_id, credit_type, produce)

    async def _produce(
        self, user_id: str, config: GenerateCharacterRequest, config_hash: str
    ) -> GenerateCharacterResponse:
        prompt = build_character_prompt(config.canonical_payload())
        base_image = await self.images.generate_base_image(prompt)

        original_key, final_key = self.storage.build_object_names(user_id)
        await self.storage.upload_png(original_key, base_image, {"config_hash": config_hash})

        final_image, is_transparent = base_image, False
        if config.transparent:
            mask = await self.images.generate_chroma_mask(base_image)
            final_image, is_transparent = remove_background(base_image, mask)

        image_url = await self.storage.upload_png(final_key, final_image, {"config_hash": config_hash})

        await self.db.execute(
            """
            INSERT INTO generations (user_id, config_hash, image_url, prompt_used, is_transparent, cost_in_credits)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            user_id,
            config_hash,
            image_url,
            prompt,
            is_transparent,
            COST_PER_GENERATION,
        )

        logger.info(f"✅ GENERATE: Stored {final_key} (transparent={is_transparent})")
        return GenerateCharacterResponse(image=image_url, cached=False, transparent=is_transparent)
