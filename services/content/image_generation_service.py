"""Image generation through the Gemini REST API (Imagen for the base image, Gemini for the chroma mask)"""

import base64
import logging
import os
from typing import Optional

import httpx

from services.content.prompt_builder import CHROMA_KEY_PROMPT
from shared.errors import FunctionError, ProviderBillingError

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image"
REQUEST_TIMEOUT = 120.0


class GenerationFailure(FunctionError):
    status_code = 500
    code = "GENERATION_FAILED"


def _is_billing_error(status_code: int, body: str) -> bool:
    # The provider answers 400 when image models are called from an unbilled project
    return status_code == 400 or "billed users" in body.lower()


class ImageGenerationService:
    """Generates character images and their green-screen masks"""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = os.getenv("GEMINI_API_KEY")
        self.image_model = os.getenv("GEMINI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL)
        self.edit_model = os.getenv("GEMINI_EDIT_MODEL", DEFAULT_EDIT_MODEL)

        if not self.api_key:
            raise ValueError("Missing GEMINI_API_KEY environment variable")

        self._http_client = http_client

    def _headers(self) -> dict:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=self._headers())
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            return await client.post(url, json=payload, headers=self._headers())

    async def generate_base_image(self, prompt: str) -> bytes:
        """Generate the opaque character image and return its PNG bytes"""
        url = f"{GEMINI_API_BASE}/models/{self.image_model}:predict"
        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {"sampleCount": 1, "aspectRatio": "1:1", "outputMimeType": "image/png"},
        }

        logger.info(f"🎨 IMAGE_GENERATION: Generating base image with {self.image_model}")
        try:
            response = await self._post(url, payload)
        except httpx.HTTPError as e:
            raise GenerationFailure(f"Image provider request failed: {e}")

        if response.status_code != 200:
            logger.error(
                f"❌ IMAGE_GENERATION: Provider returned {response.status_code}: {response.text[:500]}"
            )
            if _is_billing_error(response.status_code, response.text):
                raise ProviderBillingError()
            raise GenerationFailure(f"Image provider error: {response.status_code}")

        predictions = response.json().get("predictions") or []
        encoded = predictions[0].get("bytesBase64Encoded") if predictions else None
        if not encoded:
            raise GenerationFailure("Failed to generate base image")

        return base64.b64decode(encoded)

    async def generate_chroma_mask(self, base_image: bytes) -> Optional[bytes]:
        """Ask the edit model for a green-screen copy of the image; None when that fails"""
        url = f"{GEMINI_API_BASE}/models/{self.edit_model}:generateContent"
        payload = {
            "contents": [
                {
                    "parts": [
                        {
                            "inlineData": {
                                "mimeType": "image/png",
                                "data": base64.b64encode(base_image).decode("ascii"),
                            }
                        },
                        {"text": CHROMA_KEY_PROMPT},
                    ]
                }
            ],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }

        logger.info(f"🟩 IMAGE_GENERATION: Generating chroma mask with {self.edit_model}")
        try:
            response = await self._post(url, payload)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ IMAGE_GENERATION: Mask request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(
                f"⚠️ IMAGE_GENERATION: Mask generation returned {response.status_code}, using original"
            )
            return None

        for candidate in response.json().get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                data = (part.get("inlineData") or {}).get("data")
                if data:
                    return base64.b64decode(data)

        logger.warning("⚠️ IMAGE_GENERATION: No image in mask response, using original")
        return None
