# services/content/background_removal.py
"""Green-screen background removal for generated characters"""

import io
import logging
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Green must beat both red and blue by more than this (0-255) to count as chroma
CHROMA_DOMINANCE = 40


def _decode_rgba(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as image:
        return np.array(image.convert("RGBA"), dtype=np.uint8)


def chroma_mask(mask_pixels: np.ndarray, dominance: int = CHROMA_DOMINANCE) -> np.ndarray:
    """Boolean array, True where the mask pixel is chroma green"""
    channels = mask_pixels.astype(np.int16)
    red, green, blue = channels[..., 0], channels[..., 1], channels[..., 2]
    return (green > red + dominance) & (green > blue + dominance)


def remove_background(base: bytes, mask: Optional[bytes]) -> tuple[bytes, bool]:
    """
    Make the base image transparent wherever the green-screen mask is chroma.

    Returns (png_bytes, transparent). Any problem with the mask (missing,
    undecodable, different size, no chroma pixels) returns the base bytes
    unchanged with transparent=False.
    """
    if not mask:
        logger.warning("⚠️ BACKGROUND: No chroma mask supplied, keeping original image")
        return base, False

    try:
        base_pixels = _decode_rgba(base)
        mask_pixels = _decode_rgba(mask)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"⚠️ BACKGROUND: Could not decode images, keeping original: {e}")
        return base, False

    if base_pixels.shape != mask_pixels.shape:
        logger.warning(
            f"⚠️ BACKGROUND: Mask dimensions {mask_pixels.shape[:2]} do not match "
            f"base {base_pixels.shape[:2]}, keeping original"
        )
        return base, False

    is_chroma = chroma_mask(mask_pixels)
    removed = int(is_chroma.sum())
    if removed == 0:
        logger.warning("⚠️ BACKGROUND: No chroma pixels found in mask, keeping original")
        return base, False

    base_pixels[..., 3] = np.where(is_chroma, 0, 255).astype(np.uint8)

    output = io.BytesIO()
    Image.fromarray(base_pixels).save(output, format="PNG")
    logger.info(f"✅ BACKGROUND: Mask applied, {removed} pixels removed")
    return output.getvalue(), True
