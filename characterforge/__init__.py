# characterforge/__init__.py
from characterforge.cache import (
    CacheManager,
    FileSystemCacheManager,
    NoOpCacheManager,
    RedisCacheManager,
    create_cache_manager,
)
from characterforge.client import (
    CharacterForgeClient,
    GenerationStatus,
    create_character_forge_client,
)
from characterforge.errors import (
    ApiError,
    AuthenticationError,
    CacheError,
    CharacterForgeError,
    ConfigValidationError,
    GenerationError,
    InsufficientCreditsError,
    NetworkError,
    PaymentError,
    RateLimitError,
    ValidationError,
)
from characterforge.retry import RetryConfig, RetryEngine
from characterforge.types import (
    Accessory,
    AgeGroup,
    CharacterConfig,
    ClothingColor,
    ClothingItem,
    EyeColor,
    Gender,
    HairColor,
    HairStyle,
    SkinTone,
    cache_key,
)

__version__ = "1.0.0"

__all__ = [
    "Accessory",
    "AgeGroup",
    "ApiError",
    "AuthenticationError",
    "CacheError",
    "CacheManager",
    "CharacterConfig",
    "CharacterForgeClient",
    "CharacterForgeError",
    "ClothingColor",
    "ClothingItem",
    "ConfigValidationError",
    "EyeColor",
    "FileSystemCacheManager",
    "Gender",
    "GenerationError",
    "GenerationStatus",
    "HairColor",
    "HairStyle",
    "InsufficientCreditsError",
    "NetworkError",
    "NoOpCacheManager",
    "PaymentError",
    "RateLimitError",
    "RedisCacheManager",
    "RetryConfig",
    "RetryEngine",
    "SkinTone",
    "ValidationError",
    "cache_key",
    "create_cache_manager",
    "create_character_forge_client",
]
