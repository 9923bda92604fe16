# services/identity/models.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_KEY_LABEL = "Untitled Key"


class CreateApiKeyRequest(BaseModel):
    label: Optional[str] = Field(None, max_length=100, validate_default=True)

    @field_validator("label")
    @classmethod
    def clean_label(cls, value: Optional[str]) -> str:
        value = (value or "").strip()
        return value or DEFAULT_KEY_LABEL


class ApiKeyCreatedResponse(BaseModel):
    """The only response that ever contains the raw key"""

    id: str
    label: str
    apiKey: str
    created_at: Optional[datetime] = None


class ApiKeySummary(BaseModel):
    id: str
    label: str
    key_prefix: Optional[str] = None
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeySummary]


class ApiKeyRevokedResponse(BaseModel):
    id: str
    revoked: bool = True


class AccountDeletionResponse(BaseModel):
    message: str
    storage_objects_deleted: int = 0
