# services/content/models.py
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from characterforge.types import (
    Accessory,
    AgeGroup,
    ClothingColor,
    ClothingItem,
    EyeColor,
    Gender,
    HairColor,
    HairStyle,
    SkinTone,
)


class GenerateCharacterRequest(BaseModel):
    """
    Body of POST /generate-character.

    Every attribute except ageGroup must come from the fixed vocabulary the SDK
    exposes; anything else is rejected as a 400 naming the offending field.
    """

    gender: Gender = Gender.FEMALE
    ageGroup: Optional[AgeGroup] = None
    skinTone: SkinTone
    hairStyle: HairStyle
    hairColor: HairColor
    clothing: ClothingItem
    clothingColor: ClothingColor
    eyeColor: EyeColor
    accessories: list[Accessory] = Field(default_factory=list, max_length=10)
    transparent: bool = True
    cache: Optional[bool] = None

    @field_validator("accessories", mode="before")
    @classmethod
    def wrap_single_accessory(cls, value: Union[str, list, None]):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    def canonical_payload(self) -> dict:
        """Fields that identify the generated image (the cache flag never does)"""
        return self.model_dump(mode="json", exclude={"cache"}, exclude_none=True)


class GenerateCharacterResponse(BaseModel):
    image: str
    cached: bool = False
    transparent: bool = False
