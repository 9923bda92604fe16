# characterforge/types.py
import json
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class AgeGroup(str, Enum):
    KID = "kid"
    PRETEEN = "preteen"
    TEEN = "teen"
    YOUNG_ADULT = "young_adult"
    ADULT = "adult"


class SkinTone(str, Enum):
    PORCELAIN = "porcelain"
    FAIR = "fair"
    LIGHT = "light"
    MEDIUM = "medium"
    OLIVE = "olive"
    BROWN = "brown"
    DARK = "dark"
    DEEP = "deep"


class HairStyle(str, Enum):
    BOB = "bob"
    PONYTAIL = "ponytail"
    BUNS = "buns"
    LONG = "long"
    PIXIE = "pixie"
    UNDERCUT = "undercut"
    QUIFF = "quiff"
    SIDEPART = "sidepart"
    BUZZ = "buzz"
    COMBOVER = "combover"
    MESSY = "messy"
    AFRO = "afro"
    CURLY = "curly"


class HairColor(str, Enum):
    BLACK = "black"
    DARK_BROWN = "dark_brown"
    BROWN = "brown"
    AUBURN = "auburn"
    GINGER = "ginger"
    DARK_BLONDE = "dark_blonde"
    BLONDE = "blonde"
    PLATINUM = "platinum"
    GREY = "grey"
    WHITE = "white"
    BLUE = "blue"
    PURPLE = "purple"


class ClothingItem(str, Enum):
    TSHIRT = "tshirt"
    HOODIE = "hoodie"
    SWEATER = "sweater"
    JACKET = "jacket"
    TANK = "tank"
    DRESS = "dress"
    BLOUSE = "blouse"
    POLO = "polo"
    BUTTONUP = "buttonup"
    HENLEY = "henley"


class ClothingColor(str, Enum):
    WHITE = "white"
    BLACK = "black"
    NAVY = "navy"
    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    PURPLE = "purple"
    PINK = "pink"
    ORANGE = "orange"
    TEAL = "teal"


class EyeColor(str, Enum):
    DARK = "dark"
    BROWN = "brown"
    BLUE = "blue"
    GREEN = "green"
    HAZEL = "hazel"
    GREY = "grey"


class Accessory(str, Enum):
    NONE = "none"
    GLASSES = "glasses"
    SUNGLASSES = "sunglasses"
    HEADPHONES = "headphones"
    CAP = "cap"
    BEANIE = "beanie"


class CharacterConfig(BaseModel):
    """Visual attributes of one character. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    gender: Gender = Gender.FEMALE
    age_group: Optional[AgeGroup] = Field(None, alias="ageGroup")
    skin_tone: SkinTone = Field(..., alias="skinTone")
    hair_style: HairStyle = Field(..., alias="hairStyle")
    hair_color: HairColor = Field(..., alias="hairColor")
    clothing: ClothingItem
    clothing_color: ClothingColor = Field(..., alias="clothingColor")
    eye_color: EyeColor = Field(..., alias="eyeColor")
    accessories: tuple[Accessory, ...] = ()
    transparent: bool = True
    # Per-call cache opt-out, never part of the cache key
    cache: Optional[bool] = None

    @field_validator("accessories", mode="before")
    @classmethod
    def wrap_single_accessory(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, Accessory)):
            return (value,)
        return value

    def to_payload(self) -> dict[str, Any]:
        """Wire representation: camelCase keys, no cache flag, no empty optionals"""
        return self.model_dump(mode="json", by_alias=True, exclude={"cache"}, exclude_none=True)


ConfigInput = Union[CharacterConfig, dict[str, Any]]


def canonical_json(config: CharacterConfig) -> str:
    return json.dumps(config.to_payload(), sort_keys=True, separators=(",", ":"))


def cache_key(config: CharacterConfig) -> str:
    """Stable key for a config; key order and the cache flag never change it"""
    return canonical_json(config)
