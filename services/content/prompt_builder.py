# services/content/prompt_builder.py
"""
Deterministic prompt assembly for character generation.

Every attribute maps to a fixed phrase through a lookup table keyed by the
config enums; unknown or missing values fall back to a default phrase. The
expression is the only random fragment and can be passed in explicitly.
"""

import random
from enum import Enum
from typing import Any, Iterable, Optional, Type, TypeVar

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

E = TypeVar("E", bound=Enum)

STYLE_PROMPT = (
    "Render a high-end collectible vinyl toy figure. Direct front view. Facing the camera straight on. "
    "Symmetrical upper body portrait.\n"
    "Material: Soft matte vinyl with a smooth clay-like finish. NOT glossy, NOT shiny plastic.\n"
    "Lighting: Soft studio lighting, warm and diffuse.\n"
    "Background: Solid bright white background (hex code #FFFFFF).\n"
    "Aesthetic: Clean, minimalist, rounded shapes, premium designer toy style."
)

CHROMA_KEY_COLOR = "#00FF00"
CHROMA_KEY_PROMPT = (
    f"Replace the white background with a solid bright green background (hex {CHROMA_KEY_COLOR}). "
    "Keep the character EXACTLY the same. Do not change the character's pose, lighting, or details. "
    "High contrast."
)

EXPRESSIONS = ("a happy smiling expression", "a confident smirk")
NO_TEXT_CONSTRAINT = "No text. No watermark. No logos."

GENDERS = {
    Gender.MALE: "male",
    Gender.FEMALE: "female",
}

AGE_GROUPS = {
    AgeGroup.KID: "Childlike proportions with larger head-to-body ratio (1:3), very round soft features, "
    "big innocent eyes, button nose, gentle expression",
    AgeGroup.PRETEEN: "Pre-adolescent proportions (1:4 head-to-body), slightly more defined features "
    "while maintaining softness, bright curious expression",
    AgeGroup.TEEN: "Adolescent proportions (1:5 head-to-body), balanced features, expressive and energetic",
    AgeGroup.YOUNG_ADULT: "Young adult proportions (1:6 head-to-body), refined features, confident presence, "
    "mature expression",
    AgeGroup.ADULT: "Mature adult proportions (1:6.5 head-to-body), fully defined features, "
    "distinguished appearance, composed expression",
}

SKIN_TONES = {
    SkinTone.PORCELAIN: "pale porcelain skin",
    SkinTone.FAIR: "fair warm skin",
    SkinTone.LIGHT: "light beige skin",
    SkinTone.MEDIUM: "medium tan skin",
    SkinTone.OLIVE: "olive skin",
    SkinTone.BROWN: "warm brown skin",
    SkinTone.DARK: "dark rich brown skin",
    SkinTone.DEEP: "deep ebony skin",
}

EYE_COLORS = {
    EyeColor.DARK: "dark",
    EyeColor.BROWN: "warm brown",
    EyeColor.BLUE: "blue",
    EyeColor.GREEN: "green",
    EyeColor.HAZEL: "hazel",
    EyeColor.GREY: "grey",
}

HAIR_STYLES = {
    HairStyle.BOB: "a sleek bob cut with bangs",
    HairStyle.PONYTAIL: "a high ponytail",
    HairStyle.BUNS: "two cute space buns on top of head",
    HairStyle.LONG: "long flowing wavy hair",
    HairStyle.PIXIE: "a short pixie cut",
    HairStyle.UNDERCUT: "a trendy undercut fade",
    HairStyle.QUIFF: "a voluminous quiff hairstyle",
    HairStyle.SIDEPART: "a neat side part hairstyle",
    HairStyle.BUZZ: "a short buzz cut",
    HairStyle.COMBOVER: "a tidy comb over",
    HairStyle.MESSY: "messy short textured hair",
    HairStyle.AFRO: "a round puffy afro",
    HairStyle.CURLY: "short curly hair",
}

HAIR_COLORS = {
    HairColor.BLACK: "soft matte black",
    HairColor.DARK_BROWN: "dark matte brown",
    HairColor.BROWN: "chestnut brown",
    HairColor.AUBURN: "auburn red",
    HairColor.GINGER: "ginger orange",
    HairColor.DARK_BLONDE: "ash blonde",
    HairColor.BLONDE: "golden blonde",
    HairColor.PLATINUM: "platinum blonde",
    HairColor.GREY: "silver grey",
    HairColor.WHITE: "white",
    HairColor.BLUE: "pastel blue",
    HairColor.PURPLE: "lavender purple",
}

CLOTHING_ITEMS = {
    ClothingItem.TSHIRT: "a simple crew neck t-shirt",
    ClothingItem.HOODIE: "a cozy hoodie",
    ClothingItem.SWEATER: "a chunky knit sweater",
    ClothingItem.JACKET: "a bomber jacket",
    ClothingItem.TANK: "a tank top",
    ClothingItem.DRESS: "a simple sundress",
    ClothingItem.BLOUSE: "a cute blouse",
    ClothingItem.POLO: "a collared polo shirt",
    ClothingItem.BUTTONUP: "a buttoned dress shirt",
    ClothingItem.HENLEY: "a henley shirt",
}

CLOTHING_COLORS = {
    ClothingColor.WHITE: "white",
    ClothingColor.BLACK: "black",
    ClothingColor.NAVY: "navy blue",
    ClothingColor.RED: "red",
    ClothingColor.BLUE: "blue",
    ClothingColor.GREEN: "forest green",
    ClothingColor.YELLOW: "yellow",
    ClothingColor.PURPLE: "purple",
    ClothingColor.PINK: "pink",
    ClothingColor.ORANGE: "orange",
    ClothingColor.TEAL: "teal",
}

ACCESSORIES = {
    Accessory.GLASSES: "wearing thick black rimmed glasses",
    Accessory.SUNGLASSES: "wearing cool sunglasses",
    Accessory.HEADPHONES: "wearing large over-ear headphones around the neck",
    Accessory.CAP: "wearing a baseball cap",
    Accessory.BEANIE: "wearing a knit beanie hat",
}

DEFAULT_GENDER = "female"
DEFAULT_SKIN = SKIN_TONES[SkinTone.MEDIUM]
DEFAULT_EYES = "dark"
DEFAULT_HAIR_STYLE = HAIR_STYLES[HairStyle.MESSY]
DEFAULT_HAIR_COLOR = "brown"
DEFAULT_CLOTHING = CLOTHING_ITEMS[ClothingItem.TSHIRT]
DEFAULT_CLOTHING_COLOR = "white"

HATS = frozenset({Accessory.CAP, Accessory.BEANIE})
EYEWEAR = frozenset({Accessory.GLASSES, Accessory.SUNGLASSES})

# Pairs that cannot be worn together; the one listed first in a request wins
ACCESSORY_CONFLICTS = {
    Accessory.GLASSES: {Accessory.SUNGLASSES},
    Accessory.SUNGLASSES: {Accessory.GLASSES},
    Accessory.CAP: {Accessory.BEANIE, Accessory.HEADPHONES},
    Accessory.BEANIE: {Accessory.CAP, Accessory.HEADPHONES},
    Accessory.HEADPHONES: {Accessory.CAP, Accessory.BEANIE},
}


def _resolve(enum_type: Type[E], value: Any) -> Optional[E]:
    if isinstance(value, enum_type):
        return value
    if value is None:
        return None
    try:
        return enum_type(str(value).strip().lower())
    except ValueError:
        return None


def resolve_gender(value: Any) -> Optional[Gender]:
    return _resolve(Gender, value)


def resolve_age_group(value: Any) -> Optional[AgeGroup]:
    return _resolve(AgeGroup, value)


def resolve_skin_tone(value: Any) -> Optional[SkinTone]:
    return _resolve(SkinTone, value)


def resolve_eye_color(value: Any) -> Optional[EyeColor]:
    return _resolve(EyeColor, value)


def resolve_hair_style(value: Any) -> Optional[HairStyle]:
    return _resolve(HairStyle, value)


def resolve_hair_color(value: Any) -> Optional[HairColor]:
    return _resolve(HairColor, value)


def resolve_clothing(value: Any) -> Optional[ClothingItem]:
    return _resolve(ClothingItem, value)


def resolve_clothing_color(value: Any) -> Optional[ClothingColor]:
    return _resolve(ClothingColor, value)


def normalize_accessories(items: Optional[Iterable[Any]]) -> list[Accessory]:
    """Drop 'none' and unknown ids, dedupe, then keep the first of any conflicting pair"""
    if items is None:
        return []
    if isinstance(items, (str, Accessory)):
        items = [items]

    resolved: list[Accessory] = []
    for item in items:
        accessory = _resolve(Accessory, item)
        if accessory is None or accessory == Accessory.NONE or accessory in resolved:
            continue
        if any(existing in ACCESSORY_CONFLICTS.get(accessory, set()) for existing in resolved):
            continue
        resolved.append(accessory)
    return resolved


def pick_expression(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(EXPRESSIONS)


def _field(config: Any, name: str, alias: str) -> Any:
    if isinstance(config, dict):
        return config.get(alias, config.get(name))
    return getattr(config, name, None)


def _describe(table: dict, value: Optional[Enum], default: str) -> str:
    if value is None:
        return default
    return table.get(value, default)


def build_subject_prompt(config: Any, expression: Optional[str] = None) -> str:
    """Per-character lines of the prompt, one attribute per line"""
    gender = _describe(GENDERS, resolve_gender(_field(config, "gender", "gender")), DEFAULT_GENDER)
    age_group = resolve_age_group(_field(config, "age_group", "ageGroup"))
    skin = _describe(SKIN_TONES, resolve_skin_tone(_field(config, "skin_tone", "skinTone")), DEFAULT_SKIN)
    eyes = _describe(EYE_COLORS, resolve_eye_color(_field(config, "eye_color", "eyeColor")), DEFAULT_EYES)
    hair_style = _describe(
        HAIR_STYLES, resolve_hair_style(_field(config, "hair_style", "hairStyle")), DEFAULT_HAIR_STYLE
    )
    hair_color = _describe(
        HAIR_COLORS, resolve_hair_color(_field(config, "hair_color", "hairColor")), DEFAULT_HAIR_COLOR
    )
    clothing = _describe(
        CLOTHING_ITEMS, resolve_clothing(_field(config, "clothing", "clothing")), DEFAULT_CLOTHING
    )
    clothing_color = _describe(
        CLOTHING_COLORS,
        resolve_clothing_color(_field(config, "clothing_color", "clothingColor")),
        DEFAULT_CLOTHING_COLOR,
    )
    accessories = normalize_accessories(_field(config, "accessories", "accessories"))

    lines = [
        "A cute 3D vinyl toy character.",
        "View: Direct front view. Facing camera.",
        f"Gender: {gender}.",
    ]
    if age_group is not None:
        lines.append(f"Age: {AGE_GROUPS[age_group]}.")
    lines += [
        f"Skin: {skin}.",
        f"Eyes: Large circular {eyes} eyes.",
        f"Hair: {hair_style}, colored {hair_color}.",
        f"Clothing: {clothing}, colored {clothing_color}.",
        f"Expression: {expression or pick_expression()}.",
    ]

    hats = [a for a in accessories if a in HATS]
    others = [a for a in accessories if a not in HATS]
    if hats:
        lines.append(f"Hat: {ACCESSORIES[hats[0]]}.")
    if others:
        described = ", ".join(ACCESSORIES[a] for a in others)
        lines.append(f"Accessories ONLY: {described}. No other accessories.")

    lines.extend(_suppression_lines(accessories))
    lines.append(NO_TEXT_CONSTRAINT)
    return "\n".join(lines)


def _suppression_lines(accessories: list[Accessory]) -> list[str]:
    if not accessories:
        return ["No glasses. No sunglasses. No hats. No headphones. No accessories."]

    lines = []
    if not EYEWEAR.intersection(accessories):
        lines.append("No glasses. No sunglasses.")
    if not HATS.intersection(accessories):
        lines.append("No hats.")
    if Accessory.HEADPHONES not in accessories:
        lines.append("No headphones.")
    return lines


def build_character_prompt(config: Any, expression: Optional[str] = None) -> str:
    """Full prompt: fixed style block followed by the character description"""
    return f"{STYLE_PROMPT}\n{build_subject_prompt(config, expression)}"
