import random

import pytest

from characterforge.types import Accessory, CharacterConfig
from services.content.prompt_builder import (
    CHROMA_KEY_PROMPT,
    DEFAULT_CLOTHING,
    DEFAULT_HAIR_STYLE,
    DEFAULT_SKIN,
    EXPRESSIONS,
    NO_TEXT_CONSTRAINT,
    STYLE_PROMPT,
    build_character_prompt,
    normalize_accessories,
    pick_expression,
)

BASE_CONFIG = {
    "gender": "male",
    "ageGroup": "young_adult",
    "skinTone": "medium",
    "hairStyle": "afro",
    "hairColor": "black",
    "clothing": "hoodie",
    "clothingColor": "blue",
    "eyeColor": "brown",
    "accessories": ["glasses"],
    "transparent": True,
}


def lines_starting(prompt: str, prefix: str) -> list[str]:
    return [line for line in prompt.split("\n") if line.startswith(prefix)]


def test_prompt_is_deterministic_for_identical_configs():
    first = build_character_prompt(dict(BASE_CONFIG), expression=EXPRESSIONS[0])
    second = build_character_prompt(dict(BASE_CONFIG), expression=EXPRESSIONS[0])

    assert first == second


def test_only_expression_line_varies_between_calls():
    prompts = [build_character_prompt(dict(BASE_CONFIG)) for _ in range(10)]

    stripped = {
        "\n".join(line for line in prompt.split("\n") if not line.startswith("Expression:"))
        for prompt in prompts
    }
    assert len(stripped) == 1
    for prompt in prompts:
        (expression_line,) = lines_starting(prompt, "Expression:")
        assert expression_line[len("Expression: ") : -1] in EXPRESSIONS


def test_pick_expression_is_reproducible_with_seed():
    assert pick_expression(random.Random(3)) == pick_expression(random.Random(3))
    assert pick_expression(random.Random(3)) in EXPRESSIONS


def test_prompt_lines_map_each_attribute():
    prompt = build_character_prompt(BASE_CONFIG, expression="a confident smirk")

    assert prompt.startswith(STYLE_PROMPT)
    assert "Gender: male." in prompt
    assert "Skin: medium tan skin." in prompt
    assert "Eyes: Large circular warm brown eyes." in prompt
    assert "Hair: a round puffy afro, colored soft matte black." in prompt
    assert "Clothing: a cozy hoodie, colored blue." in prompt
    assert "Expression: a confident smirk." in prompt
    assert lines_starting(prompt, "Age: Young adult proportions")


def test_no_text_constraint_is_always_present():
    for accessories in ([], ["glasses"], ["cap", "headphones"]):
        prompt = build_character_prompt({**BASE_CONFIG, "accessories": accessories})
        assert prompt.rstrip().endswith(NO_TEXT_CONSTRAINT)


def test_unknown_values_fall_back_to_defaults():
    prompt = build_character_prompt(
        {"skinTone": "green", "hairStyle": "mohawk", "clothing": "cape", "gender": None, "accessories": ["cape"]}
    )

    assert f"Skin: {DEFAULT_SKIN}." in prompt
    assert f"Hair: {DEFAULT_HAIR_STYLE}, colored brown." in prompt
    assert f"Clothing: {DEFAULT_CLOTHING}, colored white." in prompt
    assert "Gender: female." in prompt
    assert "Eyes: Large circular dark eyes." in prompt
    assert not lines_starting(prompt, "Age:")


def test_accepts_sdk_config_model():
    config = CharacterConfig(**BASE_CONFIG)

    assert build_character_prompt(config, expression=EXPRESSIONS[1]) == build_character_prompt(
        BASE_CONFIG, expression=EXPRESSIONS[1]
    )


@pytest.mark.parametrize(
    "requested,expected",
    [
        (["cap", "beanie"], [Accessory.CAP]),
        (["beanie", "cap"], [Accessory.BEANIE]),
        (["glasses", "sunglasses"], [Accessory.GLASSES]),
        (["sunglasses", "glasses"], [Accessory.SUNGLASSES]),
        (["cap", "headphones"], [Accessory.CAP]),
        (["headphones", "beanie"], [Accessory.HEADPHONES]),
        (["none"], []),
        (["none", "glasses", "glasses"], [Accessory.GLASSES]),
        (["cap", "glasses", "sunglasses"], [Accessory.CAP, Accessory.GLASSES]),
        (["crown", "glasses"], [Accessory.GLASSES]),
        ("sunglasses", [Accessory.SUNGLASSES]),
        (None, []),
    ],
)
def test_normalize_accessories_first_seen_wins(requested, expected):
    assert normalize_accessories(requested) == expected


def test_hat_line_isolated_from_other_accessories():
    prompt = build_character_prompt({**BASE_CONFIG, "accessories": ["cap", "glasses"]})

    (hat_line,) = lines_starting(prompt, "Hat:")
    (accessories_line,) = lines_starting(prompt, "Accessories ONLY")
    assert "baseball cap" in hat_line
    assert "glasses" not in hat_line
    assert "glasses" in accessories_line
    assert "No hats." not in prompt


def test_conflicting_headphones_never_described():
    prompt = build_character_prompt({**BASE_CONFIG, "accessories": ["cap", "headphones"]})

    assert "over-ear headphones" not in prompt
    assert "No headphones." in prompt


def test_no_accessories_suppresses_everything():
    prompt = build_character_prompt({**BASE_CONFIG, "accessories": ["none"]})

    assert "No glasses. No sunglasses. No hats. No headphones. No accessories." in prompt
    assert not lines_starting(prompt, "Hat:")
    assert not lines_starting(prompt, "Accessories ONLY")


def test_unrequested_eyewear_is_suppressed():
    prompt = build_character_prompt({**BASE_CONFIG, "accessories": ["beanie"]})

    assert "No glasses. No sunglasses." in prompt
    assert "No hats." not in prompt


def test_chroma_prompt_names_key_color():
    assert "#00FF00" in CHROMA_KEY_PROMPT
