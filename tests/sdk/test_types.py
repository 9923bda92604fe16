import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from characterforge.client import parse_config
from characterforge.errors import ConfigValidationError
from characterforge.types import Accessory, CharacterConfig, HairStyle, cache_key


def test_cache_key_ignores_field_order(character_payload):
    reordered = dict(reversed(list(character_payload.items())))

    assert cache_key(CharacterConfig(**character_payload)) == cache_key(CharacterConfig(**reordered))


def test_cache_key_ignores_cache_flag(character_payload):
    with_flag = CharacterConfig(**character_payload, cache=False)

    assert cache_key(with_flag) == cache_key(CharacterConfig(**character_payload))
    assert "cache" not in json.loads(cache_key(with_flag))


def test_cache_key_has_sorted_camel_case_keys(character_payload):
    key = cache_key(CharacterConfig(**character_payload))
    decoded = json.loads(key)

    assert list(decoded) == sorted(decoded)
    assert decoded["skinTone"] == "light"
    assert decoded["accessories"] == ["none"]


def test_snake_case_and_camel_case_names_are_equivalent(character_payload):
    snake = CharacterConfig(
        gender="female",
        skin_tone="light",
        hair_style="bob",
        hair_color="blonde",
        clothing="hoodie",
        clothing_color="pink",
        eye_color="blue",
        accessories=["none"],
        transparent=True,
    )

    assert cache_key(snake) == cache_key(CharacterConfig(**character_payload))


def test_different_attributes_give_different_keys(character_payload):
    other = {**character_payload, "hairStyle": "afro"}

    assert cache_key(CharacterConfig(**other)) != cache_key(CharacterConfig(**character_payload))


def test_single_accessory_is_wrapped(character_payload):
    config = CharacterConfig(**{**character_payload, "accessories": "glasses"})

    assert config.accessories == (Accessory.GLASSES,)


def test_config_is_immutable(character_payload):
    config = CharacterConfig(**character_payload)

    with pytest.raises(PydanticValidationError):
        config.hair_style = HairStyle.AFRO


def test_unknown_value_is_rejected_before_any_request(character_payload):
    with pytest.raises(ConfigValidationError) as exc_info:
        parse_config({**character_payload, "hairStyle": "mohawk"})

    assert exc_info.value.field == "hairStyle"
    assert exc_info.value.code == "VALIDATION_ERROR"
