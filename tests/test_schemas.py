"""Unit tests for the core schema building blocks."""

import pytest
from pydantic import ValidationError

from lostsouls.schemas import (
    ActionParams,
    ActionType,
    CharacterAction,
    CharacterProfile,
    ComprehensionLevel,
    Direction,
    PerceptionQuirk,
    PerceptionQuirkType,
    PersonalityQuirk,
    PersonalityQuirkType,
    QuirkConfig,
)


def test_direction_rotation_is_clockwise():
    assert Direction.NORTH.rotate(1) == Direction.EAST
    assert Direction.NORTH.rotate(-1) == Direction.WEST
    assert Direction.EAST.rotate(2) == Direction.WEST
    assert Direction.WEST.rotate(1) == Direction.NORTH


def test_direction_offsets_put_north_at_plus_y():
    assert Direction.NORTH.offset == (0, 1)
    assert Direction.WEST.offset == (-1, 0)
    assert Direction.from_offset(0, -3) == Direction.SOUTH
    assert Direction.from_offset(2, 0) == Direction.EAST


def test_comprehension_action_caps():
    assert [level.max_actions for level in ComprehensionLevel] == [1, 2, 5]


def test_profile_quirk_lookup_and_vocabulary():
    profile = CharacterProfile(
        name="Pip",
        perception_quirks=[
            PerceptionQuirk(
                type=PerceptionQuirkType.OWN_VOCABULARY,
                config=QuirkConfig(vocabulary_map={"Ruby": "sparkle"}),
            )
        ],
        personality_quirks=[PersonalityQuirk(type=PersonalityQuirkType.STUBBORN)],
    )

    assert profile.vocabulary_map == {"Ruby": "sparkle"}
    assert profile.personality_quirk(PersonalityQuirkType.STUBBORN) is not None
    assert profile.personality_quirk(PersonalityQuirkType.POLITE) is None
    assert CharacterProfile().vocabulary_map == {}


def test_profile_is_immutable():
    profile = CharacterProfile(name="Pip")
    with pytest.raises(ValidationError):
        profile.name = "Other"


def test_profile_loads_from_level_data():
    profile = CharacterProfile.model_validate(
        {
            "name": "Mira",
            "comprehension": "simple",
            "direction_mode": "relative",
            "personality_quirks": [{"type": "polite", "config": {"required_keywords": ["please"]}}],
        }
    )

    assert profile.comprehension == ComprehensionLevel.SIMPLE
    assert profile.personality_quirks[0].config.required_keywords == ["please"]


def test_action_refuse_replaces_and_reject_appends():
    action = CharacterAction(type=ActionType.MOVE, dialogue="Sure.", emotion="happy")
    action.reject(" Blocked.")
    assert action.type == ActionType.NONE
    assert action.dialogue == "Sure. Blocked."
    assert action.emotion == "happy"

    action.refuse("No.", "annoyed")
    assert (action.dialogue, action.emotion) == ("No.", "annoyed")


def test_action_params_coerce_steps():
    assert ActionParams(steps="3").steps == 3
    assert ActionParams(steps=None).steps == 1
    assert ActionParams(steps="many").steps == 1
