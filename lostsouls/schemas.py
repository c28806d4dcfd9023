"""
Pydantic schemas for the Lost Souls turn pipeline.

Enums shared across the grid, object and action layers, the immutable
character profile with its quirk records, the mutable ``CharacterAction``
that flows through personality filtering, validation and execution, and the
wire schema the model is asked to return.

Design Philosophy:
- Enum values match the strings used in level data and model responses
- Quirks are small typed config records looked up by quirk type
- ``CharacterAction`` is deliberately mutable: each pipeline stage may
  downgrade its type to ``NONE`` and append explanatory dialogue
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Grid and Object Enums
# ============================================================================


class TileType(str, Enum):
    FLOOR = "floor"
    WALL = "wall"
    EXIT = "exit"
    DOOR = "door"
    PRESSURE_PLATE = "pressure_plate"
    PEDESTAL = "pedestal"


class ObjectType(str, Enum):
    KEY = "key"
    GEM = "gem"
    BOX = "box"
    DOOR = "door"
    PEDESTAL = "pedestal"
    PRESSURE_PLATE = "pressure_plate"


class DoorState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class Direction(str, Enum):
    """Compass direction. Declaration order is clockwise, used for rotation."""

    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"

    @property
    def offset(self) -> tuple[int, int]:
        return _DIRECTION_OFFSETS[self]

    def rotate(self, steps: int) -> "Direction":
        """Rotate clockwise by ``steps`` quarter turns (negative = counter-clockwise)."""
        order = list(Direction)
        return order[(order.index(self) + steps) % 4]

    @classmethod
    def from_offset(cls, dx: int, dy: int) -> "Direction":
        if dy > 0:
            return cls.NORTH
        if dy < 0:
            return cls.SOUTH
        if dx > 0:
            return cls.EAST
        if dx < 0:
            return cls.WEST
        return cls.NORTH


# North is +y; the grid origin sits at the south-west corner.
_DIRECTION_OFFSETS = {
    Direction.NORTH: (0, 1),
    Direction.SOUTH: (0, -1),
    Direction.EAST: (1, 0),
    Direction.WEST: (-1, 0),
}


# ============================================================================
# Character Profile
# ============================================================================


class ComprehensionLevel(str, Enum):
    SIMPLE = "simple"
    STANDARD = "standard"
    CLEVER = "clever"

    @property
    def max_actions(self) -> int:
        return {"simple": 1, "standard": 2, "clever": 5}[self.value]


class DirectionMode(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    INVERTED_LEFT_RIGHT = "inverted_lr"
    INVERTED_NORTH_SOUTH = "inverted_ns"


class PerceptionQuirkType(str, Enum):
    COLORBLIND = "colorblind"
    OWN_VOCABULARY = "own_vocabulary"
    MIRRORED_VIEW = "mirrored_view"
    SIZE_DISTORTION = "size_distortion"


class PersonalityQuirkType(str, Enum):
    POLITE = "polite"
    STUBBORN = "stubborn"
    UNMOTIVATED = "unmotivated"
    IMPATIENT = "impatient"
    DISTRUSTFUL = "distrustful"
    FORGETFUL = "forgetful"


class QuirkConfig(BaseModel):
    """Union of every quirk's tunables; each quirk reads only its own fields."""

    model_config = ConfigDict(frozen=True)

    # colorblind
    confused_pairs: List[List[str]] = Field(default_factory=list)
    replacement: Optional[str] = None
    # own_vocabulary: real name -> the character's own word
    vocabulary_map: Dict[str, str] = Field(default_factory=dict)
    # mirrored_view
    axis: Optional[str] = None
    # size_distortion
    inversion: bool = False
    # stubborn
    refusal_count: Optional[int] = None
    # unmotivated / impatient / polite
    max_steps_willing: Optional[int] = None
    refusal_response: Optional[str] = None
    required_keywords: List[str] = Field(default_factory=list)
    # distrustful
    trust_threshold: Optional[int] = None
    invert_before_trust: bool = False
    trust_response: Optional[str] = None


class PerceptionQuirk(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: PerceptionQuirkType
    config: QuirkConfig = Field(default_factory=QuirkConfig)


class PersonalityQuirk(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: PersonalityQuirkType
    config: QuirkConfig = Field(default_factory=QuirkConfig)


class CharacterProfile(BaseModel):
    """Immutable per-level description of who the character is."""

    model_config = ConfigDict(frozen=True)

    name: str = "Explorer"
    bio: str = ""
    comprehension: ComprehensionLevel = ComprehensionLevel.STANDARD
    direction_mode: DirectionMode = DirectionMode.ABSOLUTE
    perception_quirks: List[PerceptionQuirk] = Field(default_factory=list)
    personality_quirks: List[PersonalityQuirk] = Field(default_factory=list)

    def perception_quirk(self, quirk_type: PerceptionQuirkType) -> Optional[PerceptionQuirk]:
        return next((q for q in self.perception_quirks if q.type == quirk_type), None)

    def personality_quirk(self, quirk_type: PersonalityQuirkType) -> Optional[PersonalityQuirk]:
        return next((q for q in self.personality_quirks if q.type == quirk_type), None)

    @property
    def vocabulary_map(self) -> Dict[str, str]:
        quirk = self.perception_quirk(PerceptionQuirkType.OWN_VOCABULARY)
        return dict(quirk.config.vocabulary_map) if quirk else {}


# ============================================================================
# Actions
# ============================================================================


class ActionType(str, Enum):
    MOVE = "move"
    MOVE_TO = "move_to"
    TURN = "turn"
    LOOK = "look"
    EXAMINE = "examine"
    PICK_UP = "pick_up"
    PUT_DOWN = "put_down"
    USE = "use"
    PUSH = "push"
    OPEN_CLOSE = "open_close"
    WAIT = "wait"
    NONE = "none"


# Actions that change the world. A vocabulary mismatch cancels all of these.
PHYSICAL_ACTIONS = frozenset(
    {
        ActionType.MOVE,
        ActionType.MOVE_TO,
        ActionType.TURN,
        ActionType.PICK_UP,
        ActionType.PUT_DOWN,
        ActionType.USE,
        ActionType.PUSH,
        ActionType.OPEN_CLOSE,
    }
)

# Actions the executor treats as already complete.
PASSIVE_ACTIONS = frozenset({ActionType.NONE, ActionType.WAIT, ActionType.LOOK, ActionType.EXAMINE})


class CharacterAction(BaseModel):
    """One typed intention, mutated in place as it moves through the pipeline."""

    model_config = ConfigDict(validate_assignment=True)

    type: ActionType = ActionType.NONE
    direction: Optional[str] = None
    steps: int = 1
    target_object_id: Optional[str] = None
    use_on_target_id: Optional[str] = None
    dialogue: str = ""
    emotion: str = "neutral"

    def refuse(self, dialogue: str, emotion: str) -> None:
        """Downgrade to NONE, replacing dialogue and emotion."""
        self.type = ActionType.NONE
        self.dialogue = dialogue
        self.emotion = emotion

    def reject(self, reason: str, emotion: Optional[str] = None) -> None:
        """Downgrade to NONE, appending the reason to any existing dialogue."""
        self.type = ActionType.NONE
        self.dialogue = (self.dialogue or "") + reason
        if emotion is not None:
            self.emotion = emotion


# ============================================================================
# Model Response Wire Schema
# ============================================================================


class ActionParams(BaseModel):
    direction: Optional[str] = None
    steps: int = 1
    target: Optional[str] = None
    use_on: Optional[str] = None

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value):
        # Models sometimes send "2" or null.
        if value is None:
            return 1
        try:
            return int(value)
        except (TypeError, ValueError):
            return 1


class ActionItem(BaseModel):
    action: Optional[str] = None
    params: Optional[ActionParams] = None


class ModelResponse(BaseModel):
    """Structure the model is instructed to return."""

    dialogue: Optional[str] = None
    emotion: Optional[str] = None
    actions: Optional[List[ActionItem]] = None
    # Single-action form kept for older prompt formats.
    action: Optional[str] = None
    params: Optional[ActionParams] = None
