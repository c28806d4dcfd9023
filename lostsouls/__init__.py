"""
Lost Souls - LLM-guided explorer puzzle turn pipeline.

The player types free text, a language model answers in character, and the
reply is filtered through the explorer's personality and comprehension,
validated against the live grid and executed one action at a time.

All collaborators (grid, objects, model client, level session) are injected.
"""

__version__ = "0.1.0"

# Turn pipeline
from .orchestrator import TurnOrchestrator, TurnOutcome, TurnPhase
from .session import GameState, LevelSession
from .events import (
    ActionCompleted,
    CharacterResponse,
    EventChannel,
    InputRejected,
    LevelFailed,
    TurnCompleted,
    TurnStarted,
)

# Pipeline stages
from .sanitizer import SanitizeResult, sanitize
from .prompt_builder import build_prompt
from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate
from .response_parser import parse_response
from .personality import PersonalityProcessor, TurnState
from .validator import ActionValidator
from .executor import ActionExecutor

# Model access
from .llm_client import ModelCallError, ModelClient, RateLimitedError, call_model_with_retries

# World
from .environment import GridModel, GridPosition, Tile, find_path
from .character import Explorer
from .registry import ObjectRegistry
from .objects import (
    BoxObject,
    DoorObject,
    GemObject,
    GridObject,
    KeyObject,
    PedestalObject,
    PressurePlateObject,
)

# Core schemas
from .schemas import (
    ActionType,
    CharacterAction,
    CharacterProfile,
    ComprehensionLevel,
    Direction,
    DirectionMode,
    DoorState,
    PerceptionQuirk,
    PerceptionQuirkType,
    PersonalityQuirk,
    PersonalityQuirkType,
    QuirkConfig,
    TileType,
)

__all__ = [
    # Turn pipeline
    "TurnOrchestrator",
    "TurnOutcome",
    "TurnPhase",
    "GameState",
    "LevelSession",
    "EventChannel",
    "TurnStarted",
    "TurnCompleted",
    "CharacterResponse",
    "InputRejected",
    "ActionCompleted",
    "LevelFailed",
    # Stages
    "SanitizeResult",
    "sanitize",
    "build_prompt",
    "DEFAULT_PROMPTS",
    "PromptLibrary",
    "PromptTemplate",
    "parse_response",
    "PersonalityProcessor",
    "TurnState",
    "ActionValidator",
    "ActionExecutor",
    # Model access
    "ModelCallError",
    "ModelClient",
    "RateLimitedError",
    "call_model_with_retries",
    # World
    "GridModel",
    "GridPosition",
    "Tile",
    "find_path",
    "Explorer",
    "ObjectRegistry",
    "GridObject",
    "KeyObject",
    "GemObject",
    "BoxObject",
    "DoorObject",
    "PedestalObject",
    "PressurePlateObject",
    # Schemas
    "ActionType",
    "CharacterAction",
    "CharacterProfile",
    "ComprehensionLevel",
    "Direction",
    "DirectionMode",
    "DoorState",
    "PerceptionQuirk",
    "PerceptionQuirkType",
    "PersonalityQuirk",
    "PersonalityQuirkType",
    "QuirkConfig",
    "TileType",
]
