"""Prompt templates for the character model call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class PromptTemplate:
    """Represents a templated prompt with ``{{placeholder}}`` slots."""

    name: str
    system: str
    user: str
    description: str = ""


@dataclass
class RenderedPrompt:
    system: str
    user: str


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]


def render_prompt(template: PromptTemplate, replacements: Mapping[str, str]) -> RenderedPrompt:
    """Substitute ``{{key}}`` placeholders; double braces keep JSON examples intact."""
    system = template.system
    user = template.user
    for key, value in replacements.items():
        token = "{{" + key + "}}"
        system = system.replace(token, value)
        user = user.replace(token, value)
    return RenderedPrompt(system=system.strip() + "\n", user=user.strip())


RESPONSE_FORMAT = """You MUST respond in this EXACT JSON format and nothing else:
{
  "dialogue": "What you say to the spirit (in character, 1-2 sentences max)",
  "actions": [
    {
      "action": "move|move_to|turn|look|examine|pick_up|put_down|use|push|open_close|wait|none",
      "params": {
        "direction": "north|south|east|west|up|down|left|right",
        "steps": 2,
        "target": "object_id or description of object",
        "use_on": "target_object_id to use held item on"
      }
    }
  ],
  "emotion": "confused|happy|annoyed|scared|neutral|proud|sad"
}

The "actions" array lists what you will do, IN ORDER. Include as many actions as your comprehension allows.
Example for 2 actions: "actions": [{"action": "pick_up", "params": {"target": "key_gold"}}, {"action": "move_to", "params": {"target": "door_main"}}]
For "direction": "up" is north, "down" is south, "left" is west, "right" is east.
For "target": use the object's id (e.g. "key_gold", "door_1") or a descriptive reference.
Only include params that matter for each action. "steps" defaults to 1.

CONVERSATIONAL RESPONSES:
If the spirit is just chatting or asking a question, answer with dialogue and a single "none" action:
"actions": [{"action": "none", "params": {}}]
Keep it short (1-3 sentences) and talk like a real person: your feelings, your surroundings, your fears and hopes."""


DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="character",
        system=(
            "You are {{name}}, a lost explorer trapped in ancient ruins. A kind spirit is trying to guide "
            "you out. You can hear the spirit's voice, but you have your own personality and your own way "
            "of seeing the world. You are a real person: you can talk, react, and share how you feel. "
            "Not every reply needs an action.\n\n"
            "CHARACTER IDENTITY:\n- Name: {{name}}\n- Bio: {{bio}}\n\n"
            "{{perception}}\n\n"
            "{{personality}}\n\n"
            "{{comprehension}}\n\n"
            "{{directions}}\n\n"
            "{{level_state}}\n\n"
            "{{actions}}\n\n"
            "{{hints}}"
            "{{rules}}\n\n"
            "{{response_format}}"
        ),
        user="{{player_text}}",
        description="Single-call character controller: persona, level state and JSON action contract.",
    )
)
