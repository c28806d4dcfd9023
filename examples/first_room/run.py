"""
First Room: guide a lost explorer out of a locked chamber.

A small console level played through the full turn pipeline. Type
instructions to the explorer; each one costs a prompt. The key opens the
door, the ruby belongs on the pedestal, and the exit opens once it glows.

Run: uv run python examples/first_room/run.py
Local model: LLM_PROVIDER=ollama LLM_MODEL=llama3.1 uv run python examples/first_room/run.py
"""

import argparse
import asyncio

from lostsouls import (
    CharacterResponse,
    DoorObject,
    EventChannel,
    Explorer,
    GameState,
    GemObject,
    GridModel,
    InputRejected,
    KeyObject,
    LevelFailed,
    LevelSession,
    ModelClient,
    ObjectRegistry,
    PedestalObject,
    TurnOrchestrator,
)
from lostsouls.config import Config
from lostsouls.schemas import (
    CharacterProfile,
    ComprehensionLevel,
    DoorState,
    PerceptionQuirk,
    PerceptionQuirkType,
    PersonalityQuirk,
    PersonalityQuirkType,
    QuirkConfig,
)
from lostsouls.session import OBJECTIVE_PLACE_ALL_GEMS, OBJECTIVE_REACH_EXIT

# North is the top row.
ROOM = [
    "###E###",
    "#.....#",
    "#.....#",
    "###.###",
    "#.....#",
    "#.....#",
    "#######",
]


def build_level(step_delay: float):
    grid = GridModel.from_rows(ROOM)
    registry = ObjectRegistry(grid)
    registry.extend(
        [
            DoorObject("door_1", "Heavy Door", (3, 3), state=DoorState.LOCKED),
            KeyObject("key_gold", "Gold Key", (5, 1), color="gold", unlocks_door_id="door_1"),
            GemObject("gem_red", "Ruby", (1, 2), color="red", target_pedestal_id="pedestal_1"),
            PedestalObject("pedestal_1", "Pedestal", (5, 5), accepts_gem_id="gem_red"),
        ]
    )
    explorer = Explorer(grid, registry, (1, 1), name="Mira", step_delay=step_delay)
    return grid, registry, explorer


def build_profile(comprehension: str) -> CharacterProfile:
    return CharacterProfile(
        name="Mira",
        bio="A cartographer who got separated from her expedition.",
        comprehension=ComprehensionLevel(comprehension),
        perception_quirks=[
            PerceptionQuirk(
                type=PerceptionQuirkType.OWN_VOCABULARY,
                config=QuirkConfig(vocabulary_map={"Ruby": "red sparkle"}),
            )
        ],
        personality_quirks=[
            PersonalityQuirk(
                type=PersonalityQuirkType.POLITE,
                config=QuirkConfig(required_keywords=["please", "kindly", "could you"]),
            )
        ],
    )


def print_event(event) -> None:
    if isinstance(event, CharacterResponse):
        print(f'\n  Mira ({event.emotion}): "{event.dialogue}"')
    elif isinstance(event, InputRejected):
        print("  (Mira didn't take that well.)")
    elif isinstance(event, LevelFailed):
        print(f"\n  Out of prompts after {event.prompts_used}. The room resets.")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Play the first Lost Souls room in the console.")
    parser.add_argument("--budget", type=int, default=12, help="Prompts available for the level")
    parser.add_argument("--comprehension", choices=[c.value for c in ComprehensionLevel], default="standard")
    parser.add_argument("--step-delay", type=float, default=0.1, help="Seconds per tile walked")
    args = parser.parse_args()

    Config.validate()
    print(Config.display())

    grid, registry, explorer = build_level(args.step_delay)
    session = LevelSession(
        prompt_budget=args.budget,
        par_score=6,
        objectives=(OBJECTIVE_REACH_EXIT, OBJECTIVE_PLACE_ALL_GEMS),
        grid=grid,
        registry=registry,
        character=explorer,
    )
    events = EventChannel()
    events.subscribe(print_event)
    profile = build_profile(args.comprehension)
    orchestrator = TurnOrchestrator(
        session=session,
        grid=grid,
        registry=registry,
        character=explorer,
        profile=profile,
        model=ModelClient(),
        events=events,
    )

    def reload_level() -> None:
        new_grid, new_registry, new_explorer = build_level(args.step_delay)
        session.bind_level(new_grid, new_registry, new_explorer)
        orchestrator.initialize_for_level(grid=new_grid, registry=new_registry, character=new_explorer, profile=profile)

    session.restart_listeners.append(reload_level)
    session.completed_listeners.append(
        lambda used, par: print(f"\n  Mira steps into the light! {used} prompts, {session.calculate_stars()} stars.")
    )
    session.start()

    print("\nYou are a spirit. Mira can hear you. Type 'quit' to leave.\n")
    while session.state != GameState.LEVEL_COMPLETE:
        try:
            text = await asyncio.to_thread(input, f"[{session.prompts_remaining} left] > ")
        except EOFError:
            break
        if text.strip().lower() in {"quit", "exit"}:
            break
        await orchestrator.submit_prompt(text)


if __name__ == "__main__":
    asyncio.run(main())
