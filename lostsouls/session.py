"""Per-level meta-state: prompt budget, play state, objectives and stars.

The turn pipeline only needs ``consume_prompt_unit``/``refund_prompt_unit``
and ``is_playing``; the rest is the minimum bookkeeping a level needs to be
won, lost and restarted without a UI attached.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, List, Optional

from lostsouls.character import Explorer
from lostsouls.environment.grid import GridModel, GridPosition
from lostsouls.logging_utils import log_deterministic, log_error, log_info, log_success
from lostsouls.registry import ObjectRegistry

OBJECTIVE_REACH_EXIT = "reach_exit"
OBJECTIVE_PLACE_ALL_GEMS = "place_all_gems"


class GameState(str, Enum):
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    LEVEL_COMPLETE = "level_complete"
    LEVEL_FAILED = "level_failed"
    GAME_OVER = "game_over"


class LevelSession:
    """Budget hook and win/lose state for one loaded level."""

    def __init__(
        self,
        *,
        prompt_budget: int,
        par_score: int = 0,
        objectives: Iterable[str] = (OBJECTIVE_REACH_EXIT,),
        grid: Optional[GridModel] = None,
        registry: Optional[ObjectRegistry] = None,
        character: Optional[Explorer] = None,
    ) -> None:
        self.prompt_budget = prompt_budget
        self.par_score = par_score
        self.objectives: List[str] = list(objectives)
        self.grid: Optional[GridModel] = None
        self.registry: Optional[ObjectRegistry] = None
        self.character: Optional[Explorer] = None
        self.prompts_used = 0
        self.state = GameState.LOADING

        self.state_listeners: List[Callable[[GameState], None]] = []
        self.completed_listeners: List[Callable[[int, int], None]] = []
        self.failed_listeners: List[Callable[[int], None]] = []
        self.restart_listeners: List[Callable[[], None]] = []

        self.bind_level(grid, registry, character)

    def bind_level(
        self,
        grid: Optional[GridModel],
        registry: Optional[ObjectRegistry],
        character: Optional[Explorer],
    ) -> None:
        """Watch a freshly built level for exits reached and objective changes."""
        self.grid = grid
        self.registry = registry
        self.character = character
        if registry is not None:
            registry.add_objective_listener(self._on_objective_changed)
        if character is not None:
            character.reached_exit_listeners.append(self._on_reached_exit)

    # Budget -----------------------------------------------------------------

    @property
    def prompts_remaining(self) -> int:
        return self.prompt_budget - self.prompts_used

    @property
    def is_playing(self) -> bool:
        return self.state == GameState.PLAYING

    def consume_prompt_unit(self) -> bool:
        """Spend one prompt. False when not playing or nothing is left."""
        if not self.is_playing:
            log_deterministic("Cannot use prompt: level is not in play")
            return False
        if self.prompts_used >= self.prompt_budget:
            log_deterministic("No prompts remaining")
            return False
        self.prompts_used += 1
        log_deterministic(f"Prompt used. Remaining: {self.prompts_remaining}")
        return True

    def refund_prompt_unit(self) -> None:
        if self.prompts_used > 0:
            self.prompts_used -= 1
            log_deterministic(f"Prompt refunded. Remaining: {self.prompts_remaining}")

    # Lifecycle --------------------------------------------------------------

    @property
    def has_gem_objective(self) -> bool:
        return OBJECTIVE_PLACE_ALL_GEMS in self.objectives

    def start(self) -> None:
        """Enter play. Exits start open unless gems gate them."""
        if self.grid is not None and not self.has_gem_objective:
            self.grid.open_exits()
        self._set_state(GameState.PLAYING)
        log_info(f"Level started: budget {self.prompt_budget}, par {self.par_score}")

    def complete_level(self) -> None:
        if not self.is_playing:
            return
        self._set_state(GameState.LEVEL_COMPLETE)
        stars = self.calculate_stars()
        log_success(
            f"Level complete! Prompts: {self.prompts_used}/{self.prompt_budget}, "
            f"Par: {self.par_score}, Stars: {stars}"
        )
        for listener in list(self.completed_listeners):
            listener(self.prompts_used, self.par_score)

    def fail_level(self) -> None:
        if not self.is_playing:
            return
        self._set_state(GameState.LEVEL_FAILED)
        log_error(f"Level failed! Prompts used: {self.prompts_used}")
        for listener in list(self.failed_listeners):
            listener(self.prompts_used)

    def restart_level(self) -> None:
        """Reset the budget and hand the level back to whoever reloads it."""
        self._set_state(GameState.LOADING)
        self.prompts_used = 0
        for listener in list(self.restart_listeners):
            listener()
        self.start()

    def pause(self) -> None:
        if self.is_playing:
            self._set_state(GameState.PAUSED)

    def resume(self) -> None:
        if self.state == GameState.PAUSED:
            self._set_state(GameState.PLAYING)

    def calculate_stars(self) -> int:
        if self.prompts_used <= self.par_score:
            return 3
        if self.prompts_used <= self.prompt_budget * 0.7:
            return 2
        return 1

    def _set_state(self, state: GameState) -> None:
        if state == self.state:
            return
        self.state = state
        for listener in list(self.state_listeners):
            listener(state)

    # Objectives -------------------------------------------------------------

    def _gems_satisfied(self) -> bool:
        if not self.has_gem_objective:
            return True
        return self.registry is not None and self.registry.are_all_pedestals_activated()

    def _on_reached_exit(self, position: GridPosition) -> None:
        if OBJECTIVE_REACH_EXIT in self.objectives and self._gems_satisfied():
            log_deterministic(f"Reached exit at ({position.x}, {position.y})")
            self.complete_level()

    def _on_objective_changed(self) -> None:
        if not self.is_playing or not self.has_gem_objective or self.grid is None:
            return
        if self._gems_satisfied():
            self.grid.open_exits()
            log_deterministic("All pedestals activated; exit opened")
        else:
            self.grid.close_exits()
            log_deterministic("Pedestal deactivated; exit closed")
