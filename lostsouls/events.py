"""Turn events and the channel that carries them to listeners.

Producers only ``emit``; nothing is delivered until the orchestrator
``drain``s the channel at one of its suspension points, so listeners never
run in the middle of a pipeline stage.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, List

from lostsouls.logging_utils import log_error
from lostsouls.schemas import ActionType


@dataclass(frozen=True)
class TurnStarted:
    player_text: str


@dataclass(frozen=True)
class TurnCompleted:
    pass


@dataclass(frozen=True)
class CharacterResponse:
    dialogue: str
    emotion: str


@dataclass(frozen=True)
class InputRejected:
    dialogue: str


@dataclass(frozen=True)
class ActionCompleted:
    action_type: ActionType
    success: bool = True


@dataclass(frozen=True)
class LevelFailed:
    prompts_used: int


TurnEvent = TurnStarted | TurnCompleted | CharacterResponse | InputRejected | ActionCompleted | LevelFailed
EventListener = Callable[[TurnEvent], None]


class EventChannel:
    """FIFO of turn events plus the listeners that consume them."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[TurnEvent] = asyncio.Queue()
        self._listeners: List[EventListener] = []
        self.history: List[TurnEvent] = []

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event: TurnEvent) -> None:
        self._queue.put_nowait(event)

    def drain(self) -> List[TurnEvent]:
        """Deliver every pending event in order and return them."""
        delivered: List[TurnEvent] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            delivered.append(event)
            self.history.append(event)
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as exc:  # listener faults never break a turn
                    log_error(f"Event listener failed on {type(event).__name__}: {exc}")
        return delivered

    def responses(self) -> List[CharacterResponse]:
        return [event for event in self.history if isinstance(event, CharacterResponse)]
