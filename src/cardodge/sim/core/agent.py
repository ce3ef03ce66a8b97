from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from pygame.math import Vector2


class AgentState(str, Enum):
    ALIVE = "Alive"
    ELIMINATED = "Eliminated"


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2
    heading: float = 0.0
    fitness: float = 0.0
    eliminated: bool = False
    last_reading: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def state(self) -> AgentState:
        return AgentState.ELIMINATED if self.eliminated else AgentState.ALIVE

    def eliminate(self) -> None:
        self.eliminated = True
