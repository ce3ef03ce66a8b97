from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(slots=True)
class AgentView:
    id: int
    x: float
    y: float
    heading: float
    fitness: float


@dataclass(slots=True)
class RenderFrame:
    """What a visualiser needs to draw one tick; the core never waits on it."""

    tick: int
    generation: int
    viewport_left: int
    agents: List[AgentView]
    focus_id: int = -1
    focus_reading: Optional[Tuple[float, ...]] = None
    obstacles: Dict[str, Any] = field(default_factory=dict)
