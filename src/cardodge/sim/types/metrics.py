from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    generation: int
    alive: int
    eliminated_this_tick: int
    max_x: float
    viewport_left: int
    focus_id: int
    skipped_agents: int = 0
    generation_finished: bool = False
    tick_duration_ms: float = 0.0


@dataclass(slots=True)
class GenerationMetrics:
    generation: int
    ticks: int
    best_id: int
    best_fitness: float
    mean_fitness: float
    worst_fitness: float
    viewport_left: int
