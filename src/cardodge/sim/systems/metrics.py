from __future__ import annotations

from typing import Sequence

from ..core.agent import Agent
from ..types.metrics import GenerationMetrics


def create_generation_metrics(
    generation: int, ticks: int, agents: Sequence[Agent], viewport_left: int
) -> GenerationMetrics:
    if not agents:
        return GenerationMetrics(
            generation=generation,
            ticks=ticks,
            best_id=-1,
            best_fitness=0.0,
            mean_fitness=0.0,
            worst_fitness=0.0,
            viewport_left=viewport_left,
        )
    best = max(agents, key=lambda agent: agent.fitness)
    fitnesses = [agent.fitness for agent in agents]
    return GenerationMetrics(
        generation=generation,
        ticks=ticks,
        best_id=best.id,
        best_fitness=best.fitness,
        mean_fitness=sum(fitnesses) / len(fitnesses),
        worst_fitness=min(fitnesses),
        viewport_left=viewport_left,
    )
