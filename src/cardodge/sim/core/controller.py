from __future__ import annotations

import logging
from time import perf_counter
from typing import Callable, Dict, List, Optional

from pygame.math import Vector2

from ..systems import kinematics, vision
from ..systems.metrics import create_generation_metrics
from ..types.frame import AgentView, RenderFrame
from ..types.metrics import GenerationMetrics, TickMetrics
from .agent import Agent
from .config import STEERING_OUTPUT, THROTTLE_OUTPUT, SimulationConfig
from .errors import DimensionMismatch
from .field import ObstacleField
from .population import Population

logger = logging.getLogger(__name__)

RenderHook = Callable[[RenderFrame], None]


class GenerationController:
    """Steps every live agent once per tick and closes generations.

    Agents are visited in id order and each only writes its own state; the
    max-x, survivor and focus reductions run after the whole pass.
    """

    def __init__(
        self,
        config: SimulationConfig,
        population: Population,
        render_hook: Optional[RenderHook] = None,
        on_sample: Optional[vision.SampleHook] = None,
    ):
        self._config = config
        self._population = population
        self._render_hook = render_hook
        self._on_sample = on_sample
        self._agents: List[Agent] = []
        self._tick = 0
        self._generation_ticks = 0
        self._focus_id = -1
        self.viewport_left = config.track.viewport_start
        self.spawn_agents()

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def population(self) -> Population:
        return self._population

    @property
    def generation(self) -> int:
        return self._population.generation

    @property
    def focus_id(self) -> int:
        return self._focus_id

    def all_eliminated(self) -> bool:
        return all(agent.eliminated for agent in self._agents)

    def fitness_by_id(self) -> Dict[int, float]:
        return {agent.id: agent.fitness for agent in self._agents}

    def spawn_agents(self) -> None:
        start_x, start_y = self._config.track.start_position()
        self._agents = [Agent(id=genome_id, position=Vector2(start_x, start_y)) for genome_id in self._population]
        self._agents.sort(key=lambda agent: agent.id)
        for agent in self._agents:
            kinematics.update_fitness(agent)
        self.viewport_left = self._config.track.viewport_start
        self._generation_ticks = 0
        self._focus_id = -1

    def reset(self) -> None:
        """Respawn agents and restart the tick counter for a fresh run."""

        self._tick = 0
        self.spawn_agents()

    def tick(self, field: ObstacleField) -> TickMetrics:
        start = perf_counter()
        config = self._config
        eliminated = 0
        skipped = 0

        for agent in self._agents:
            if agent.eliminated:
                continue
            reading = vision.sense(agent.position, agent.heading, field, config.sensor, self._on_sample)
            agent.last_reading = reading
            try:
                outputs = self._population[agent.id].infer(reading)
            except DimensionMismatch as exc:
                logger.warning("skipping agent %d this tick: %s", agent.id, exc)
                skipped += 1
                continue
            kinematics.integrate(agent, float(outputs[STEERING_OUTPUT]), float(outputs[THROTTLE_OUTPUT]), config.driving)
            kinematics.update_fitness(agent)
            if kinematics.check_elimination(agent, field, self.viewport_left):
                eliminated += 1

        alive = [agent for agent in self._agents if not agent.eliminated]
        max_x = max((agent.position.x for agent in alive), default=0.0)
        self._focus_id = alive[0].id if len(alive) == 1 else -1
        self._advance_viewport(max_x)
        self._tick += 1
        self._generation_ticks += 1

        if self._render_hook is not None:
            self._render_hook(self.frame())

        return TickMetrics(
            tick=self._tick,
            generation=self.generation,
            alive=len(alive),
            eliminated_this_tick=eliminated,
            max_x=max_x,
            viewport_left=self.viewport_left,
            focus_id=self._focus_id,
            skipped_agents=skipped,
            generation_finished=not alive,
            tick_duration_ms=(perf_counter() - start) * 1000.0,
        )

    def _advance_viewport(self, max_x: float) -> None:
        midpoint = self.viewport_left + self._config.track.visible_length / 2
        if max_x > midpoint:
            self.viewport_left += int(max_x - midpoint)

    def frame(self) -> RenderFrame:
        focus_reading = None
        if self._focus_id >= 0:
            focus_reading = self._agents_by_id()[self._focus_id].last_reading
        return RenderFrame(
            tick=self._tick,
            generation=self.generation,
            viewport_left=self.viewport_left,
            agents=[
                AgentView(id=agent.id, x=agent.position.x, y=agent.position.y, heading=agent.heading, fitness=agent.fitness)
                for agent in self._agents
                if not agent.eliminated
            ],
            focus_id=self._focus_id,
            focus_reading=focus_reading,
        )

    def _agents_by_id(self) -> Dict[int, Agent]:
        return {agent.id: agent for agent in self._agents}

    def finish_generation(self, mutate: bool = True) -> GenerationMetrics:
        """Record the generation, evolve unless ``mutate`` is False, and respawn."""

        metrics = create_generation_metrics(self.generation, self._generation_ticks, self._agents, self.viewport_left)
        logger.info(
            "generation %d finished after %d ticks: best=%.1f mean=%.1f",
            metrics.generation,
            metrics.ticks,
            metrics.best_fitness,
            metrics.mean_fitness,
        )
        if mutate:
            self._population.evolve(self.fitness_by_id())
        self.spawn_agents()
        return metrics
