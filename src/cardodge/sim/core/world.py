from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..types.frame import RenderFrame
from ..types.metrics import GenerationMetrics, TickMetrics
from .config import SimulationConfig
from .controller import GenerationController, RenderHook
from .errors import CorruptModel
from .population import Population
from .rng import DeterministicRng, derive_stream_seed
from .road import PotholeRoad

logger = logging.getLogger(__name__)

_TRACK_RNG_SALT = 0x7A3C_0B5E_D0D6_E111


class Simulation:
    """One training run: config, genomes, agents and the road they drive on."""

    def __init__(self, config: SimulationConfig, render_hook: Optional[RenderHook] = None):
        config.validate()
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._track_rng = DeterministicRng(derive_stream_seed(config.seed, _TRACK_RNG_SALT))
        self._road = PotholeRoad(config.track, self._track_rng)
        self._population = Population(config, self._rng)
        self._controller = GenerationController(config, self._population, render_hook=render_hook)
        self._history: List[GenerationMetrics] = []
        self._metrics: TickMetrics | None = None

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def road(self) -> PotholeRoad:
        return self._road

    @property
    def population(self) -> Population:
        return self._population

    @property
    def controller(self) -> GenerationController:
        return self._controller

    @property
    def generation(self) -> int:
        return self._population.generation

    @property
    def history(self) -> List[GenerationMetrics]:
        return self._history

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def reset(self) -> None:
        self._rng.reset()
        self._road.reset()
        self._population.randomize()
        self._population.generation = 0
        self._controller.reset()
        self._history.clear()
        self._metrics = None

    def step(self) -> TickMetrics:
        """Scroll the road, run one tick and roll over the generation if nobody is left."""

        self._road.scroll(self._controller.viewport_left)
        metrics = self._controller.tick(self._road)
        self._metrics = metrics
        if metrics.generation_finished:
            self.next_generation()
        return metrics

    def next_generation(self, mutate: bool = True) -> GenerationMetrics:
        summary = self._controller.finish_generation(mutate=mutate)
        self._history.append(summary)
        self._road.reset()
        return summary

    def snapshot(self) -> RenderFrame:
        frame = self._controller.frame()
        frame.obstacles = self._road.export_obstacles()
        return frame

    def save_model(self, path: Path) -> None:
        self._population.save(path)

    def load_model(self, path: Path) -> bool:
        """Load genomes and restart the generation without evolving.

        A corrupt file leaves the run on freshly randomised genomes; returns
        whether the file was used.
        """

        try:
            self._population.load(path)
            loaded = True
        except CorruptModel as exc:
            logger.warning("could not load model %s (%s); using random genomes", path, exc)
            self._population.randomize()
            loaded = False
        self.next_generation(mutate=False)
        return loaded
