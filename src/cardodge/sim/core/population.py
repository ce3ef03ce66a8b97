from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Tuple

from .config import SimulationConfig
from .errors import CorruptModel
from .network import FeedforwardNetwork
from .rng import DeterministicRng

logger = logging.getLogger(__name__)

_COUNT = struct.Struct("<I")


class Population:
    """Owns one genome per agent slot, keyed by agent id."""

    def __init__(self, config: SimulationConfig, rng: DeterministicRng):
        self._config = config
        self._rng = rng
        self._size = int(config.population_size)
        self._layer_sizes = tuple(config.layer_sizes)
        self._genomes: Dict[int, FeedforwardNetwork] = {}
        self.generation = 0
        self.randomize()

    @property
    def size(self) -> int:
        return self._size

    @property
    def layer_sizes(self) -> Tuple[int, ...]:
        return self._layer_sizes

    def __len__(self) -> int:
        return len(self._genomes)

    def __iter__(self) -> Iterator[int]:
        return iter(self._genomes)

    def __getitem__(self, genome_id: int) -> FeedforwardNetwork:
        return self._genomes[genome_id]

    def ids(self) -> List[int]:
        return list(self._genomes)

    def randomize(self) -> None:
        weight_range = self._config.evolution.initial_weight_range
        self._genomes = {
            genome_id: FeedforwardNetwork.random(genome_id, self._layer_sizes, self._rng, weight_range)
            for genome_id in range(self._size)
        }

    def rank(self, fitness_by_id: Mapping[int, float]) -> List[Tuple[int, FeedforwardNetwork]]:
        """Worst first; ties keep id order."""

        return sorted(self._genomes.items(), key=lambda item: fitness_by_id.get(item[0], 0.0))

    def evolve(self, fitness_by_id: Mapping[int, float]) -> List[int]:
        """Replace the worst half with mutated clones of the best half.

        Worst ``i`` is paired with ``i + N // 2``. Clones are mutated in pair
        order so a seeded rng reproduces the same next generation. Returns the
        ids ranked worst first.
        """

        ranked = self.rank(fitness_by_id)
        half = len(ranked) // 2
        rate = self._config.evolution.mutation_rate
        magnitude = self._config.evolution.mutation_magnitude
        for index in range(half):
            _, loser = ranked[index]
            _, winner = ranked[index + half]
            winner.copy_into(loser)
            loser.mutate(rate, magnitude, self._rng)
        self.generation += 1
        if ranked:
            best_id = ranked[-1][0]
            logger.info(
                "generation %d evolved: best id=%d fitness=%.1f, %d genomes replaced",
                self.generation,
                best_id,
                fitness_by_id.get(best_id, 0.0),
                half,
            )
        return [genome_id for genome_id, _ in ranked]

    def to_bytes(self) -> bytes:
        parts = [_COUNT.pack(len(self._genomes))]
        parts.extend(self._genomes[genome_id].to_bytes() for genome_id in sorted(self._genomes))
        return b"".join(parts)

    def load_bytes(self, data: bytes) -> None:
        """Replace every genome from ``data``; nothing changes if it is rejected."""

        if len(data) < _COUNT.size:
            raise CorruptModel("model file is missing its genome count")
        count = _COUNT.unpack_from(data, 0)[0]
        if count != self._size:
            raise CorruptModel(f"model holds {count} genomes, population needs {self._size}")
        offset = _COUNT.size
        loaded = []
        for genome_id in range(count):
            network, offset = FeedforwardNetwork.decode(data, offset, genome_id)
            if network.layer_sizes != self._layer_sizes:
                raise CorruptModel(
                    f"genome {genome_id} has layers {network.layer_sizes}, expected {self._layer_sizes}"
                )
            loaded.append(network)
        if offset != len(data):
            raise CorruptModel(f"{len(data) - offset} trailing bytes after model")
        for network in loaded:
            network.copy_into(self._genomes[network.id])

    def save(self, path: Path) -> None:
        Path(path).write_bytes(self.to_bytes())
        logger.info("saved %d genomes to %s", len(self._genomes), path)

    def load(self, path: Path) -> None:
        self.load_bytes(Path(path).read_bytes())
        logger.info("loaded %d genomes from %s", len(self._genomes), path)
