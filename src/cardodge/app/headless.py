from __future__ import annotations

import argparse
import csv
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.world import Simulation
from ..sim.types.metrics import GenerationMetrics

logger = logging.getLogger(__name__)

_HEADER = [
    "generation",
    "ticks",
    "best_id",
    "best_fitness",
    "mean_fitness",
    "worst_fitness",
    "viewport_left",
]


def _format_row(metrics: GenerationMetrics) -> list[object]:
    return [
        metrics.generation,
        metrics.ticks,
        metrics.best_id,
        f"{metrics.best_fitness:.4f}",
        f"{metrics.mean_fitness:.4f}",
        f"{metrics.worst_fitness:.4f}",
        metrics.viewport_left,
    ]


def _summary(simulation: Simulation, steps: int, tick_ms: list[float]) -> dict[str, object]:
    history = simulation.history
    best = max(history, key=lambda item: item.best_fitness, default=None)
    return {
        "steps": steps,
        "seed": simulation.config.seed,
        "population_size": simulation.config.population_size,
        "layer_sizes": list(simulation.population.layer_sizes),
        "generations_completed": len(history),
        "final_generation": simulation.generation,
        "best": None
        if best is None
        else {"generation": best.generation, "id": best.best_id, "fitness": best.best_fitness},
        "best_fitness_by_generation": [item.best_fitness for item in history],
        "avg_tick_ms": sum(tick_ms) / len(tick_ms) if tick_ms else 0.0,
    }


def run_headless(
    steps: int,
    seed: Optional[int] = None,
    log_path: Optional[Path] = None,
    summary_path: Optional[Path] = None,
    config: Optional[SimulationConfig] = None,
    load_path: Optional[Path] = None,
    save_path: Optional[Path] = None,
) -> Simulation:
    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config = replace(config, seed=seed)
    simulation = Simulation(config)
    if load_path is not None:
        simulation.load_model(load_path)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_HEADER)

    tick_ms: list[float] = []
    written = len(simulation.history)
    try:
        for _ in range(steps):
            metrics = simulation.step()
            tick_ms.append(metrics.tick_duration_ms)
            if writer:
                for item in simulation.history[written:]:
                    writer.writerow(_format_row(item))
            written = len(simulation.history)
    finally:
        if csv_file:
            csv_file.close()

    if save_path is not None:
        simulation.save_model(save_path)
    if summary_path:
        Path(summary_path).write_text(json.dumps(_summary(simulation, steps, tick_ms), indent=2))
    logger.info("ran %d ticks, reached generation %d", steps, simulation.generation)
    return simulation


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless CarDodge training run")
    parser.add_argument("--steps", type=int, default=20000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-generation metrics")
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file to write run summary.")
    parser.add_argument("--load", type=Path, default=None, help="Model file to start from")
    parser.add_argument("--save", type=Path, default=None, help="Model file to write when the run ends")
    parser.add_argument("--verbose", action="store_true", help="Log every generation")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    config = SimulationConfig.from_yaml(args.config) if args.config else None
    run_headless(
        args.steps,
        args.seed,
        args.log,
        summary_path=args.summary,
        config=config,
        load_path=args.load,
        save_path=args.save,
    )


if __name__ == "__main__":
    main()
