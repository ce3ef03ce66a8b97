import logging

from cardodge.sim.core.config import SensorConfig, SimulationConfig
from cardodge.sim.core.world import Simulation


def _config(seed: int = 11) -> SimulationConfig:
    return SimulationConfig(population_size=4, seed=seed, sensor=SensorConfig(sample_count=5))


def _state(simulation: Simulation):
    return (
        simulation.generation,
        simulation.controller.viewport_left,
        [(agent.id, agent.position.x, agent.position.y, agent.heading, agent.eliminated) for agent in simulation.controller.agents],
        [(hole.x, hole.y) for hole in simulation.road.potholes],
        simulation.population.to_bytes(),
    )


def test_deterministic_steps():
    first = Simulation(_config())
    second = Simulation(_config())

    for _ in range(150):
        first.step()
        second.step()

    assert _state(first) == _state(second)
    assert [item.best_fitness for item in first.history] == [item.best_fitness for item in second.history]


def test_different_seeds_give_different_genomes():
    assert Simulation(_config(1)).population.to_bytes() != Simulation(_config(2)).population.to_bytes()


def test_step_scrolls_road_and_records_metrics():
    simulation = Simulation(_config())

    metrics = simulation.step()

    assert simulation.metrics is metrics
    assert metrics.tick == 1
    assert len(simulation.road.potholes) == 1


def test_forced_generation_rolls_over():
    simulation = Simulation(_config())
    for _ in range(5):
        simulation.step()

    summary = simulation.next_generation()

    assert summary.generation == 0
    assert summary.ticks == 5
    assert simulation.generation == 1
    assert simulation.history == [summary]
    assert simulation.road.potholes == []
    assert all(not agent.eliminated for agent in simulation.controller.agents)
    assert simulation.controller.viewport_left == simulation.config.track.viewport_start


def test_snapshot_contains_agents_and_obstacles():
    simulation = Simulation(_config())
    simulation.step()

    frame = simulation.snapshot()

    assert frame.tick == 1
    assert frame.generation == 0
    assert len(frame.agents) <= 4
    assert set(frame.obstacles) == {"viewport_left", "visible_length", "barriers", "potholes", "pothole_size"}


def test_render_hook_sees_every_tick():
    frames = []
    simulation = Simulation(_config(), render_hook=frames.append)

    for _ in range(3):
        simulation.step()

    assert [frame.tick for frame in frames] == [1, 2, 3]


def test_reset_restores_initial_genomes():
    simulation = Simulation(_config())
    initial = simulation.population.to_bytes()
    for _ in range(10):
        simulation.step()
    simulation.next_generation()

    simulation.reset()

    assert simulation.population.to_bytes() == initial
    assert simulation.generation == 0
    assert simulation.history == []
    assert simulation.metrics is None


def test_model_moves_between_runs(tmp_path):
    path = tmp_path / "model.bin"
    source = Simulation(_config(1))
    source.save_model(path)
    target = Simulation(_config(2))

    assert target.load_model(path)

    assert target.population.to_bytes() == source.population.to_bytes()
    assert target.generation == 0
    assert len(target.history) == 1


def test_corrupt_model_falls_back_to_random_genomes(tmp_path, caplog):
    path = tmp_path / "broken.bin"
    path.write_bytes(b"\x04\x00")
    simulation = Simulation(_config())
    before = simulation.population.to_bytes()

    with caplog.at_level(logging.WARNING):
        loaded = simulation.load_model(path)

    assert not loaded
    assert "could not load model" in caplog.text
    assert simulation.population.to_bytes() != before
    assert len(simulation.population) == 4
    assert simulation.generation == 0


def test_step_rolls_over_once_every_agent_is_out():
    simulation = Simulation(_config())
    for _ in range(3):
        simulation.step()
    for agent in simulation.controller.agents:
        agent.eliminate()

    metrics = simulation.step()

    assert metrics.generation_finished
    assert simulation.generation == 1
    assert len(simulation.history) == 1
    assert simulation.history[0].generation == 0
    assert simulation.history[0].ticks == 4
    assert simulation.road.potholes == []
    assert len(simulation.controller.agents) == 4
    assert all(not agent.eliminated for agent in simulation.controller.agents)


def test_reset_restarts_tick_counter():
    frames = []
    simulation = Simulation(_config(), render_hook=frames.append)
    for _ in range(5):
        simulation.step()

    simulation.reset()
    metrics = simulation.step()

    assert metrics.tick == 1
    assert frames[-1].tick == 1
    assert simulation.snapshot().tick == 1
