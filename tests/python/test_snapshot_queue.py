import asyncio
import json

import pytest

from cardodge.app import server
from cardodge.app.server import SimulationController
from cardodge.sim.core.config import AppConfig, SimulationConfig


def test_snapshot_queue_ack_cleanup() -> None:
    controller = SimulationController(AppConfig())

    async def exercise() -> None:
        controller.tick = 1
        await controller._broadcast_snapshot()
        controller.tick = 2
        await controller._broadcast_snapshot()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [1, 2]
        await controller.acknowledge(1)
        async with controller._queue_lock:
            remaining_ticks = [item.tick for item in controller._snapshot_queue]
        assert remaining_ticks == [2]

    asyncio.run(exercise())


def test_snapshot_payload_carries_agents_and_obstacles() -> None:
    controller = SimulationController(AppConfig(simulation=SimulationConfig(population_size=3), broadcast_interval=1))

    async def exercise() -> None:
        await controller.step_once()
        async with controller._queue_lock:
            item = controller._snapshot_queue[-1]
        payload = json.loads(item.payload)
        assert payload["type"] == "snapshot"
        assert payload["tick"] == 1
        frame = payload["payload"]
        assert frame["generation"] == 0
        assert len(frame["agents"]) <= 3
        for key in ["id", "x", "y", "heading", "fitness"]:
            assert all(key in agent for agent in frame["agents"])
        assert "potholes" in frame["obstacles"]
        assert "barriers" in frame["obstacles"]

    asyncio.run(exercise())


def test_force_next_generation_advances_counter() -> None:
    controller = SimulationController(AppConfig(simulation=SimulationConfig(population_size=4)))

    async def exercise() -> None:
        generation = await controller.force_next_generation()
        assert generation == 1
        assert all(not agent.eliminated for agent in controller.simulation.controller.agents)

    asyncio.run(exercise())


def test_save_and_load_model_through_controller(tmp_path) -> None:
    controller = SimulationController(AppConfig(simulation=SimulationConfig(population_size=4)))
    model_path = tmp_path / "model.bin"

    async def exercise() -> None:
        await controller.save_model(model_path)
        loaded = await controller.load_model(model_path)
        assert loaded is True

    asyncio.run(exercise())
    assert model_path.read_bytes() == controller.simulation.population.to_bytes()


def _body(response) -> dict:
    return json.loads(response.body)


def test_model_routes_save_and_load_inside_model_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(server.controller, "model_dir", tmp_path / "models")

    saved = asyncio.run(server.save_model({"name": "run1.bin"}))
    loaded = asyncio.run(server.load_model({"name": "run1.bin"}))

    assert saved.status_code == 200
    assert _body(saved) == {"saved": "run1.bin"}
    assert (tmp_path / "models" / "run1.bin").is_file()
    assert loaded.status_code == 200
    assert _body(loaded)["loaded"] is True


@pytest.mark.parametrize("name", ["../escaped.bin", "/tmp/escaped.bin", "sub/escaped.bin", "..", "", 7])
def test_model_routes_reject_names_outside_model_dir(tmp_path, monkeypatch, name) -> None:
    model_dir = tmp_path / "models"
    monkeypatch.setattr(server.controller, "model_dir", model_dir)
    before = server.controller.simulation.population.to_bytes()

    saved = asyncio.run(server.save_model({"name": name}))
    loaded = asyncio.run(server.load_model({"name": name}))

    assert saved.status_code == 400
    assert loaded.status_code == 400
    assert not (tmp_path / "escaped.bin").exists()
    assert not model_dir.exists()
    assert server.controller.simulation.population.to_bytes() == before


def test_model_load_of_missing_name_is_not_found(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(server.controller, "model_dir", tmp_path)

    response = asyncio.run(server.load_model({"name": "absent.bin"}))

    assert response.status_code == 404


def test_model_save_failure_is_reported_as_json(tmp_path, monkeypatch) -> None:
    blocked = tmp_path / "occupied"
    blocked.write_text("not a directory")
    monkeypatch.setattr(server.controller, "model_dir", blocked)

    response = asyncio.run(server.save_model({"name": "run1.bin"}))

    assert response.status_code == 500
    assert "error" in _body(response)
