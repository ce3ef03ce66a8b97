from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import AppConfig
from ..sim.core.world import Simulation

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "cardodge_model.bin"


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: AppConfig):
        self.config = config
        self.simulation = Simulation(config.simulation)
        self.broadcast_interval = max(1, config.broadcast_interval)
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
        self.model_dir = Path(config.model_dir)
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def reset(self) -> None:
        async with self._lock:
            self.simulation.reset()
            self.tick = 0
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def force_next_generation(self) -> int:
        async with self._lock:
            self.simulation.next_generation()
            return self.simulation.generation

    async def save_model(self, path: Path) -> None:
        async with self._lock:
            self.simulation.save_model(path)

    async def load_model(self, path: Path) -> bool:
        async with self._lock:
            return self.simulation.load_model(path)

    async def step_once(self) -> None:
        async with self._lock:
            self.simulation.step()
            self.tick += 1
        if self.tick % self.broadcast_interval == 0:
            await self._broadcast_snapshot()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval / self.speed_multiplier)
            if not self.running:
                continue
            await self.step_once()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        frame = self.simulation.snapshot()
        payload = {
            "type": "snapshot",
            "tick": self.tick,
            "payload": asdict(frame),
        }
        return QueuedSnapshot(tick=self.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        if stale:
            logger.info("dropping %d disconnected clients", len(stale))
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


app = FastAPI(title="CarDodge Training Server")
controller = SimulationController(AppConfig())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    simulation = controller.simulation
    metrics = simulation.metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "generation": simulation.generation,
            "alive": sum(1 for agent in simulation.controller.agents if not agent.eliminated),
            "metrics": asdict(metrics) if metrics is not None else None,
            "history": [asdict(item) for item in simulation.history[-20:]],
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.post("/api/control/mutate")
async def mutate_now() -> JSONResponse:
    generation = await controller.force_next_generation()
    return JSONResponse({"generation": generation})


def _model_path(payload: dict) -> Optional[Path]:
    """Map a client supplied file name into the model directory; None if it is not a bare name."""

    name = payload.get("name", DEFAULT_MODEL_NAME)
    if not isinstance(name, str) or name in {"", ".", ".."} or "\\" in name or Path(name).name != name:
        return None
    return controller.model_dir / name


@app.post("/api/model/save")
async def save_model(payload: dict) -> JSONResponse:
    path = _model_path(payload)
    if path is None:
        return JSONResponse({"error": "name must be a plain file name"}, status_code=400)
    try:
        controller.model_dir.mkdir(parents=True, exist_ok=True)
        await controller.save_model(path)
    except OSError as exc:
        logger.warning("could not save model to %s: %s", path, exc)
        return JSONResponse({"error": f"could not save {path.name}"}, status_code=500)
    return JSONResponse({"saved": path.name})


@app.post("/api/model/load")
async def load_model(payload: dict) -> JSONResponse:
    path = _model_path(payload)
    if path is None:
        return JSONResponse({"error": "name must be a plain file name"}, status_code=400)
    if not path.is_file():
        return JSONResponse({"error": f"no model named {path.name}"}, status_code=404)
    try:
        loaded = await controller.load_model(path)
    except OSError as exc:
        logger.warning("could not read model %s: %s", path, exc)
        return JSONResponse({"error": f"could not read {path.name}"}, status_code=500)
    return JSONResponse({"loaded": loaded, "generation": controller.simulation.generation})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]
