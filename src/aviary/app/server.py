from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..config import AppConfig, SimulationConfig
from ..exceptions import ConfigurationError
from ..sim.core.world import World

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, time_step: float = 1.0 / 60.0):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.time_step = time_step
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
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
            self.world.reset()
            self.tick = 0
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def advance(self) -> None:
        async with self._lock:
            self.world.step(self.tick)
            if not self.world.paused:
                self.tick += 1

    async def grow(self, count: int | None = None) -> int:
        async with self._lock:
            return self.world.add_boids(count)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.time_step / self.speed_multiplier)
            if not self.running:
                continue
            await self.advance()
            if self.tick % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def snapshot_payload(self) -> dict:
        snapshot = self.world.snapshot(self.tick)
        return {
            "tick": snapshot.tick,
            "metrics": asdict(snapshot.metrics),
            "boids": snapshot.boids,
            "predator": asdict(snapshot.predator),
            "obstacles": snapshot.obstacles,
            "world": asdict(snapshot.world),
            "controls": asdict(snapshot.controls),
            "metadata": asdict(snapshot.metadata),
        }

    def _serialize_snapshot(self) -> QueuedSnapshot:
        payload = {"type": "snapshot", "tick": self.tick, "payload": self.snapshot_payload()}
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
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


def _bad_request(exc: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def _flag(payload: dict, key: str) -> bool | None:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise ConfigurationError(key, f"expected a JSON boolean, got {value!r}")


def create_app(controller: SimulationController) -> FastAPI:
    app = FastAPI(title="Aviary Boids Simulation")

    @app.on_event("startup")
    async def _startup() -> None:
        await controller.start()

    @app.get("/api/status")
    async def status() -> JSONResponse:
        world = controller.world
        return JSONResponse(
            {
                "running": controller.running,
                "paused": world.paused,
                "tick": controller.tick,
                "population": len(world.boids),
                "metrics": None if world.metrics is None else asdict(world.metrics),
            }
        )

    @app.get("/api/snapshot")
    async def snapshot() -> JSONResponse:
        return JSONResponse(controller.snapshot_payload())

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        controller.running = True
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        controller.running = False
        return JSONResponse({"running": False})

    @app.post("/api/control/pause")
    async def pause_simulation(payload: dict | None = None) -> JSONResponse:
        try:
            paused = _flag(payload or {}, "paused")
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        if paused is None:
            paused = controller.world.toggle_pause()
        else:
            controller.world.set_paused(paused)
        return JSONResponse({"paused": controller.world.paused})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/grow")
    async def grow_flock(payload: dict | None = None) -> JSONResponse:
        count = (payload or {}).get("count")
        try:
            population = await controller.grow(None if count is None else int(count))
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        return JSONResponse({"population": population})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        speed = float(payload.get("multiplier", 1.0))
        controller.speed_multiplier = max(0.1, min(5.0, speed))
        return JSONResponse({"multiplier": controller.speed_multiplier})

    @app.post("/api/control/behavior")
    async def set_behavior(payload: dict) -> JSONResponse:
        name = str(payload.get("name", ""))
        try:
            enabled = _flag(payload, "enabled")
            if enabled is not None:
                controller.world.set_behavior(name, enabled)
            else:
                enabled = controller.world.toggle_behavior(name)
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        return JSONResponse({"name": name, "enabled": enabled})

    @app.post("/api/control/weight")
    async def set_weight(payload: dict) -> JSONResponse:
        name = str(payload.get("name", ""))
        try:
            controller.world.set_weight(name, float(payload.get("value", 0.0)))
        except (ConfigurationError, TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse({"name": name, "value": getattr(controller.world.config.weights, name)})

    @app.post("/api/control/display")
    async def set_display(payload: dict) -> JSONResponse:
        try:
            controller.world.set_display(
                show_trails=_flag(payload, "show_trails"),
                show_banking=_flag(payload, "show_banking"),
            )
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        display = controller.world.config.display
        return JSONResponse({"show_trails": display.show_trails, "show_banking": display.show_banking})

    @app.post("/api/control/goal")
    async def relocate_goal() -> JSONResponse:
        goal = controller.world.relocate_goal()
        return JSONResponse({"goal": [goal.x, goal.y, goal.z]})

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
                    _logger.debug("Ignoring malformed websocket message")
                    continue
                if payload.get("type") == "ack":
                    tick = payload.get("tick")
                    if isinstance(tick, int):
                        await controller.acknowledge(tick)
        except WebSocketDisconnect:
            controller.clients.discard(websocket)
            controller._client_last_sent.pop(websocket, None)

    return app


_app_config = AppConfig()
controller = SimulationController(
    _app_config.simulation,
    broadcast_interval=_app_config.broadcast_interval,
    time_step=_app_config.time_step,
)
app = create_app(controller)


__all__ = ["app", "controller", "create_app", "SimulationController"]
