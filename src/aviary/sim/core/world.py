from __future__ import annotations

import copy
import logging
import math
from dataclasses import asdict
from time import perf_counter
from typing import Any, Dict, List, Optional

from pygame.math import Vector3

from ...config import SimulationConfig, behavior_names, weight_names
from ...exceptions import ConfigurationError
from ..systems import metrics as metrics_system
from ..systems import steering
from ..systems.steering import SteeringParams
from ..types.metrics import TickMetrics
from ..types.snapshot import (
    Snapshot,
    SnapshotControls,
    SnapshotMetadata,
    SnapshotPredator,
    SnapshotWorld,
)
from .boid import Boid, spawn_boid
from .obstacle import Obstacle, build_obstacles
from .predator import Predator, spawn_predator
from .rng import DeterministicRng

_logger = logging.getLogger(__name__)

_GOAL_RNG_SALT = 0x60A1F00D5EED1234
_OBSTACLE_RNG_SALT = 0x0B57AC1EC0FFEE01
_FLOCKING_BEHAVIORS = ("separation", "alignment", "cohesion")


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


def _as_list(vector: Vector3) -> List[float]:
    return [vector.x, vector.y, vector.z]


class World:
    """Owns the flock, the predator, the obstacles and the goal.

    ``step`` advances everything by one tick. With the default
    ``update_order="sequential"`` each boid is integrated right after its own
    force is computed, so boids later in the list see the already-moved state
    of earlier ones. ``"two_phase"`` computes every force against the pre-tick
    population first and integrates afterwards.
    """

    def __init__(self, config: SimulationConfig):
        self._config = copy.deepcopy(config).validate()
        self._params = SteeringParams.from_config(self._config)
        self._rng = DeterministicRng(self._config.seed)
        self._goal_rng = DeterministicRng(_derive_stream_seed(self._config.seed, _GOAL_RNG_SALT))
        self._obstacle_rng = DeterministicRng(_derive_stream_seed(self._config.seed, _OBSTACLE_RNG_SALT))
        self._obstacles: List[Obstacle] = build_obstacles(self._config.obstacles, self._obstacle_rng)
        self._boids: List[Boid] = []
        self._predator: Predator = spawn_predator(self._rng, self._config)
        self._goal = Vector3()
        self._paused = self._config.paused
        self._next_id = 0
        self._metrics: TickMetrics | None = None
        self._bootstrap()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def params(self) -> SteeringParams:
        return self._params

    @property
    def boids(self) -> List[Boid]:
        return self._boids

    @property
    def predator(self) -> Predator:
        return self._predator

    @property
    def obstacles(self) -> List[Obstacle]:
        return self._obstacles

    @property
    def goal(self) -> Vector3:
        return self._goal

    @property
    def half_extent(self) -> float:
        return self._config.half_extent

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def reset(self) -> None:
        self._boids.clear()
        self._rng.reset()
        self._goal_rng.reset()
        self._next_id = 0
        self._metrics = None
        self._predator = spawn_predator(self._rng, self._config)
        self._bootstrap()
        _logger.info("World reset with %d boids", len(self._boids))

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        if self._paused:
            metrics = metrics_system.create_metrics(
                tick, self._boids, self._predator, False, True, 0, (perf_counter() - start) * 1000.0
            )
            self._metrics = metrics
            return metrics

        behaviors = self._config.behaviors
        if behaviors.predator:
            self._predator.update(self._boids, self._params)

        goal_relocated = False
        if behaviors.goal and self._goal_rng.next_float() < self._config.goal_relocate_chance:
            self.relocate_goal()
            goal_relocated = True

        if self._config.update_order == "two_phase":
            forces = [self._compute_force(boid) for boid in self._boids]
            for boid, force in zip(self._boids, forces):
                boid.apply_force(force)
                boid.update(self._params)
        else:
            for boid in self._boids:
                boid.apply_force(self._compute_force(boid))
                boid.update(self._params)

        population = len(self._boids)
        active = sum(1 for name in _FLOCKING_BEHAVIORS if getattr(behaviors, name))
        neighbor_checks = population * population * active
        metrics = metrics_system.create_metrics(
            tick,
            self._boids,
            self._predator if behaviors.predator else None,
            goal_relocated,
            False,
            neighbor_checks,
            (perf_counter() - start) * 1000.0,
        )
        self._metrics = metrics
        return metrics

    def set_paused(self, paused: bool) -> None:
        self._paused = bool(paused)
        _logger.info("Simulation %s", "paused" if self._paused else "resumed")

    def toggle_pause(self) -> bool:
        self.set_paused(not self._paused)
        return self._paused

    def set_behavior(self, name: str, enabled: bool) -> None:
        if name not in behavior_names():
            raise ConfigurationError(name, f"unknown behavior, expected one of {', '.join(behavior_names())}")
        setattr(self._config.behaviors, name, bool(enabled))
        _logger.info("Behavior %s %s", name, "enabled" if enabled else "disabled")

    def toggle_behavior(self, name: str) -> bool:
        if name not in behavior_names():
            raise ConfigurationError(name, f"unknown behavior, expected one of {', '.join(behavior_names())}")
        enabled = not getattr(self._config.behaviors, name)
        self.set_behavior(name, enabled)
        return enabled

    def set_weight(self, name: str, value: float) -> None:
        if name not in weight_names():
            raise ConfigurationError(name, f"unknown weight, expected one of {', '.join(weight_names())}")
        value = float(value)
        if not math.isfinite(value):
            raise ConfigurationError(name, "weight must be finite")
        setattr(self._config.weights, name, value)
        _logger.debug("Weight %s set to %.3f", name, value)

    def set_display(self, show_trails: Optional[bool] = None, show_banking: Optional[bool] = None) -> None:
        display = self._config.display
        if show_trails is not None:
            display.show_trails = bool(show_trails)
        if show_banking is not None:
            display.show_banking = bool(show_banking)

    def add_boids(self, count: Optional[int] = None) -> int:
        count = self._config.growth_batch if count is None else int(count)
        if count < 0:
            raise ConfigurationError("count", "must not be negative")
        for _ in range(count):
            self._spawn_boid()
        _logger.info("Added %d boids, population %d", count, len(self._boids))
        return len(self._boids)

    def relocate_goal(self) -> Vector3:
        spread = self._config.world_size * self._config.goal_spread * 0.5
        self._goal = self._goal_rng.next_centered_cube(spread)
        _logger.debug("Goal moved to (%.2f, %.2f, %.2f)", self._goal.x, self._goal.y, self._goal.z)
        return self._goal

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(tick, self._boids, self._predator, False, self._paused, 0, 0.0)
        config = self._config
        predator = self._predator
        return Snapshot(
            tick=tick,
            metrics=metrics,
            boids=[self._boid_snapshot(boid) for boid in self._boids],
            predator=SnapshotPredator(
                position=_as_list(predator.position),
                velocity=_as_list(predator.velocity),
                size=predator.size,
                trail=[_as_list(point) for point in predator.trail],
            ),
            obstacles=[
                {"position": _as_list(obstacle.position), "radius": obstacle.radius, "color": list(obstacle.color)}
                for obstacle in self._obstacles
            ],
            world=SnapshotWorld(half_extent=config.half_extent, goal=_as_list(self._goal)),
            controls=SnapshotControls(
                paused=self._paused,
                behaviors=asdict(config.behaviors),
                weights=asdict(config.weights),
                show_trails=config.display.show_trails,
                show_banking=config.display.show_banking,
                update_order=config.update_order,
            ),
            metadata=SnapshotMetadata(
                world_size=config.world_size,
                seed=config.seed,
                config_version=config.config_version,
            ),
        )

    def _bootstrap(self) -> None:
        for _ in range(self._config.initial_population):
            self._spawn_boid()
        self.relocate_goal()

    def _spawn_boid(self) -> Boid:
        boid = spawn_boid(self._rng, self._config, self._next_id)
        self._next_id += 1
        self._boids.append(boid)
        return boid

    def _compute_force(self, boid: Boid) -> Vector3:
        config = self._config
        return steering.compute_force(
            boid,
            self._boids,
            self._obstacles,
            self._predator.position,
            self._goal,
            config.weights,
            config.behaviors,
            self._params,
        )

    @staticmethod
    def _boid_snapshot(boid: Boid) -> Dict[str, Any]:
        return {
            "id": boid.id,
            "position": _as_list(boid.position),
            "velocity": _as_list(boid.velocity),
            "speed": boid.speed,
            "color": list(boid.color),
            "bank_angle": boid.bank_angle,
            "trail": [_as_list(point) for point in boid.trail],
        }
