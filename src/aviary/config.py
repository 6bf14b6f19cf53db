from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List

import yaml

from .exceptions import ConfigurationError

UPDATE_ORDERS = ("sequential", "two_phase")
_FLOAT_FIELDS = (
    "world_size",
    "boid_size",
    "max_speed",
    "min_speed",
    "max_force",
    "separation_radius",
    "alignment_radius",
    "cohesion_radius",
    "obstacle_margin",
    "predator_radius",
    "goal_relocate_chance",
    "goal_spread",
    "boundary_margin",
    "boundary_strength",
)


@dataclass
class BehaviorWeights:
    separation: float = 1.5
    alignment: float = 1.0
    cohesion: float = 1.0
    obstacle: float = 2.0
    predator: float = 3.0
    goal: float = 0.5
    boundary: float = 1.5


@dataclass
class BehaviorToggles:
    separation: bool = True
    alignment: bool = True
    cohesion: bool = True
    obstacles: bool = True
    predator: bool = True
    goal: bool = False


@dataclass
class DisplayConfig:
    show_trails: bool = True
    show_banking: bool = True


@dataclass
class ObstacleConfig:
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    radius: float = 5.0


def _default_obstacles() -> List[ObstacleConfig]:
    return [
        ObstacleConfig(position=(20.0, 0.0, 0.0), radius=8.0),
        ObstacleConfig(position=(-20.0, 10.0, 15.0), radius=6.0),
        ObstacleConfig(position=(0.0, -15.0, -20.0), radius=7.0),
        ObstacleConfig(position=(-25.0, 5.0, -10.0), radius=5.0),
        ObstacleConfig(position=(15.0, 20.0, 10.0), radius=6.0),
    ]


@dataclass
class SimulationConfig:
    seed: int = 42
    config_version: str = "v1"
    world_size: float = 100.0
    initial_population: int = 100
    growth_batch: int = 10
    boid_size: float = 1.5
    max_speed: float = 2.0
    min_speed: float = 0.5
    max_force: float = 0.1
    separation_radius: float = 5.0
    alignment_radius: float = 15.0
    cohesion_radius: float = 20.0
    # Extra reach past an obstacle's surface at which boids start to turn away.
    obstacle_margin: float = 15.0
    predator_radius: float = 25.0
    trail_length: int = 30
    goal_relocate_chance: float = 1.0 / 500.0
    goal_spread: float = 0.6
    boundary_margin: float = 0.8
    boundary_strength: float = 0.5
    update_order: str = "sequential"
    paused: bool = False
    obstacles: List[ObstacleConfig] = field(default_factory=_default_obstacles)
    weights: BehaviorWeights = field(default_factory=BehaviorWeights)
    behaviors: BehaviorToggles = field(default_factory=BehaviorToggles)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    @property
    def half_extent(self) -> float:
        return self.world_size / 2.0

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> "SimulationConfig":
        for name in _FLOAT_FIELDS:
            if not math.isfinite(getattr(self, name)):
                raise ConfigurationError(name, "must be finite")
        for name in weight_names():
            if not math.isfinite(getattr(self.weights, name)):
                raise ConfigurationError(f"weights.{name}", "must be finite")
        if self.world_size <= 0.0:
            raise ConfigurationError("world_size", "must be positive")
        if self.initial_population < 0:
            raise ConfigurationError("initial_population", "must not be negative")
        if self.growth_batch < 0:
            raise ConfigurationError("growth_batch", "must not be negative")
        if self.max_speed <= 0.0:
            raise ConfigurationError("max_speed", "must be positive")
        if self.min_speed < 0.0:
            raise ConfigurationError("min_speed", "must not be negative")
        if self.min_speed > self.max_speed:
            raise ConfigurationError("min_speed", f"{self.min_speed} exceeds max_speed {self.max_speed}")
        if self.max_force < 0.0:
            raise ConfigurationError("max_force", "must not be negative")
        for name in ("separation_radius", "alignment_radius", "cohesion_radius", "obstacle_margin", "predator_radius"):
            if getattr(self, name) < 0.0:
                raise ConfigurationError(name, "must not be negative")
        if self.trail_length < 0:
            raise ConfigurationError("trail_length", "must not be negative")
        if not 0.0 <= self.goal_relocate_chance <= 1.0:
            raise ConfigurationError("goal_relocate_chance", "must be within [0, 1]")
        if not 0.0 < self.boundary_margin <= 1.0:
            raise ConfigurationError("boundary_margin", "must be within (0, 1]")
        if self.boundary_strength < 0.0:
            raise ConfigurationError("boundary_strength", "must not be negative")
        if self.update_order not in UPDATE_ORDERS:
            raise ConfigurationError("update_order", f"expected one of {', '.join(UPDATE_ORDERS)}")
        for index, obstacle in enumerate(self.obstacles):
            if len(obstacle.position) != 3:
                raise ConfigurationError(f"obstacles[{index}].position", "needs three coordinates")
            if not all(math.isfinite(value) for value in (*obstacle.position, obstacle.radius)):
                raise ConfigurationError(f"obstacles[{index}]", "must be finite")
            if obstacle.radius < 0.0:
                raise ConfigurationError(f"obstacles[{index}].radius", "must not be negative")
        return self


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2
    time_step: float = 1.0 / 60.0


def behavior_names() -> tuple[str, ...]:
    return tuple(f.name for f in fields(BehaviorToggles))


def weight_names() -> tuple[str, ...]:
    return tuple(f.name for f in fields(BehaviorWeights))


def _checked_keys(section: str, values: dict, allowed: tuple[str, ...]) -> dict:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise ConfigurationError(section, f"unknown keys {unknown}")
    return values


def load_config(raw: dict) -> SimulationConfig:
    def _triple(value, index: int) -> tuple[float, float, float]:
        if not isinstance(value, (tuple, list)) or len(value) != 3:
            raise ConfigurationError(f"obstacles[{index}].position", "needs three coordinates")
        return (float(value[0]), float(value[1]), float(value[2]))

    weights = BehaviorWeights(**_checked_keys("weights", raw.get("weights", {}), weight_names()))
    behaviors = BehaviorToggles(**_checked_keys("behaviors", raw.get("behaviors", {}), behavior_names()))
    display = DisplayConfig(**_checked_keys("display", raw.get("display", {}), ("show_trails", "show_banking")))
    if "obstacles" in raw:
        obstacles = [
            ObstacleConfig(position=_triple(item.get("position"), index), radius=float(item.get("radius", 5.0)))
            for index, item in enumerate(raw["obstacles"] or [])
        ]
    else:
        obstacles = _default_obstacles()
    sim_values = {k: v for k, v in raw.items() if k not in {"weights", "behaviors", "display", "obstacles"}}
    allowed = {f.name for f in fields(SimulationConfig)}
    unknown = sorted(set(sim_values) - allowed)
    if unknown:
        raise ConfigurationError("simulation", f"unknown keys {unknown}")
    config = SimulationConfig(
        obstacles=obstacles, weights=weights, behaviors=behaviors, display=display, **sim_values
    )
    return config.validate()
