from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    boids: List[Dict[str, Any]]
    predator: "SnapshotPredator"
    obstacles: List[Dict[str, Any]]
    world: "SnapshotWorld"
    controls: "SnapshotControls"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotPredator:
    position: List[float]
    velocity: List[float]
    size: float
    trail: List[List[float]]


@dataclass(slots=True)
class SnapshotWorld:
    half_extent: float
    goal: List[float]


@dataclass(slots=True)
class SnapshotControls:
    paused: bool
    behaviors: Dict[str, bool]
    weights: Dict[str, float]
    show_trails: bool
    show_banking: bool
    update_order: str


@dataclass(slots=True)
class SnapshotMetadata:
    world_size: float
    seed: int
    config_version: str
