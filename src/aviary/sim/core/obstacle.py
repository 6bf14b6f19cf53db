from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from pygame.math import Vector3

from ...config import ObstacleConfig
from .rng import DeterministicRng


@dataclass(frozen=True, slots=True)
class Obstacle:
    position: Vector3
    radius: float
    color: Tuple[float, float, float] = (0.4, 0.4, 0.4)


def build_obstacles(specs: List[ObstacleConfig], rng: DeterministicRng) -> List[Obstacle]:
    obstacles = []
    for spec in specs:
        # Dark grey with a little per-channel jitter.
        color = (
            0.3 + rng.next_range(0.0, 0.3),
            0.3 + rng.next_range(0.0, 0.3),
            0.3 + rng.next_range(0.0, 0.3),
        )
        obstacles.append(Obstacle(position=Vector3(spec.position), radius=float(spec.radius), color=color))
    return obstacles
