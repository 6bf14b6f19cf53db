from __future__ import annotations

import math
import random

from pygame.math import Vector3


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_centered_cube(self, half_size: float) -> Vector3:
        return Vector3(
            self._random.uniform(-half_size, half_size),
            self._random.uniform(-half_size, half_size),
            self._random.uniform(-half_size, half_size),
        )

    def next_unit_sphere(self) -> Vector3:
        # Uniform direction: z uniform on [-1, 1], azimuth uniform on [0, 2pi).
        z = self._random.uniform(-1.0, 1.0)
        angle = self._random.uniform(0.0, 2.0 * math.pi)
        radius = math.sqrt(max(0.0, 1.0 - z * z))
        return Vector3(radius * math.cos(angle), radius * math.sin(angle), z)
