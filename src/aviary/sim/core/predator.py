from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, Optional, TYPE_CHECKING

from pygame.math import Vector3

from ...config import SimulationConfig
from ..utils.math3d import limit, set_magnitude
from .rng import DeterministicRng

if TYPE_CHECKING:
    from ..systems.steering import SteeringParams
    from .boid import Boid

CHASE_SPEED_FACTOR = 0.7
SPEED_CAP_FACTOR = 0.8
FORCE_CAP_FACTOR = 0.5
EDGE_MARGIN = 0.9
EDGE_NUDGE = 0.1


@dataclass(slots=True)
class Predator:
    position: Vector3 = field(default_factory=Vector3)
    velocity: Vector3 = field(default_factory=Vector3)
    size: float = 4.5
    trail: Deque[Vector3] = field(default_factory=lambda: deque(maxlen=60))

    def nearest(self, population: Iterable[Boid], search_radius: float) -> Optional[Boid]:
        """Closest boid strictly inside ``search_radius``; earliest wins ties."""
        nearest_dist = search_radius
        target = None
        for boid in population:
            d = self.position.distance_to(boid.position)
            if d < nearest_dist:
                nearest_dist = d
                target = boid
        return target

    def update(self, population: Iterable[Boid], params: SteeringParams) -> None:
        target = self.nearest(population, params.half_extent * 4.0)
        target_position = self.position if target is None else target.position
        desired = set_magnitude(target_position - self.position, params.max_speed * CHASE_SPEED_FACTOR)
        steer = limit(desired - self.velocity, params.max_force * FORCE_CAP_FACTOR)
        velocity = limit(self.velocity + steer, params.max_speed * SPEED_CAP_FACTOR)

        # Soft walls: nudge velocity directly rather than steering.
        bound = params.half_extent * EDGE_MARGIN
        for axis in range(3):
            if self.position[axis] > bound:
                velocity[axis] -= EDGE_NUDGE
            if self.position[axis] < -bound:
                velocity[axis] += EDGE_NUDGE
        self.velocity = velocity

        self.position = self.position + velocity
        self.trail.appendleft(Vector3(self.position))


def spawn_predator(rng: DeterministicRng, config: SimulationConfig) -> Predator:
    return Predator(
        position=Vector3(),
        velocity=rng.next_unit_sphere(),
        size=config.boid_size * 3.0,
        trail=deque(maxlen=config.trail_length * 2),
    )
