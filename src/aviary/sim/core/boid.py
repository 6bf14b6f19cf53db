from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Tuple

from pygame import Color
from pygame.math import Vector3

from ...config import SimulationConfig
from ..systems.steering import SteeringParams
from ..utils.math3d import clamp_value, set_magnitude
from .rng import DeterministicRng

MAX_BANK_DEGREES = 45.0
BANK_SMOOTHING = 0.1
BANK_GAIN = 50.0


@dataclass(slots=True)
class Boid:
    id: int
    position: Vector3
    velocity: Vector3
    acceleration: Vector3 = field(default_factory=Vector3)
    color: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    bank_angle: float = 0.0
    trail: Deque[Vector3] = field(default_factory=lambda: deque(maxlen=30))

    def apply_force(self, force: Vector3) -> None:
        self.acceleration = self.acceleration + force

    def update(self, params: SteeringParams) -> None:
        velocity = self.velocity
        acceleration = self.acceleration
        turn_axis = velocity.cross(acceleration)
        target_bank = turn_axis.y * acceleration.length() * BANK_GAIN
        target_bank = clamp_value(target_bank, -MAX_BANK_DEGREES, MAX_BANK_DEGREES)
        self.bank_angle += (target_bank - self.bank_angle) * BANK_SMOOTHING

        velocity = velocity + acceleration
        speed = velocity.length()
        if speed > params.max_speed:
            velocity = set_magnitude(velocity, params.max_speed)
        elif 0.0 < speed < params.min_speed:
            velocity = set_magnitude(velocity, params.min_speed)
        self.velocity = velocity

        self.position = self.position + velocity
        self.trail.appendleft(Vector3(self.position))
        self.acceleration = Vector3()

    @property
    def speed(self) -> float:
        return self.velocity.length()


def hue_to_rgb(hue: float, saturation: float = 0.8, value: float = 1.0) -> Tuple[float, float, float]:
    color = Color(0, 0, 0)
    color.hsva = (hue % 360.0, saturation * 100.0, value * 100.0, 100.0)
    return (color.r / 255.0, color.g / 255.0, color.b / 255.0)


def spawn_boid(rng: DeterministicRng, config: SimulationConfig, boid_id: int) -> Boid:
    position = rng.next_centered_cube(config.world_size * 0.4)
    speed = rng.next_range(config.min_speed, config.max_speed)
    velocity = rng.next_unit_sphere() * speed
    # Hue sweeps the colour wheel across the x axis of the world.
    hue = (position.x + config.half_extent) / config.world_size * 360.0
    return Boid(
        id=boid_id,
        position=position,
        velocity=velocity,
        color=hue_to_rgb(hue),
        trail=deque(maxlen=config.trail_length),
    )
