"""Steering behaviours for boids.

Every behaviour reads the boid and the world state it is given and returns a
new force vector; none of them mutates its inputs. Neighbour queries scan the
whole population and only count peers strictly inside ``0 < d < radius``, so
a boid never counts itself, and an empty neighbourhood yields the zero
vector.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from pygame.math import Vector3

from ..utils.math3d import is_zero, limit, safe_div, safe_normalize, set_magnitude

if TYPE_CHECKING:
    from ...config import BehaviorToggles, BehaviorWeights, SimulationConfig
    from ..core.boid import Boid
    from ..core.obstacle import Obstacle


@dataclass(frozen=True, slots=True)
class SteeringParams:
    max_speed: float = 2.0
    min_speed: float = 0.5
    max_force: float = 0.1
    separation_radius: float = 5.0
    alignment_radius: float = 15.0
    cohesion_radius: float = 20.0
    obstacle_margin: float = 15.0
    predator_radius: float = 25.0
    half_extent: float = 50.0
    boundary_margin: float = 0.8
    boundary_strength: float = 0.5

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "SteeringParams":
        return cls(
            max_speed=config.max_speed,
            min_speed=config.min_speed,
            max_force=config.max_force,
            separation_radius=config.separation_radius,
            alignment_radius=config.alignment_radius,
            cohesion_radius=config.cohesion_radius,
            obstacle_margin=config.obstacle_margin,
            predator_radius=config.predator_radius,
            half_extent=config.half_extent,
            boundary_margin=config.boundary_margin,
            boundary_strength=config.boundary_strength,
        )


def separate(boid: Boid, population: Iterable[Boid], params: SteeringParams) -> Vector3:
    steer = Vector3()
    count = 0
    position = boid.position
    radius = params.separation_radius
    for other in population:
        d = position.distance_to(other.position)
        if 0.0 < d < radius:
            # Inverse-distance weighting: closer neighbours push harder.
            steer += safe_div(safe_normalize(position - other.position), d)
            count += 1
    if count == 0:
        return Vector3()
    steer = safe_div(steer, count)
    return limit(set_magnitude(steer, params.max_speed) - boid.velocity, params.max_force)


def align(boid: Boid, population: Iterable[Boid], params: SteeringParams) -> Vector3:
    average = Vector3()
    count = 0
    position = boid.position
    radius = params.alignment_radius
    for other in population:
        d = position.distance_to(other.position)
        if 0.0 < d < radius:
            average += other.velocity
            count += 1
    if count == 0:
        return Vector3()
    average = set_magnitude(safe_div(average, count), params.max_speed)
    return limit(average - boid.velocity, params.max_force)


def cohere(boid: Boid, population: Iterable[Boid], params: SteeringParams) -> Vector3:
    center = Vector3()
    count = 0
    position = boid.position
    radius = params.cohesion_radius
    for other in population:
        d = position.distance_to(other.position)
        if 0.0 < d < radius:
            center += other.position
            count += 1
    if count == 0:
        return Vector3()
    return seek(boid, safe_div(center, count), params)


def seek(boid: Boid, target: Vector3, params: SteeringParams) -> Vector3:
    desired = set_magnitude(target - boid.position, params.max_speed)
    return limit(desired - boid.velocity, params.max_force)


def flee(boid: Boid, threat: Vector3, radius: float, params: SteeringParams) -> Vector3:
    d = boid.position.distance_to(threat)
    if d >= radius:
        return Vector3()
    desired = set_magnitude(boid.position - threat, params.max_speed)
    strength = (radius - d) / radius
    return limit(desired - boid.velocity, params.max_force * 2.0) * strength


def avoid_obstacles(boid: Boid, obstacles: Iterable[Obstacle], params: SteeringParams) -> Vector3:
    steer = Vector3()
    position = boid.position
    for obstacle in obstacles:
        d = position.distance_to(obstacle.position)
        avoid_dist = obstacle.radius + params.obstacle_margin
        if d < avoid_dist:
            away = safe_normalize(position - obstacle.position)
            steer += away * ((avoid_dist - d) / avoid_dist)
    if is_zero(steer):
        return Vector3()
    return limit(set_magnitude(steer, params.max_speed) - boid.velocity, params.max_force * 2.0)


def _restoring(value: float, bound: float, strength: float) -> float:
    if value > bound:
        return -strength * (value - bound)
    if value < -bound:
        return -strength * (value + bound)
    return 0.0


def contain_within_bounds(
    boid: Boid,
    half_extent: float,
    params: SteeringParams,
    margin: float = 0.8,
    strength: float = 0.5,
) -> Vector3:
    bound = half_extent * margin
    position = boid.position
    steer = Vector3(
        _restoring(position.x, bound, strength),
        _restoring(position.y, bound, strength),
        _restoring(position.z, bound, strength),
    )
    return limit(steer, params.max_force)


def compute_force(
    boid: Boid,
    population: Sequence[Boid],
    obstacles: Sequence[Obstacle],
    predator_position: Optional[Vector3],
    goal: Optional[Vector3],
    weights: BehaviorWeights,
    toggles: BehaviorToggles,
    params: SteeringParams,
) -> Vector3:
    """Weighted sum of every enabled behaviour plus boundary containment."""
    force = Vector3()
    if toggles.separation:
        force += separate(boid, population, params) * weights.separation
    if toggles.alignment:
        force += align(boid, population, params) * weights.alignment
    if toggles.cohesion:
        force += cohere(boid, population, params) * weights.cohesion
    if toggles.obstacles:
        force += avoid_obstacles(boid, obstacles, params) * weights.obstacle
    if toggles.predator and predator_position is not None:
        force += flee(boid, predator_position, params.predator_radius, params) * weights.predator
    if toggles.goal and goal is not None:
        force += seek(boid, goal, params) * weights.goal
    force += (
        contain_within_bounds(
            boid,
            params.half_extent,
            params,
            margin=params.boundary_margin,
            strength=params.boundary_strength,
        )
        * weights.boundary
    )
    return force
