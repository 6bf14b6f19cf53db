from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

from ..types.metrics import TickMetrics

if TYPE_CHECKING:
    from ..core.boid import Boid
    from ..core.predator import Predator


def create_metrics(
    tick: int,
    boids: Sequence[Boid],
    predator: Optional[Predator],
    goal_relocated: bool,
    paused: bool,
    neighbor_checks: int,
    duration_ms: float,
) -> TickMetrics:
    population = len(boids)
    if population:
        speeds = [boid.speed for boid in boids]
        average_speed = sum(speeds) / population
        min_speed = min(speeds)
        max_speed = max(speeds)
    else:
        average_speed = 0.0
        min_speed = 0.0
        max_speed = 0.0
    nearest = 0.0
    if predator is not None and population:
        nearest = min(predator.position.distance_to(boid.position) for boid in boids)
    return TickMetrics(
        tick=tick,
        population=population,
        average_speed=average_speed,
        min_speed=min_speed,
        max_speed=max_speed,
        predator_nearest_distance=nearest,
        goal_relocated=goal_relocated,
        paused=paused,
        neighbor_checks=neighbor_checks,
        tick_duration_ms=duration_ms,
    )
