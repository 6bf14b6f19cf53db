from __future__ import annotations

import pytest
from pygame.math import Vector3
from pytest import approx

from aviary.config import BehaviorToggles, SimulationConfig
from aviary.exceptions import ConfigurationError
from aviary.sim.core.boid import Boid
from aviary.sim.core.world import World


def _state(world: World):
    return [
        (boid.id, tuple(boid.position), tuple(boid.velocity), [tuple(p) for p in boid.trail])
        for boid in world.boids
    ]


def run_steps(config: SimulationConfig, steps: int):
    world = World(config)
    for tick in range(steps):
        world.step(tick)
    return world


def test_deterministic_steps():
    config = SimulationConfig(seed=1234, initial_population=30)
    world_a = run_steps(config, 25)
    world_b = run_steps(SimulationConfig(seed=1234, initial_population=30), 25)

    assert _state(world_a) == _state(world_b)
    assert tuple(world_a.predator.position) == tuple(world_b.predator.position)


def test_speed_stays_within_bounds():
    config = SimulationConfig(seed=8, initial_population=40, behaviors=BehaviorToggles(goal=True))
    world = World(config)
    for tick in range(60):
        world.step(tick)
        for boid in world.boids:
            speed = boid.velocity.length()
            assert speed == 0.0 or config.min_speed - 1e-6 <= speed <= config.max_speed + 1e-6
            assert boid.acceleration.length_squared() == 0.0


def test_trails_stay_bounded_over_many_ticks():
    config = SimulationConfig(seed=2, initial_population=10, trail_length=8)
    world = World(config)
    for tick in range(20):
        world.step(tick)

    for boid in world.boids:
        assert len(boid.trail) == 8
        assert tuple(boid.trail[0]) == approx(tuple(boid.position))
    assert len(world.predator.trail) == 16


def test_paused_step_is_a_no_op():
    world = World(SimulationConfig(seed=4, initial_population=15))
    world.step(0)
    world.set_paused(True)
    before = _state(world)
    predator_before = tuple(world.predator.position)

    metrics = world.step(1)

    assert metrics.paused
    assert _state(world) == before
    assert tuple(world.predator.position) == predator_before


def test_config_can_start_paused():
    world = World(SimulationConfig(seed=4, initial_population=3, paused=True))
    before = _state(world)

    world.step(0)

    assert world.paused
    assert _state(world) == before
    assert world.toggle_pause() is False


def test_containment_pulls_boid_back(quiet_config):
    world = World(quiet_config)
    world.boids.append(Boid(id=0, position=Vector3(45.0, 0.0, 0.0), velocity=Vector3()))

    xs = [45.0]
    for tick in range(30):
        world.step(tick)
        xs.append(world.boids[0].position.x)

    assert all(later <= earlier for earlier, later in zip(xs, xs[1:]))
    assert xs[-1] < 40.0
    assert world.boids[0].position.y == 0.0
    assert world.boids[0].position.z == 0.0


def test_sequential_order_lets_later_boids_see_moved_peers(quiet_config):
    quiet_config.behaviors.separation = True
    world = World(quiet_config)
    world.boids.extend(
        [
            Boid(id=0, position=Vector3(0.0, 0.0, 0.0), velocity=Vector3(0.0, 2.0, 0.0)),
            Boid(id=1, position=Vector3(4.0, 0.0, 0.0), velocity=Vector3(0.0, 2.0, 0.0)),
        ]
    )
    two_phase_config = SimulationConfig(
        seed=quiet_config.seed,
        initial_population=0,
        update_order="two_phase",
        behaviors=BehaviorToggles(
            separation=True, alignment=False, cohesion=False, obstacles=False, predator=False, goal=False
        ),
    )
    other = World(two_phase_config)
    other.boids.extend(
        [
            Boid(id=0, position=Vector3(0.0, 0.0, 0.0), velocity=Vector3(0.0, 2.0, 0.0)),
            Boid(id=1, position=Vector3(4.0, 0.0, 0.0), velocity=Vector3(0.0, 2.0, 0.0)),
        ]
    )

    world.step(0)
    other.step(0)

    # Boid 0 reads the same pre-tick neighbour either way; boid 1 does not.
    assert tuple(world.boids[0].position) == approx(tuple(other.boids[0].position))
    assert tuple(world.boids[1].position) != approx(tuple(other.boids[1].position))


def test_two_phase_update_is_order_independent():
    config = SimulationConfig(seed=21, initial_population=25, update_order="two_phase")
    forward = World(config)
    backward = World(config)
    backward.boids.reverse()

    for tick in range(5):
        forward.step(tick)
        backward.step(tick)

    by_id = {boid.id: boid for boid in backward.boids}
    for boid in forward.boids:
        other = by_id[boid.id]
        assert tuple(boid.position) == approx(tuple(other.position), abs=1e-9)
        assert tuple(boid.velocity) == approx(tuple(other.velocity), abs=1e-9)


def test_world_copies_config():
    config = SimulationConfig(seed=1, initial_population=2)
    world = World(config)

    world.set_weight("cohesion", 4.0)
    world.set_behavior("goal", True)

    assert world.config.weights.cohesion == approx(4.0)
    assert config.weights.cohesion == approx(1.0)
    assert config.behaviors.goal is False


def test_invalid_config_fails_at_construction():
    with pytest.raises(ConfigurationError):
        World(SimulationConfig(min_speed=5.0, max_speed=1.0))


def test_non_finite_speed_is_rejected_before_any_tick():
    with pytest.raises(ConfigurationError) as excinfo:
        World(SimulationConfig(max_speed=float("nan"), initial_population=3))

    assert excinfo.value.param_name == "max_speed"


def test_behavior_and_weight_setters_validate_names():
    world = World(SimulationConfig(initial_population=0))

    with pytest.raises(ConfigurationError):
        world.set_behavior("boundary", False)
    with pytest.raises(ConfigurationError):
        world.toggle_behavior("wander")
    with pytest.raises(ConfigurationError):
        world.set_weight("speed", 1.0)
    with pytest.raises(ConfigurationError):
        world.set_weight("separation", float("nan"))

    assert world.toggle_behavior("alignment") is False
    assert world.config.behaviors.alignment is False


def test_add_boids_appends_fresh_ids():
    world = World(SimulationConfig(seed=6, initial_population=5, growth_batch=10))

    assert world.add_boids() == 15
    assert world.add_boids(3) == 18
    assert [boid.id for boid in world.boids] == list(range(18))
    with pytest.raises(ConfigurationError):
        world.add_boids(-1)


def test_reset_replays_initial_state():
    config = SimulationConfig(seed=17, initial_population=12)
    fresh = World(config)
    world = World(config)
    for tick in range(10):
        world.step(tick)
    world.add_boids(4)
    obstacles = list(world.obstacles)

    world.reset()

    assert _state(world) == _state(fresh)
    assert tuple(world.goal) == tuple(fresh.goal)
    assert tuple(world.predator.velocity) == tuple(fresh.predator.velocity)
    assert world.obstacles == obstacles


def test_goal_relocates_when_enabled():
    config = SimulationConfig(
        seed=3, initial_population=1, goal_relocate_chance=1.0, behaviors=BehaviorToggles(goal=True)
    )
    world = World(config)
    first_goal = tuple(world.goal)

    metrics = world.step(0)

    assert metrics.goal_relocated
    assert tuple(world.goal) != first_goal
    limit = config.world_size * config.goal_spread * 0.5
    assert all(abs(component) <= limit for component in world.goal)


def test_goal_stays_put_when_disabled():
    world = World(SimulationConfig(seed=3, initial_population=1, goal_relocate_chance=1.0))
    goal = tuple(world.goal)

    for tick in range(5):
        assert not world.step(tick).goal_relocated

    assert tuple(world.goal) == goal


def test_disabled_predator_does_not_move():
    config = SimulationConfig(seed=5, initial_population=5, behaviors=BehaviorToggles(predator=False))
    world = World(config)
    start = tuple(world.predator.position)

    world.step(0)

    assert tuple(world.predator.position) == start


def test_metrics_report_population_and_speeds():
    world = World(SimulationConfig(seed=12, initial_population=20))

    metrics = world.step(0)

    assert metrics.tick == 0
    assert metrics.population == 20
    assert metrics.min_speed <= metrics.average_speed <= metrics.max_speed
    assert metrics.neighbor_checks == 20 * 20 * 3
    assert metrics.predator_nearest_distance > 0.0
    assert world.metrics is metrics


def test_snapshot_contains_render_state():
    config = SimulationConfig(seed=7, initial_population=4, world_size=80.0)
    world = World(config)
    world.step(0)
    world.set_display(show_trails=False)

    snapshot = world.snapshot(1)

    assert snapshot.tick == 1
    assert snapshot.world.half_extent == approx(40.0)
    assert snapshot.metadata.seed == 7
    assert len(snapshot.boids) == 4
    assert len(snapshot.obstacles) == 5
    payload = snapshot.boids[0]
    for key in ["id", "position", "velocity", "color", "bank_angle", "trail"]:
        assert key in payload
    assert payload["position"] == approx(list(world.boids[0].position))
    assert payload["trail"][0] == approx(payload["position"])
    assert snapshot.predator.position == approx(list(world.predator.position))
    assert snapshot.controls.show_trails is False
    assert snapshot.controls.show_banking is True
    assert snapshot.controls.behaviors["goal"] is False
    assert snapshot.controls.weights["predator"] == approx(3.0)
