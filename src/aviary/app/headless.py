from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from typing import Optional

from pygame.math import Vector3

from ..config import UPDATE_ORDERS, SimulationConfig
from ..sim.core.world import World
from ..sim.utils.math3d import safe_div, safe_normalize

_logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "population",
    "avg_speed",
    "min_speed",
    "max_speed",
    "predator_nearest",
    "goal_relocated",
    "neighbor_checks",
    "tick_ms",
]

_DETAILED_HEADER = _BASIC_HEADER + [
    "centroid_x",
    "centroid_y",
    "centroid_z",
    "spread",
    "polarization",
    "avg_bank_angle",
    "outside_margin",
]


def _format_basic_row(metrics: object, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        f"{metrics.average_speed:.4f}",
        f"{metrics.min_speed:.4f}",
        f"{metrics.max_speed:.4f}",
        f"{metrics.predator_nearest_distance:.4f}",
        int(metrics.goal_relocated),
        metrics.neighbor_checks,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: object, tick_ms: float) -> list[object]:
    boids = world.boids
    population = len(boids)
    centroid = Vector3()
    heading_sum = Vector3()
    bank_sum = 0.0
    outside = 0
    bound = world.half_extent * world.config.boundary_margin
    for boid in boids:
        centroid += boid.position
        heading_sum += safe_normalize(boid.velocity)
        bank_sum += boid.bank_angle
        if max(abs(boid.position.x), abs(boid.position.y), abs(boid.position.z)) > bound:
            outside += 1
    centroid = safe_div(centroid, population)
    if population:
        spread = sum(boid.position.distance_to(centroid) for boid in boids) / population
        polarization = heading_sum.length() / population
        avg_bank = bank_sum / population
    else:
        spread = 0.0
        polarization = 0.0
        avg_bank = 0.0
    return _format_basic_row(metrics, tick_ms) + [
        f"{centroid.x:.4f}",
        f"{centroid.y:.4f}",
        f"{centroid.z:.4f}",
        f"{spread:.4f}",
        f"{polarization:.4f}",
        f"{avg_bank:.4f}",
        outside,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config: Optional[SimulationConfig] = None,
    update_order: Optional[str] = None,
) -> World:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config = replace(config, seed=seed)
    if update_order is not None:
        config = replace(config, update_order=update_order)
    world = World(config)
    _logger.info(
        "Running %d ticks with %d boids (seed=%d, order=%s)",
        steps,
        len(world.boids),
        world.config.seed,
        world.config.update_order,
    )

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    speed_series: list[float] = []
    predator_series: list[float] = []
    goal_relocations = 0

    try:
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            tick_ms_series.append(tick_ms)
            speed_series.append(metrics.average_speed)
            predator_series.append(metrics.predator_nearest_distance)
            goal_relocations += int(metrics.goal_relocated)
            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": world.config.seed,
            "population": len(world.boids),
            "update_order": world.config.update_order,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "goal_relocations": goal_relocations,
            "tick_ms": _summary_stats(tick_ms_series),
            "average_speed": _summary_stats(speed_series),
            "predator_nearest": _summary_stats(predator_series),
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail]),
                "average_speed": _summary_stats(speed_series[tail]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless boids simulation")
    parser.add_argument("--steps", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--update-order", choices=list(UPDATE_ORDERS), default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON summary of the run.")
    parser.add_argument("--summary-window", type=int, default=500, help="Tail window size (ticks) for summary stats.")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")
    config = SimulationConfig.from_yaml(args.config) if args.config else None
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config=config,
        update_order=args.update_order,
    )


if __name__ == "__main__":
    main()
