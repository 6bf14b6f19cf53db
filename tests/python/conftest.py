import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from aviary.config import BehaviorToggles, SimulationConfig  # noqa: E402
from aviary.sim.core.boid import Boid  # noqa: E402
from aviary.sim.systems.steering import SteeringParams  # noqa: E402
from pygame.math import Vector3  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that are intended only for configuration changes",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration defaults change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def params() -> SteeringParams:
    return SteeringParams()


@pytest.fixture
def make_boid():
    counter = iter(range(10_000))

    def _make(position=(0.0, 0.0, 0.0), velocity=(0.0, 0.0, 0.0)) -> Boid:
        return Boid(id=next(counter), position=Vector3(position), velocity=Vector3(velocity))

    return _make


@pytest.fixture
def quiet_config() -> SimulationConfig:
    """Empty world with every optional behaviour switched off."""
    return SimulationConfig(
        seed=3,
        initial_population=0,
        behaviors=BehaviorToggles(
            separation=False,
            alignment=False,
            cohesion=False,
            obstacles=False,
            predator=False,
            goal=False,
        ),
    )
