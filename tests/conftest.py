"""Test environment and shared fixtures."""

import os

# Settings are read at import time; keep tests offline and instant.
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""
os.environ["SIMULATION_DELAY_SCALE"] = "0"
for _name in list(os.environ):
    if _name.startswith(("MTN_MOMO_", "ORANGE_MONEY_")):
        del os.environ[_name]

import pytest

from fakes import FixedRandom, ManualClock
from mobipay.payments.simulation import SimulationEngine


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def lucky_simulator() -> SimulationEngine:
    """Simulator whose every draw succeeds."""

    return SimulationEngine(rng=FixedRandom(0.0), delay_scale=0)


@pytest.fixture
def unlucky_simulator() -> SimulationEngine:
    """Simulator whose every draw fails."""

    return SimulationEngine(rng=FixedRandom(0.999), delay_scale=0)
