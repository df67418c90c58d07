import pytest

from battery_alert.corrector import AdaptiveCorrector
from battery_alert.estimator import DrainEstimator
from battery_alert.monitor import BatteryMonitor
from battery_alert.store import MemoryStore


class FakeClock:
    """Manually advanced stand-in for time.time (seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def estimator_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def corrector_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def estimator(estimator_store, clock) -> DrainEstimator:
    return DrainEstimator(estimator_store, clock=clock)


@pytest.fixture
def corrector(corrector_store, clock) -> AdaptiveCorrector:
    return AdaptiveCorrector(corrector_store, clock=clock)


@pytest.fixture
def monitor(estimator, corrector) -> BatteryMonitor:
    return BatteryMonitor(estimator, corrector)
