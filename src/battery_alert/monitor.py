"""
Battery Monitor - host session tying the estimator and the corrector together.

Filters samples, feeds the estimator, and decides when a shutdown warning is
raised, cancelled or confirmed. One lock covers the whole sequence so that
samples arriving from different threads are handled one at a time.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from threading import RLock
from typing import Optional

from .corrector import AdaptiveCorrector
from .estimator import DrainEstimator
from .models import PredictionConfidence, Sample, ShutdownPrediction
from .store import BackgroundStore, JsonFileStore

logger = logging.getLogger(__name__)

# Data storage location
DATA_DIR = Path.home() / ".local" / "share" / "battery-alert"
ESTIMATOR_FILE = "estimator.json"
CORRECTOR_FILE = "corrector.json"

# Valid sample voltage range (mV); anything outside is a bad reading
MIN_VOLTAGE = 3000
MAX_VOLTAGE = 4500

# Warning thresholds
LOW_VOLTAGE_THRESHOLD = 3200  # mV
HOT_VOLTAGE_OFFSET = 200  # mV added to the low threshold when hot
HIGH_TEMPERATURE_THRESHOLD = 45.0  # °C
LOW_BATTERY_PERCENTAGE = 20
CRITICAL_BATTERY_PERCENTAGE = 1
WARNING_MINUTES = 10.0

# Poll intervals (seconds)
DEFAULT_POLL_INTERVAL = 5.0
CRITICAL_POLL_INTERVAL = 1.0
LOW_CONFIDENCE_POLL_INTERVAL = 2.0
FAST_DRAIN_POLL_INTERVAL = 2.0
MODERATE_DRAIN_POLL_INTERVAL = 3.0
MIN_POLL_INTERVAL = 0.5
FAST_DRAIN_RATE = 3.0  # %/min
MODERATE_DRAIN_RATE = 1.5  # %/min


class WarningEvent(Enum):
    """Warning transition caused by a sample."""

    NONE = auto()
    STARTED = auto()
    CANCELLED = auto()
    CONFIRMED = auto()


@dataclass(frozen=True)
class MonitorUpdate:
    """Result of handling one sample."""

    sample: Sample
    prediction: ShutdownPrediction
    adjusted_minutes: float
    event: WarningEvent
    poll_interval: float


def low_voltage_threshold(temperature: float) -> int:
    """Hot cells sag earlier, so warn at a higher voltage."""
    if temperature > HIGH_TEMPERATURE_THRESHOLD:
        return LOW_VOLTAGE_THRESHOLD + HOT_VOLTAGE_OFFSET
    return LOW_VOLTAGE_THRESHOLD


def is_valid_voltage(voltage: int) -> bool:
    return MIN_VOLTAGE <= voltage <= MAX_VOLTAGE


def is_critical(level: int, voltage: int) -> bool:
    return voltage <= MIN_VOLTAGE or level <= CRITICAL_BATTERY_PERCENTAGE


def is_safe(level: int, voltage: int, charging: bool) -> bool:
    return charging or (level > LOW_BATTERY_PERCENTAGE and voltage >= LOW_VOLTAGE_THRESHOLD)


class BatteryMonitor:
    """Long-lived session owning one estimator and one corrector."""

    def __init__(self, estimator=None, corrector=None, power_save=False):
        self._lock = RLock()
        self.estimator = estimator if estimator is not None else DrainEstimator()
        self.corrector = corrector if corrector is not None else AdaptiveCorrector()
        self.power_save = power_save

    @classmethod
    def open(cls, data_dir=DATA_DIR, background=True, clock=time.time, power_save=False):
        """Create a monitor persisting its state as JSON files in ``data_dir``."""
        data_dir = Path(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)

        def make_store(name):
            store = JsonFileStore(data_dir / name)
            return BackgroundStore(store, name=f"battery-alert-{name}") if background else store

        return cls(
            DrainEstimator(make_store(ESTIMATOR_FILE), clock=clock),
            AdaptiveCorrector(make_store(CORRECTOR_FILE), clock=clock),
            power_save=power_save,
        )

    def on_sample(
        self, level, temperature, voltage, charging, timestamp=None
    ) -> Optional[MonitorUpdate]:
        """
        Handle one battery sample.

        Returns:
            MonitorUpdate, or None if the sample was rejected
        """
        with self._lock:
            if not is_valid_voltage(voltage):
                logger.warning(f"Voltage ({voltage} mV) out of valid range, sample dropped")
                return None

            sample = self.estimator.ingest(level, temperature, voltage, charging, timestamp)
            prediction = self.estimator.predict_time_to_shutdown()
            event = WarningEvent.NONE

            if self.corrector.has_active_warning():
                if is_critical(sample.level, sample.voltage):
                    logger.info("Critical battery condition detected")
                    self.corrector.record_actual_shutdown(sample.timestamp)
                    event = WarningEvent.CONFIRMED
                elif is_safe(sample.level, sample.voltage, sample.charging):
                    self.corrector.record_warning_cancelled()
                    event = WarningEvent.CANCELLED

            adjusted = self.corrector.adjust(prediction.minutes_left)

            # A sample that just resolved a warning never raises the next one
            if (
                event is WarningEvent.NONE
                and not self.corrector.has_active_warning()
                and self._should_warn(sample, prediction, adjusted)
            ):
                # The corrector learns against the uncorrected prediction
                self.corrector.record_warning_start(
                    prediction.minutes_left,
                    sample.voltage,
                    sample.temperature,
                    sample.level,
                    timestamp=sample.timestamp,
                )
                event = WarningEvent.STARTED

            interval = self.poll_interval(prediction)
            return MonitorUpdate(sample, prediction, adjusted, event, interval)

    def _should_warn(self, sample, prediction, adjusted_minutes) -> bool:
        if (
            prediction.confidence is not PredictionConfidence.CHARGING
            and adjusted_minutes < WARNING_MINUTES
        ):
            return True
        if sample.voltage <= MIN_VOLTAGE:
            return True
        return (
            sample.voltage < low_voltage_threshold(sample.temperature)
            and sample.level <= LOW_BATTERY_PERCENTAGE
        )

    def prediction(self) -> ShutdownPrediction:
        return self.estimator.predict_time_to_shutdown()

    def adjusted_minutes(self, prediction=None) -> float:
        """Predicted minutes left with the learned correction applied."""
        if prediction is None:
            prediction = self.prediction()
        return self.corrector.adjust(prediction.minutes_left)

    def poll_interval(self, prediction=None) -> float:
        """Seconds until the host should sample again; faster when draining hard."""
        if prediction is None:
            prediction = self.prediction()
        minutes = self.adjusted_minutes(prediction)

        if self.power_save:
            if minutes < WARNING_MINUTES:
                interval = CRITICAL_POLL_INTERVAL
            else:
                interval = DEFAULT_POLL_INTERVAL * 2
        else:
            drain_rate = self.estimator.get_weighted_drain_rate()
            if minutes < WARNING_MINUTES:
                interval = CRITICAL_POLL_INTERVAL
            elif drain_rate > FAST_DRAIN_RATE:
                interval = FAST_DRAIN_POLL_INTERVAL
            elif drain_rate > MODERATE_DRAIN_RATE:
                interval = MODERATE_DRAIN_POLL_INTERVAL
            elif prediction.confidence is PredictionConfidence.LOW:
                interval = LOW_CONFIDENCE_POLL_INTERVAL
            else:
                interval = DEFAULT_POLL_INTERVAL

        return max(interval, MIN_POLL_INTERVAL)

    def get_stats(self) -> dict:
        with self._lock:
            stats = self.estimator.get_stats()
            stats["prediction_adjustment"] = self.corrector.get_prediction_adjustment()
            stats["warning_active"] = self.corrector.has_active_warning()
            stats["outcomes_recorded"] = len(self.corrector.get_warning_history())
            return stats

    def close(self):
        """Flush and close both stores."""
        with self._lock:
            self.estimator.close()
            self.corrector.close()
