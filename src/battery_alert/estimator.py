"""
Drain Estimator - discharge cycle counting, weighted drain rate and
time-to-shutdown prediction from periodic battery samples.
"""

import logging
import math
import time
from collections import deque
from threading import Lock

from .models import DrainRateRecord, PredictionConfidence, Sample, ShutdownPrediction
from .store import SCHEMA_KEY, SCHEMA_VERSION, MemoryStore, check_schema

logger = logging.getLogger(__name__)

# History bounds
MAX_HISTORY = 200
DRAIN_WINDOW = 20
RATE_LOOKBACK = 10  # samples considered by the inner weighted rate

# Cycle smoothing (weight of the newest cycle estimate)
SMOOTHING_FACTOR = 0.2

# Weighting constants
RECENCY_DECAY = 0.1
TEMP_INFLUENCE = 0.02
RECENT_WEIGHT = 2.0
TEMPERATURE_WEIGHT = 1.5
NOMINAL_TEMPERATURE = 25.0  # °C

# Prediction
MAX_PREDICTION_MINUTES = 1440.0  # 24h

# Cell voltage (mV) -> drain divisor (%/min)
VOLTAGE_DRAIN_BANDS = [
    (4000, 0.5),
    (3700, 1.2),
    (3400, 2.5),
    (3200, 5.0),
]
DEPLETED_DRAIN_RATE = 10.0

# Confidence tiers by drain-rate window size
LOW_CONFIDENCE_BELOW = 5
MEDIUM_CONFIDENCE_BELOW = 10


def now_ms(clock=time.time) -> int:
    return int(clock() * 1000)


def banded_drain_rate(voltage: int) -> float:
    """Drain divisor for a cell voltage, steeper as the cell empties."""
    for floor, rate in VOLTAGE_DRAIN_BANDS:
        if voltage > floor:
            return rate
    return DEPLETED_DRAIN_RATE


def weighted_drain_rate(history, current_temp: float) -> float:
    """
    Recency and temperature weighted mean of instantaneous drain rates.

    Only intervals where time moved forward and the level dropped count.
    Intervals recorded at a temperature far from ``current_temp`` get more weight.
    """
    samples = list(history)
    n = len(samples)
    if n < 2:
        return 0.0

    total_weight = 0.0
    weighted_sum = 0.0
    for i in range(1, n):
        prev, curr = samples[i - 1], samples[i]
        time_diff = (curr.timestamp - prev.timestamp) / 60000.0
        if time_diff <= 0 or prev.level <= curr.level:
            continue

        instant_rate = (prev.level - curr.level) / time_diff
        recency_weight = math.exp(-RECENCY_DECAY * (n - i))
        temp_influence = 1.0 + abs(current_temp - prev.temperature) * TEMP_INFLUENCE
        weight = recency_weight * temp_influence

        weighted_sum += instant_rate * weight
        total_weight += weight

    return weighted_sum / total_weight if total_weight > 0 else 0.0


def temperature_adjusted_rate(window) -> float:
    """Second smoothing pass over already derived rates, newest weighted most."""
    records = list(window)
    if not records:
        return 0.0

    size = len(records)
    total_weight = 0.0
    weighted_sum = 0.0
    for index, record in enumerate(records):
        recency_weight = RECENT_WEIGHT * (index + 1) / size
        temperature_weight = TEMPERATURE_WEIGHT * (
            1 + abs(record.temperature - NOMINAL_TEMPERATURE) * TEMP_INFLUENCE
        )
        weight = recency_weight * temperature_weight
        weighted_sum += record.rate * weight
        total_weight += weight

    return weighted_sum / total_weight if total_weight > 0 else 0.0


class DrainEstimator:
    """
    Ingests battery samples and predicts time to shutdown.

    - Counts discharge cycles from level drops (exponentially smoothed)
    - Keeps a bounded sample history and a window of derived drain rates
    - Predicts minutes left from voltage bands, with confidence from the window size

    All state is written back to ``store`` after every ingest.
    """

    def __init__(self, store=None, clock=time.time):
        self._lock = Lock()
        self._store = store if store is not None else MemoryStore()
        self._clock = clock

        self._history = deque(maxlen=MAX_HISTORY)
        self._drain_window = deque(maxlen=DRAIN_WINDOW)
        self._weighted_rate = 0.0

        self._cumulative_discharge = 0.0
        self._estimated_cycles = 0.0
        self._previous_level = None

        self._load_state()

    def _load_state(self):
        """Restore persisted state; anything malformed resets to a fresh estimator."""
        state = self._store.load()
        if not check_schema(state, "estimator"):
            return
        try:
            cumulative = float(state.get("cumulativeDischarge", 0.0))
            cycles = float(state.get("estimatedCycles", 0.0))
            previous = int(state.get("previousBatteryLevel", -1))
            history = [Sample.from_json(s) for s in state.get("batteryHistoryJson", [])]
            window = [DrainRateRecord.from_json(r) for r in state.get("drainRateWindow", [])]
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Corrupt estimator state, resetting to defaults: {e}")
            return

        self._cumulative_discharge = cumulative
        self._estimated_cycles = cycles
        self._previous_level = previous if previous >= 0 else None
        self._history.extend(history)
        self._drain_window.extend(window)
        self._weighted_rate = temperature_adjusted_rate(self._drain_window)
        logger.debug(
            f"Restored estimator: {len(self._history)} samples, "
            f"{self._estimated_cycles:.2f} cycles"
        )

    def _save_state(self):
        self._store.save(
            {
                SCHEMA_KEY: SCHEMA_VERSION,
                "cumulativeDischarge": self._cumulative_discharge,
                "estimatedCycles": self._estimated_cycles,
                "previousBatteryLevel": (
                    self._previous_level if self._previous_level is not None else -1
                ),
                "batteryHistoryJson": [s.to_json() for s in self._history],
                "drainRateWindow": [r.to_json() for r in self._drain_window],
            }
        )

    def ingest(self, level, temperature, voltage, charging, timestamp=None) -> Sample:
        """
        Record a battery sample and update cycle count and drain rate.

        Args:
            level: Battery level in percent (0-100)
            temperature: Battery temperature in °C
            voltage: Battery voltage in millivolts
            charging: True while the charger is supplying power
            timestamp: Sample time in ms; read from the clock when omitted

        Returns:
            The Sample that was recorded
        """
        with self._lock:
            if timestamp is None:
                timestamp = now_ms(self._clock)
            # Keep history time-ascending even if the host clock steps back
            if self._history and timestamp < self._history[-1].timestamp:
                timestamp = self._history[-1].timestamp

            sample = Sample(
                int(timestamp), int(level), float(temperature), int(voltage), bool(charging)
            )

            if sample.charging:
                # Charging invalidates the recent discharge trend
                self._drain_window.clear()
                self._weighted_rate = 0.0

            if self._previous_level is not None and sample.level < self._previous_level:
                self._cumulative_discharge += self._previous_level - sample.level
                new_estimate = self._cumulative_discharge / 100.0
                self._estimated_cycles = (
                    SMOOTHING_FACTOR * new_estimate
                    + (1 - SMOOTHING_FACTOR) * self._estimated_cycles
                )

            self._history.append(sample)

            if not sample.charging and len(self._history) >= 2:
                recent = list(self._history)[-RATE_LOOKBACK:]
                rate = weighted_drain_rate(recent, sample.temperature)
                self._drain_window.append(
                    DrainRateRecord(rate, sample.temperature, sample.timestamp)
                )
                self._weighted_rate = temperature_adjusted_rate(self._drain_window)

            self._previous_level = sample.level
            self._save_state()

            logger.debug(
                f"Ingested level={sample.level}% voltage={sample.voltage}mV "
                f"temp={sample.temperature:.1f}C charging={sample.charging} "
                f"rate={self._weighted_rate:.3f}%/min"
            )
            return sample

    def predict_time_to_shutdown(self) -> ShutdownPrediction:
        """Predict minutes until shutdown from the latest sample's voltage band."""
        with self._lock:
            if not self._history:
                return ShutdownPrediction(math.inf, PredictionConfidence.INSUFFICIENT_DATA)

            current = self._history[-1]
            if current.charging:
                return ShutdownPrediction(math.inf, PredictionConfidence.CHARGING)

            minutes_left = min(
                current.level / banded_drain_rate(current.voltage), MAX_PREDICTION_MINUTES
            )

            window_size = len(self._drain_window)
            if window_size < LOW_CONFIDENCE_BELOW:
                confidence = PredictionConfidence.LOW
            elif window_size < MEDIUM_CONFIDENCE_BELOW:
                confidence = PredictionConfidence.MEDIUM
            else:
                confidence = PredictionConfidence.HIGH

            return ShutdownPrediction(minutes_left, confidence)

    predict = predict_time_to_shutdown

    def get_estimated_cycles(self) -> float:
        with self._lock:
            return self._estimated_cycles

    def get_cumulative_discharge(self) -> float:
        with self._lock:
            return self._cumulative_discharge

    def get_weighted_drain_rate(self) -> float:
        """Smoothed drain rate in %/min; 0 right after charging."""
        with self._lock:
            return self._weighted_rate

    def get_history(self) -> list:
        with self._lock:
            return list(self._history)

    def get_drain_window(self) -> list:
        with self._lock:
            return list(self._drain_window)

    def get_stats(self) -> dict:
        """Get estimator statistics."""
        with self._lock:
            return {
                "cumulative_discharge": self._cumulative_discharge,
                "estimated_cycles": self._estimated_cycles,
                "weighted_drain_rate": self._weighted_rate,
                "history_size": len(self._history),
                "drain_window_size": len(self._drain_window),
                "previous_level": self._previous_level,
            }

    def close(self):
        """Flush pending writes."""
        self._store.close()
