"""
Adaptive Corrector - learns a bounded correction factor for shutdown predictions
from what happened after each warning (cancelled vs. followed by a shutdown).
"""

import logging
import math
import time
from collections import deque
from threading import Lock

from .estimator import MAX_PREDICTION_MINUTES, now_ms
from .models import ShutdownWarning, WarningOutcome
from .store import SCHEMA_KEY, SCHEMA_VERSION, MemoryStore, check_schema

logger = logging.getLogger(__name__)

MAX_OUTCOME_HISTORY = 50
MIN_ADJUSTMENT = 0.5
MAX_ADJUSTMENT = 2.0
LEARNING_RATE = 0.1
DEFAULT_ADJUSTMENT = 1.0


def clamp_adjustment(factor: float) -> float:
    if math.isnan(factor):
        return DEFAULT_ADJUSTMENT
    return max(MIN_ADJUSTMENT, min(MAX_ADJUSTMENT, factor))


class AdaptiveCorrector:
    """
    Tracks the shutdown warning lifecycle and the prediction adjustment factor.

    Idle -> WarningActive on ``record_warning_start``; back to Idle on
    ``record_warning_cancelled`` or ``record_actual_shutdown``. Only the outcome
    being resolved feeds learning; the outcome log is kept for inspection.
    """

    def __init__(self, store=None, clock=time.time):
        self._lock = Lock()
        self._store = store if store is not None else MemoryStore()
        self._clock = clock

        self._active_warning = None
        self._adjustment = DEFAULT_ADJUSTMENT
        self._outcomes = deque(maxlen=MAX_OUTCOME_HISTORY)

        self._load_state()

    def _load_state(self):
        state = self._store.load()
        if not check_schema(state, "corrector"):
            return
        try:
            adjustment = float(state.get("predictionAdjustment", DEFAULT_ADJUSTMENT))
            outcomes = [WarningOutcome.from_json(o) for o in state.get("predictionHistory", [])]
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Corrupt corrector state, resetting to defaults: {e}")
            return

        self._adjustment = clamp_adjustment(adjustment)
        self._outcomes.extend(outcomes)

    def _save_state(self):
        self._store.save(
            {
                SCHEMA_KEY: SCHEMA_VERSION,
                "predictionAdjustment": self._adjustment,
                "predictionHistory": [o.to_json() for o in self._outcomes],
            }
        )

    def record_warning_start(
        self, predicted_minutes, voltage, temperature, battery_level, timestamp=None
    ):
        """
        Record that a shutdown warning was raised with the given prediction.

        ``predicted_minutes`` must be the uncorrected prediction, since the outcome
        ratio is learned against it. ``timestamp`` (ms) defaults to the clock.
        """
        with self._lock:
            if self._active_warning is not None:
                logger.warning("Warning started while another is active, replacing it")
            self._active_warning = ShutdownWarning(
                start_time=self._timestamp(timestamp),
                predicted_minutes=float(predicted_minutes),
                voltage=int(voltage),
                temperature=float(temperature),
                battery_level=int(battery_level),
            )
            logger.info(
                f"Shutdown warning started: {predicted_minutes:.1f} min predicted "
                f"at {battery_level}% / {voltage}mV"
            )

    def record_warning_cancelled(self):
        """Record that the active warning was cancelled (a false alarm)."""
        with self._lock:
            if self._active_warning is None:
                return
            self._resolve(WarningOutcome(self._active_warning, None, True))

    def record_actual_shutdown(self, timestamp=None):
        """Record that the device really shut down after the active warning."""
        with self._lock:
            if self._active_warning is None:
                return
            shutdown_time = self._timestamp(timestamp)
            self._resolve(WarningOutcome(self._active_warning, shutdown_time, False))

    def _timestamp(self, timestamp) -> int:
        return now_ms(self._clock) if timestamp is None else int(timestamp)

    def _resolve(self, outcome: WarningOutcome):
        self._outcomes.append(outcome)
        previous = self._adjustment

        if outcome.was_cancelled:
            # Shutdown was predicted too soon: stretch future predictions
            factor = previous * (1 + LEARNING_RATE)
        else:
            predicted = outcome.warning.predicted_minutes
            ratio = outcome.actual_minutes / predicted if predicted > 0 else math.inf
            factor = previous * (1 - LEARNING_RATE) + ratio * LEARNING_RATE

        self._adjustment = clamp_adjustment(factor)
        self._active_warning = None
        self._save_state()

        logger.info(
            f"Warning {'cancelled' if outcome.was_cancelled else 'confirmed'}: "
            f"adjustment {previous:.3f} -> {self._adjustment:.3f}"
        )

    def get_prediction_adjustment(self) -> float:
        with self._lock:
            return self._adjustment

    def adjust(self, minutes: float) -> float:
        """Apply the learned factor to a predicted number of minutes."""
        with self._lock:
            factor = self._adjustment
        if math.isinf(minutes):
            return minutes
        return min(minutes * factor, MAX_PREDICTION_MINUTES)

    def get_warning_history(self) -> list:
        with self._lock:
            return list(self._outcomes)

    def get_active_warning(self):
        with self._lock:
            return self._active_warning

    def has_active_warning(self) -> bool:
        with self._lock:
            return self._active_warning is not None

    def close(self):
        self._store.close()
