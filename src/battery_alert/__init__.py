"""
Battery Alert - time-to-shutdown prediction from periodic battery samples.

This package provides:
- Discharge cycle estimation and weighted drain rate tracking
- Voltage-banded shutdown prediction with confidence tiers
- Adaptive correction learned from warning outcomes
- Persisted state that survives restarts
- INA219 sample source, status output for conky and a monitor daemon
"""

__version__ = "1.0.0"

from .corrector import (
    AdaptiveCorrector,
    LEARNING_RATE,
    MAX_ADJUSTMENT,
    MIN_ADJUSTMENT,
)
from .estimator import (
    DrainEstimator,
    DRAIN_WINDOW,
    MAX_HISTORY,
    MAX_PREDICTION_MINUTES,
    SMOOTHING_FACTOR,
)
from .models import (
    DrainRateRecord,
    PredictionConfidence,
    Sample,
    ShutdownPrediction,
    ShutdownWarning,
    WarningOutcome,
)
from .monitor import (
    BatteryMonitor,
    MonitorUpdate,
    WarningEvent,
    DATA_DIR,
    MIN_VOLTAGE,
    MAX_VOLTAGE,
    LOW_VOLTAGE_THRESHOLD,
    LOW_BATTERY_PERCENTAGE,
    HIGH_TEMPERATURE_THRESHOLD,
)
from .store import BackgroundStore, JsonFileStore, MemoryStore, StateStore

__all__ = [
    "AdaptiveCorrector",
    "BackgroundStore",
    "BatteryMonitor",
    "DrainEstimator",
    "DrainRateRecord",
    "JsonFileStore",
    "MemoryStore",
    "MonitorUpdate",
    "PredictionConfidence",
    "Sample",
    "ShutdownPrediction",
    "ShutdownWarning",
    "StateStore",
    "WarningEvent",
    "WarningOutcome",
    "DATA_DIR",
    "DRAIN_WINDOW",
    "HIGH_TEMPERATURE_THRESHOLD",
    "LEARNING_RATE",
    "LOW_BATTERY_PERCENTAGE",
    "LOW_VOLTAGE_THRESHOLD",
    "MAX_ADJUSTMENT",
    "MAX_HISTORY",
    "MAX_PREDICTION_MINUTES",
    "MAX_VOLTAGE",
    "MIN_ADJUSTMENT",
    "MIN_VOLTAGE",
    "SMOOTHING_FACTOR",
]
