"""
Data model shared by the estimator, the corrector and the state store.
Every record here knows how to turn itself into the persisted JSON shape and back.
"""

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


def strict_bool(value) -> bool:
    """Accept only real JSON booleans; strings like "false" mark a corrupt entry."""
    if not isinstance(value, bool):
        raise TypeError(f"expected a boolean, got {value!r}")
    return value


class PredictionConfidence(Enum):
    """How much drain history backs a shutdown prediction."""

    INSUFFICIENT_DATA = auto()
    LOW = auto()
    MEDIUM = auto()
    HIGH = auto()
    CHARGING = auto()


@dataclass(frozen=True)
class Sample:
    """One battery telemetry reading. Timestamp in ms, voltage in mV."""

    timestamp: int
    level: int
    temperature: float
    voltage: int
    charging: bool

    def to_json(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "batteryLevel": self.level,
            "temperature": self.temperature,
            "voltage": self.voltage,
            "isCharging": self.charging,
        }

    @classmethod
    def from_json(cls, data: dict) -> "Sample":
        return cls(
            timestamp=int(data["timestamp"]),
            level=int(data["batteryLevel"]),
            temperature=float(data["temperature"]),
            voltage=int(data["voltage"]),
            charging=strict_bool(data["isCharging"]),
        )


@dataclass(frozen=True)
class DrainRateRecord:
    """Weighted drain rate (%/min) derived at one ingest."""

    rate: float
    temperature: float
    timestamp: int

    def to_json(self) -> dict:
        return {
            "drainRate": self.rate,
            "temperature": self.temperature,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json(cls, data: dict) -> "DrainRateRecord":
        return cls(
            rate=float(data["drainRate"]),
            temperature=float(data["temperature"]),
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True)
class ShutdownWarning:
    """Snapshot taken when a shutdown warning begins."""

    start_time: int
    predicted_minutes: float
    voltage: int
    temperature: float
    battery_level: int


@dataclass(frozen=True)
class WarningOutcome:
    """How a warning ended: cancelled, or followed by an actual shutdown."""

    warning: ShutdownWarning
    actual_shutdown_time: Optional[int]
    was_cancelled: bool

    @property
    def actual_minutes(self) -> Optional[float]:
        """Minutes between warning start and shutdown, None for cancelled warnings."""
        if self.actual_shutdown_time is None:
            return None
        return (self.actual_shutdown_time - self.warning.start_time) / 60000.0

    def to_json(self) -> dict:
        # JSON has no infinity; an unbounded prediction is stored as null
        predicted = self.warning.predicted_minutes
        return {
            "startTime": self.warning.start_time,
            "predictedMinutes": predicted if math.isfinite(predicted) else None,
            "voltage": self.warning.voltage,
            "temperature": self.warning.temperature,
            "batteryLevel": self.warning.battery_level,
            "actualShutdownTime": self.actual_shutdown_time,
            "wasCancelled": self.was_cancelled,
        }

    @classmethod
    def from_json(cls, data: dict) -> "WarningOutcome":
        predicted = data["predictedMinutes"]
        actual = data["actualShutdownTime"]
        warning = ShutdownWarning(
            start_time=int(data["startTime"]),
            predicted_minutes=math.inf if predicted is None else float(predicted),
            voltage=int(data["voltage"]),
            temperature=float(data["temperature"]),
            battery_level=int(data["batteryLevel"]),
        )
        return cls(
            warning=warning,
            actual_shutdown_time=None if actual is None else int(actual),
            was_cancelled=strict_bool(data["wasCancelled"]),
        )


@dataclass(frozen=True)
class ShutdownPrediction:
    """Minutes until shutdown (may be inf) with a confidence tier."""

    minutes_left: float
    confidence: PredictionConfidence


__all__ = [
    "PredictionConfidence",
    "Sample",
    "DrainRateRecord",
    "ShutdownWarning",
    "WarningOutcome",
    "ShutdownPrediction",
]
