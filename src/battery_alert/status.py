"""
Battery status helper for conky and other scripts.
Takes one reading, feeds it to the persisted monitor and prints the prediction.
"""

import math

from .models import PredictionConfidence
from .monitor import BatteryMonitor, WarningEvent
from .sensor import HAS_INA219, INA219Source


def format_minutes(minutes: float) -> str:
    """Render a minute count the way the status line shows it."""
    if math.isinf(minutes):
        return ""
    hours = int(minutes // 60)
    mins = int(minutes % 60)
    if hours > 0:
        return f"{hours}h {mins}m remaining"
    return f"{mins}m remaining"


def format_update(update) -> list:
    """Lines of status output for one monitor update."""
    status = " CHG" if update.sample.charging else ""
    lines = [f"> {update.sample.level}%{status}"]

    confidence = update.prediction.confidence
    if confidence is PredictionConfidence.CHARGING:
        lines.append("  Charging...")
    elif confidence is PredictionConfidence.INSUFFICIENT_DATA:
        lines.append("  Calculating...")
    else:
        time_str = format_minutes(update.adjusted_minutes)
        if time_str:
            lines.append(f"  {time_str} ({confidence.name.lower()})")

    if update.event is WarningEvent.STARTED:
        lines.append("  SHUTDOWN WARNING")
    return lines


def main():
    """Entry point for battery status output."""
    if not HAS_INA219:
        print("> N/A")
        return

    monitor = BatteryMonitor.open(background=False)
    try:
        reading = INA219Source().read()
        update = monitor.on_sample(
            reading.level, reading.temperature, reading.voltage_mv, reading.charging
        )
        if update is None:
            print("> ERR")
            return
        for line in format_update(update):
            print(line)
    except Exception:
        print("> ERR")
    finally:
        monitor.close()


if __name__ == "__main__":
    main()
