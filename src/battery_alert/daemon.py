#!/usr/bin/env python3
"""
Battery Monitor Daemon.
Samples the battery in a loop so shutdown warnings can start, cancel and
confirm within one process, sleeping as long as the monitor suggests.
"""

import os
import signal
import sys
import time

from .monitor import DEFAULT_POLL_INTERVAL, BatteryMonitor, WarningEvent
from .sensor import HAS_INA219, INA219Source

# Sleep used when a reading fails or is rejected (seconds)
CHECK_INTERVAL = DEFAULT_POLL_INTERVAL


def report(update):
    """Print warning transitions."""
    sample = update.sample
    if update.event is WarningEvent.STARTED:
        print(
            f"Shutdown warning: ~{update.adjusted_minutes:.1f} min left "
            f"({sample.level}% / {sample.voltage}mV)"
        )
    elif update.event is WarningEvent.CANCELLED:
        print(f"Warning cancelled: battery recovered ({sample.level}% / {sample.voltage}mV)")
    elif update.event is WarningEvent.CONFIRMED:
        print(f"Shutdown confirmed at {sample.level}% / {sample.voltage}mV")


def run(monitor, source, sleep=time.sleep, iterations=None):
    """Read, decide, sleep. Runs forever unless ``iterations`` is given."""
    count = 0
    while iterations is None or count < iterations:
        interval = CHECK_INTERVAL
        try:
            reading = source.read()
            update = monitor.on_sample(
                reading.level, reading.temperature, reading.voltage_mv, reading.charging
            )
            if update is not None:
                interval = update.poll_interval
                report(update)
        except Exception as e:
            print(f"Error reading battery: {e}", file=sys.stderr)

        count += 1
        sleep(interval)


def main():
    """Entry point for the monitor daemon."""
    if not HAS_INA219:
        print("ina219 package is not installed", file=sys.stderr)
        sys.exit(1)

    try:
        source = INA219Source()
    except Exception as e:
        print(f"Error initializing INA219: {e}", file=sys.stderr)
        sys.exit(1)

    monitor = BatteryMonitor.open()

    def cleanup(*args):
        sys.exit(0)

    signal.signal(signal.SIGTERM, cleanup)
    signal.signal(signal.SIGINT, cleanup)

    print(f"Battery monitor started (PID {os.getpid()})")
    try:
        run(monitor, source)
    finally:
        monitor.close()


if __name__ == "__main__":
    main()
