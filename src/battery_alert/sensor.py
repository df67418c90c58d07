"""
INA219 sample source - turns raw pack readings into battery samples for the monitor.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

try:
    from ina219 import INA219
    HAS_INA219 = True
except ImportError:
    HAS_INA219 = False

from .curve import CELL_COUNT, pack_to_cell_millivolts, voltage_to_percent

logger = logging.getLogger(__name__)

# INA219 wiring
SHUNT_OHMS = 0.1
I2C_ADDRESS = 0x41
I2C_BUS = 1

# Charging detection
CHARGE_CURRENT_THRESHOLD = 10  # mA - above this = charging

# Temperature source (millidegrees C); the INA219 has no thermometer
THERMAL_ZONE = Path("/sys/class/thermal/thermal_zone0/temp")
DEFAULT_TEMPERATURE = 25.0


@dataclass(frozen=True)
class SensorReading:
    level: int
    temperature: float
    voltage_mv: int
    charging: bool
    current_ma: float


def read_temperature(path=THERMAL_ZONE) -> float:
    """Read a sysfs thermal zone, falling back to room temperature."""
    try:
        return int(Path(path).read_text().strip()) / 1000.0
    except (OSError, ValueError):
        return DEFAULT_TEMPERATURE


class INA219Source:
    """Reads pack voltage and current from an INA219."""

    def __init__(self, ina=None, thermal_path=THERMAL_ZONE, cells=CELL_COUNT):
        if ina is None:
            if not HAS_INA219:
                raise RuntimeError("ina219 package is not installed")
            ina = INA219(SHUNT_OHMS, address=I2C_ADDRESS, busnum=I2C_BUS)
            ina.configure()
        self.ina = ina
        self.thermal_path = thermal_path
        self.cells = cells

    def read(self) -> SensorReading:
        voltage = self.ina.voltage()
        current = self.ina.current()
        reading = SensorReading(
            level=int(round(voltage_to_percent(voltage))),
            temperature=read_temperature(self.thermal_path),
            voltage_mv=pack_to_cell_millivolts(voltage, self.cells),
            charging=current > CHARGE_CURRENT_THRESHOLD,
            current_ma=current,
        )
        logger.debug(f"INA219 reading: {voltage:.3f}V {current:.1f}mA -> {reading}")
        return reading
