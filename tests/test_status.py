import math

from battery_alert import status
from battery_alert.models import PredictionConfidence, Sample, ShutdownPrediction
from battery_alert.monitor import BatteryMonitor, MonitorUpdate, WarningEvent
from battery_alert.sensor import SensorReading


def make_update(minutes, confidence, charging=False, event=WarningEvent.NONE):
    sample = Sample(0, 42, 25.0, 3800, charging)
    return MonitorUpdate(sample, ShutdownPrediction(minutes, confidence), minutes, event, 5.0)


def test_format_minutes():
    assert status.format_minutes(65.0) == "1h 5m remaining"
    assert status.format_minutes(9.5) == "9m remaining"
    assert status.format_minutes(math.inf) == ""


def test_format_discharging_update():
    lines = status.format_update(make_update(65.0, PredictionConfidence.MEDIUM))
    assert lines == ["> 42%", "  1h 5m remaining (medium)"]


def test_format_charging_update():
    lines = status.format_update(make_update(math.inf, PredictionConfidence.CHARGING, True))
    assert lines == ["> 42% CHG", "  Charging..."]


def test_format_warning_update():
    lines = status.format_update(
        make_update(4.0, PredictionConfidence.LOW, event=WarningEvent.STARTED)
    )
    assert lines[-1] == "  SHUTDOWN WARNING"


def test_main_without_sensor_library(monkeypatch, capsys):
    monkeypatch.setattr(status, "HAS_INA219", False)
    status.main()
    assert capsys.readouterr().out == "> N/A\n"


class FakeSource:
    def __init__(self, reading):
        self.reading = reading

    def read(self):
        return self.reading


def patch_hardware(monkeypatch, reading):
    monitor = BatteryMonitor()
    monkeypatch.setattr(status, "HAS_INA219", True)
    monkeypatch.setattr(status, "INA219Source", lambda: FakeSource(reading))
    monkeypatch.setattr(BatteryMonitor, "open", classmethod(lambda cls, **kwargs: monitor))
    return monitor


def test_main_prints_prediction(monkeypatch, capsys):
    monitor = patch_hardware(monkeypatch, SensorReading(50, 30.0, 3800, False, -700.0))
    status.main()

    out = capsys.readouterr().out.splitlines()
    assert out == ["> 50%", "  41m remaining (low)"]
    assert len(monitor.estimator.get_history()) == 1


def test_main_reports_rejected_sample(monkeypatch, capsys):
    patch_hardware(monkeypatch, SensorReading(0, 30.0, 2500, False, -700.0))
    status.main()
    assert capsys.readouterr().out == "> ERR\n"
