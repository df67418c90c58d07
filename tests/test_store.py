import json
import logging
from pathlib import Path

from battery_alert.estimator import DrainEstimator
from battery_alert.store import BackgroundStore, JsonFileStore, MemoryStore, check_schema


def test_memory_store_copies_documents():
    store = MemoryStore()
    state = {"history": [1, 2]}
    store.save(state)
    state["history"].append(3)

    loaded = store.load()
    assert loaded == {"history": [1, 2]}
    loaded["history"].clear()
    assert store.load() == {"history": [1, 2]}


def test_json_store_missing_file_loads_empty(tmp_path: Path):
    assert JsonFileStore(tmp_path / "absent.json").load() == {}


def test_json_store_roundtrip_leaves_no_temp_file(tmp_path: Path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)
    store.save({"schemaVersion": 1, "predictionAdjustment": 1.2})

    assert json.loads(path.read_text()) == {"schemaVersion": 1, "predictionAdjustment": 1.2}
    assert store.load()["predictionAdjustment"] == 1.2
    assert list(path.parent.iterdir()) == [path]


def test_json_store_invalid_json_loads_empty(tmp_path: Path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json")
    with caplog.at_level(logging.WARNING, logger="battery_alert.store"):
        assert JsonFileStore(path).load() == {}
    assert "starting fresh" in caplog.text


def test_json_store_non_object_loads_empty(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2, 3]")
    assert JsonFileStore(path).load() == {}


def test_json_store_write_failure_is_logged(tmp_path: Path, caplog):
    blocker = tmp_path / "file.txt"
    blocker.write_text("not a directory")
    store = JsonFileStore(blocker / "state.json")

    with caplog.at_level(logging.ERROR, logger="battery_alert.store"):
        store.save({"schemaVersion": 1})
    assert "Failed to save state" in caplog.text


def test_estimator_recovers_from_corrupt_file(tmp_path: Path):
    path = tmp_path / "estimator.json"
    path.write_text('{"schemaVersion": 1, "batteryHistoryJson": [')

    estimator = DrainEstimator(JsonFileStore(path))
    assert estimator.get_history() == []
    estimator.ingest(50, 25.0, 3800, False, timestamp=0)
    assert json.loads(path.read_text())["previousBatteryLevel"] == 50


def test_background_store_writes_latest_state():
    inner = MemoryStore()
    store = BackgroundStore(inner)
    try:
        for i in range(20):
            store.save({"value": i})
        assert store.load()["value"] == 19
        store.flush()
        assert inner.load() == {"value": 19}
        assert 1 <= inner.save_count <= 20
    finally:
        store.close()


def test_background_store_drops_saves_after_close(caplog):
    inner = MemoryStore()
    store = BackgroundStore(inner)
    store.save({"value": 1})
    store.close()

    with caplog.at_level(logging.ERROR, logger="battery_alert.store"):
        store.save({"value": 2})
    assert inner.load() == {"value": 1}
    assert "closed" in caplog.text


def test_check_schema():
    assert check_schema({}, "estimator")
    assert check_schema({"schemaVersion": 1}, "estimator")
    assert not check_schema({"cumulativeDischarge": 3.0}, "estimator")
    assert not check_schema({"schemaVersion": 2}, "estimator")
