"""
Persisted state store - small key/value documents that survive process restarts.

Each component owns one namespace and talks to it through ``load()`` / ``save()``.
Stores never raise on I/O trouble: a broken document loads as empty (the owner
then falls back to its defaults) and a failed write is logged and dropped.
"""

import copy
import json
import logging
import os
from pathlib import Path
from threading import Condition, Thread

logger = logging.getLogger(__name__)

# Bumped whenever the persisted layout changes
SCHEMA_VERSION = 1
SCHEMA_KEY = "schemaVersion"


class StateStore:
    """Interface for a single persisted namespace."""

    def load(self) -> dict:
        raise NotImplementedError

    def save(self, state: dict) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        """Block until every accepted save has reached the backing storage."""

    def close(self) -> None:
        self.flush()


class MemoryStore(StateStore):
    """In-process store, for tests and hosts that bring their own persistence."""

    def __init__(self, initial=None):
        self._state = copy.deepcopy(initial) if initial is not None else {}
        self.save_count = 0

    def load(self) -> dict:
        return copy.deepcopy(self._state)

    def save(self, state: dict) -> None:
        self._state = copy.deepcopy(state)
        self.save_count += 1


class JsonFileStore(StateStore):
    """Stores one namespace as a JSON document on disk."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable state file {self.path}, starting fresh: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} is not an object, starting fresh")
            return {}
        return data

    def save(self, state: dict) -> None:
        # Write to a temp file then rename so readers never see a half-written file
        tmp_file = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w") as f:
                json.dump(state, f, indent=2)
            os.replace(tmp_file, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save state to {self.path}: {e}")


class BackgroundStore(StateStore):
    """
    Moves writes of another store onto a worker thread.

    ``save()`` only hands the document over and returns; if several saves arrive
    while a write is in progress, only the newest one is written.
    """

    def __init__(self, inner: StateStore, name: str = "battery-alert-store"):
        self.inner = inner
        self._cond = Condition()
        self._pending = None
        self._writing = False
        self._closed = False
        self._thread = Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def load(self) -> dict:
        self.flush()
        return self.inner.load()

    def save(self, state: dict) -> None:
        with self._cond:
            if self._closed:
                logger.error("Save on closed background store dropped")
                return
            self._pending = copy.deepcopy(state)
            self._cond.notify_all()

    def flush(self) -> None:
        with self._cond:
            while self._pending is not None or self._writing:
                self._cond.wait()

    def close(self) -> None:
        self.flush()
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout=5)
        self.inner.close()

    def _run(self):
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                state, self._pending = self._pending, None
                self._writing = True
            try:
                self.inner.save(state)
            except Exception:
                logger.exception("Background state write failed")
            finally:
                with self._cond:
                    self._writing = False
                    self._cond.notify_all()


def check_schema(state: dict, namespace: str) -> bool:
    """True if ``state`` is usable: empty (fresh) or written with our schema version."""
    if not state:
        return True
    version = state.get(SCHEMA_KEY)
    if version != SCHEMA_VERSION:
        logger.warning(
            f"Unsupported {namespace} schema version {version!r}, resetting to defaults"
        )
        return False
    return True
