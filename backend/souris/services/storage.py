"""Player-side persistence behind a small key-value port.

The browser keeps a personal best per circuit, the chosen pseudo and
the last circuit played. Those helpers take any object with
``get/set/remove`` so they can run against memory in tests or a JSON
file on disk.
"""

import json
import os
import threading
from typing import Any, Dict, Optional

from .security import DEFAULT_PSEUDO

RECORDS_KEY = 'sourisRecords'
PSEUDO_KEY = 'sourisPseudo'
LAST_CIRCUIT_KEY = 'sourisLastCircuit'


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Whole-file JSON store; every write rewrites the file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding='utf-8') as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError:
                return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as fh:
            json.dump(data, fh)
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._dump(data)


class NamespacedStorage:
    """Prefix every key, so several apps can share one backing store."""

    def __init__(self, backend, namespace: str):
        self.backend = backend
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.backend.get(self._key(key), default)

    def set(self, key: str, value: Any) -> None:
        self.backend.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.backend.remove(self._key(key))


class LocalRecords:
    """Personal best time (seconds) per circuit. Lower is better."""

    def __init__(self, storage):
        self.storage = storage

    def _all(self) -> Dict[str, float]:
        records = self.storage.get(RECORDS_KEY)
        return dict(records) if isinstance(records, dict) else {}

    def save_record(self, circuit, chrono) -> bool:
        """Store ``chrono`` if it beats the current best. Returns True if stored."""
        try:
            new_time = float(chrono)
        except (TypeError, ValueError):
            return False
        if new_time != new_time or new_time <= 0:
            return False
        records = self._all()
        old = records.get(str(circuit))
        if old is not None and new_time >= float(old):
            return False
        records[str(circuit)] = new_time
        self.storage.set(RECORDS_KEY, records)
        return True

    def get_record(self, circuit) -> Optional[float]:
        value = self._all().get(str(circuit))
        return float(value) if value is not None else None

    def is_new_record(self, circuit, chrono) -> bool:
        best = self.get_record(circuit)
        return best is None or float(chrono) < best

    def get_all_records(self) -> Dict[str, float]:
        return self._all()

    def delete_record(self, circuit) -> bool:
        records = self._all()
        if str(circuit) not in records:
            return False
        del records[str(circuit)]
        self.storage.set(RECORDS_KEY, records)
        return True

    def clear_all_records(self) -> None:
        self.storage.set(RECORDS_KEY, {})


class UserPreferences:
    def __init__(self, storage):
        self.storage = storage

    def save_pseudo(self, pseudo: str) -> None:
        self.storage.set(PSEUDO_KEY, pseudo)

    def get_pseudo(self) -> str:
        return self.storage.get(PSEUDO_KEY) or DEFAULT_PSEUDO

    def save_last_circuit(self, circuit: int) -> None:
        self.storage.set(LAST_CIRCUIT_KEY, int(circuit))

    def get_last_circuit(self) -> int:
        try:
            circuit = int(self.storage.get(LAST_CIRCUIT_KEY) or 1)
        except (TypeError, ValueError, OverflowError):
            return 1
        return circuit if circuit > 0 else 1
