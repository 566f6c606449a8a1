"""
UI preference persistence.

The engine never touches ambient global state for toggles; a key-value store
with get/set is injected at its boundary. Values are strings ("1"/"0" for
booleans) so any backing store works.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Dict, Protocol

logger = logging.getLogger("preferences")

SHOW_MAIN_GRAPH_KEY = "seq_showMainGraph"
SHOW_SECOND_GRAPH_KEY = "seq_showSecondGraph"
LEGACY_SECOND_GRAPH_KEY = "seq_showMiniGraph"


class PreferenceStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryPreferenceStore:
    """Non-persistent store (tests, headless use)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFilePreferenceStore:
    """Persists preferences to a small JSON object file."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._values: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)
        self._save()

    def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._save()


class ViewPreferences:
    """Graph visibility toggles backed by a PreferenceStore."""

    def __init__(self, store: PreferenceStore):
        self.store = store

    @staticmethod
    def _as_bool(raw: Optional[str], default: bool = True) -> bool:
        if raw is None:
            return default
        return raw == "1"

    @property
    def show_main_graph(self) -> bool:
        return self._as_bool(self.store.get(SHOW_MAIN_GRAPH_KEY))

    @show_main_graph.setter
    def show_main_graph(self, value: bool):
        self.store.set(SHOW_MAIN_GRAPH_KEY, "1" if value else "0")

    @property
    def show_second_graph(self) -> bool:
        raw = self.store.get(SHOW_SECOND_GRAPH_KEY)
        if raw is None:
            raw = self.store.get(LEGACY_SECOND_GRAPH_KEY)
        return self._as_bool(raw)

    @show_second_graph.setter
    def show_second_graph(self, value: bool):
        self.store.set(SHOW_SECOND_GRAPH_KEY, "1" if value else "0")
        self.store.remove(LEGACY_SECOND_GRAPH_KEY)

    def to_dict(self) -> Dict:
        return {
            "show_main_graph": self.show_main_graph,
            "show_second_graph": self.show_second_graph,
        }
