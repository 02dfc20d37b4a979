"""
autofill/state.py
-----------------
Process-wide extension state with an explicit lifecycle.

    storage = JsonFileStateStorage(path)
    state = ExtensionState.load(storage)   # read once, then subscribe
    state.set_token(token)                 # write through storage; listeners update state
    state.close()                          # unsubscribe

Every change goes through the storage so any other ExtensionState over the
same storage object sees it too.
"""

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional

from vault.autofill.fields import SiteConfig
from vault.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"

DEBUG = "debug"
AUTH_TOKEN = "auth_token"
API_BASE_URL = "api_base_url"
SITE_CONFIG = "site_config"
LAST_SYNC = "last_sync"
KEYS = (DEBUG, AUTH_TOKEN, API_BASE_URL, SITE_CONFIG, LAST_SYNC)


class StorageChange(NamedTuple):
    old_value: Any
    new_value: Any


Listener = Callable[[dict[str, StorageChange]], None]


class JsonFileStateStorage:
    """Key/value storage in one JSON file, with change notifications."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._listeners: list[Listener] = []

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8")
        return json.loads(text) if text.strip() else {}

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, *keys: str) -> dict[str, Any]:
        data = self._read()
        return {k: data[k] for k in keys if k in data}

    def set(self, **values: Any) -> None:
        data = self._read()
        changes = {
            k: StorageChange(data.get(k), v) for k, v in values.items() if data.get(k) != v
        }
        if not changes:
            return
        data.update(values)
        self._write(data)
        self._notify(changes)

    def remove(self, *keys: str) -> None:
        data = self._read()
        changes = {k: StorageChange(data.pop(k), None) for k in keys if k in data}
        if not changes:
            return
        self._write(data)
        self._notify(changes)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changes: dict[str, StorageChange]) -> None:
        for listener in list(self._listeners):
            listener(changes)


@dataclass
class ExtensionState:
    storage: JsonFileStateStorage
    debug: bool = False
    auth_token: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    site_config: Optional[SiteConfig] = None
    last_sync: Optional[float] = None
    _unsubscribe: Optional[Callable[[], None]] = field(default=None, repr=False)

    @classmethod
    def load(cls, storage: JsonFileStateStorage) -> "ExtensionState":
        """Read persisted values, seed the default site config, then follow changes."""
        state = cls(storage=storage)
        state._apply(storage.get(*KEYS))
        state._unsubscribe = storage.subscribe(state._on_change)
        if state.site_config is None:
            storage.set(**{SITE_CONFIG: SiteConfig().to_dict()})
        state.debug_log("Extension state loaded", logged_in=state.is_logged_in)
        return state

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def is_logged_in(self) -> bool:
        return bool(self.auth_token)

    def _apply(self, values: dict[str, Any]) -> None:
        if DEBUG in values:
            self.debug = bool(values[DEBUG])
        if AUTH_TOKEN in values:
            self.auth_token = values[AUTH_TOKEN] or None
        if API_BASE_URL in values:
            self.api_base_url = values[API_BASE_URL] or DEFAULT_API_BASE_URL
        if SITE_CONFIG in values:
            self.site_config = SiteConfig.from_dict(values[SITE_CONFIG])
        if LAST_SYNC in values:
            self.last_sync = values[LAST_SYNC]

    def _on_change(self, changes: dict[str, StorageChange]) -> None:
        self._apply({k: c.new_value for k, c in changes.items() if k in KEYS})

    def set_token(self, token: str) -> None:
        self.storage.set(**{AUTH_TOKEN: token})

    def clear_token(self) -> None:
        self.storage.remove(AUTH_TOKEN)

    def set_debug(self, enabled: bool) -> None:
        self.storage.set(**{DEBUG: enabled})

    def mark_synced(self, at: Optional[float] = None) -> None:
        self.storage.set(**{LAST_SYNC: time.time() if at is None else at})

    def debug_log(self, event: str, **context: Any) -> None:
        if self.debug:
            logger.info(event, **context)
