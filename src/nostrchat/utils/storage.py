"""Session key/value persistence.

The engine keeps a handful of small strings across UI interactions: the
identity private key, the starred-message list and per-context drafts. It
only needs non-blocking ``get``/``set``/``remove`` with string keys and
values, described by [KeyValueStore][nostrchat.utils.storage.KeyValueStore].

[MemoryStore][nostrchat.utils.storage.MemoryStore] is the session-scoped
default. [JsonFileStore][nostrchat.utils.storage.JsonFileStore] lets the
CLI keep its identity between runs.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Opaque string key/value store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed [KeyValueStore][nostrchat.utils.storage.KeyValueStore]."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileStore(MemoryStore):
    """[MemoryStore][nostrchat.utils.storage.MemoryStore] mirrored to a JSON file.

    The file is read once on construction and rewritten on every mutation.
    It is created with mode ``0600`` because it may hold the private key.

    Args:
        path: Location of the JSON document. Missing parent directories are created.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        initial: dict[str, str] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("store_load_failed path=%s error=%s", self._path, e)
            else:
                if isinstance(raw, dict):
                    initial = {k: v for k, v in raw.items() if isinstance(v, str)}
        super().__init__(initial)

    @property
    def path(self) -> Path:
        return self._path

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        super().remove(key)
        self._flush()

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        tmp.replace(self._path)
