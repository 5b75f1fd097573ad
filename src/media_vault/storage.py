"""Key-value persistence backing the token store.

Values are plain strings addressed by logical key names. ``JsonFileStore``
survives process restarts; ``MemoryStore`` is for tests and throwaway sessions.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from media_vault.exceptions import TokenStorageError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Named string values with get/set/delete."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def update(self, values: dict[str, str]) -> None:
        """Write several keys in one step. Raises TokenStorageError on failure."""

    @abstractmethod
    def delete(self, *keys: str) -> None: ...

    def set(self, key: str, value: str) -> None:
        self.update({key: value})


class MemoryStore(KeyValueStore):
    """Process-local store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def update(self, values: dict[str, str]) -> None:
        self._data.update(values)

    def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStore(KeyValueStore):
    """Durable store backed by a single JSON object on disk.

    Every write replaces the file atomically (temp file + ``os.replace``) so a
    reader never sees half of a token pair. The file is created with 0600
    permissions since it holds bearer credentials.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        temp_path: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp:
                temp_path = tmp.name
                json.dump(data, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, self._path)
        except OSError as e:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)
            raise TokenStorageError(f"Could not write session file {self._path}: {e}") from e

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def update(self, values: dict[str, str]) -> None:
        data = self._read()
        data.update(values)
        self._write(data)

    def delete(self, *keys: str) -> None:
        data = self._read()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)
