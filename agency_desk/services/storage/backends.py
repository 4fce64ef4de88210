"""
Key-Value Backends

Two implementations of KeyValueBackend:

- InMemoryBackend keeps values in a dict. Nothing survives the process;
  tests and the "memory" storage setting use it.
- FileBackend keeps one UTF-8 file per key in a data directory, so records
  survive restarts of the dashboard. Writes go to a temporary file first
  and are moved into place, so a crash never leaves half a document behind.

Both enforce the same capacity rule: the total size of all keys and values
may not exceed the quota. A write that would exceed it raises
CapacityError and the previous value stays in place.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from agency_desk.services.storage.interface import CapacityError, KeyValueBackend


logger = structlog.get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryBackend(KeyValueBackend):
    """Dict-backed store with an optional quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            current = self.usage_bytes()
            previous = self._data.get(key)
            if previous is not None:
                current -= _entry_size(key, previous)
            required = current + _entry_size(key, value)
            if required > self._quota_bytes:
                raise CapacityError(key, required, self._quota_bytes)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def usage_bytes(self) -> int:
        return sum(_entry_size(k, v) for k, v in self._data.items())


class FileBackend(KeyValueBackend):
    """
    One file per key under a directory.

    Keys are restricted to letters, digits, underscore and dash so they
    map directly onto file names.
    """

    SUFFIX = ".json"

    def __init__(
        self,
        directory: Union[str, Path],
        quota_bytes: Optional[int] = None,
    ):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._quota_bytes = quota_bytes

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)

        if self._quota_bytes is not None:
            current = self.usage_bytes()
            previous = self.get(key)
            if previous is not None:
                current -= _entry_size(key, previous)
            required = current + _entry_size(key, value)
            if required > self._quota_bytes:
                raise CapacityError(key, required, self._quota_bytes)

        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory,
            prefix=f".{key}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("storage_key_written", key=key, size=len(value))

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        return sorted(
            path.name[: -len(self.SUFFIX)]
            for path in self._directory.glob(f"*{self.SUFFIX}")
            if not path.name.startswith(".")
        )

    def usage_bytes(self) -> int:
        total = 0
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                total += _entry_size(key, value)
        return total
