"""
Slot Storage — durable string-keyed slots holding serialized wallet maps.

Every backend stores whole values under a slot name; there are no partial
writes. ``FileStorage`` keeps all slots in one JSON document and replaces
the file atomically on each write. A file that cannot be parsed is never
rewritten; reads and writes raise ``StorageCorrupt`` until it is repaired.
"""
import os
import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import orjson

from .exceptions import StorageCorrupt

logger = logging.getLogger("dcoin.vault")


@runtime_checkable
class SlotStorage(Protocol):
    """Persistent storage boundary used by the vault."""

    async def get(self, slot: str) -> Optional[str]:
        ...

    async def set(self, slot: str, value: str) -> None:
        ...


class MemoryStorage:
    """In-process slot storage; contents vanish with the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._slots: dict[str, str] = dict(initial or {})

    async def get(self, slot: str) -> Optional[str]:
        return self._slots.get(slot)

    async def set(self, slot: str, value: str) -> None:
        self._slots[slot] = value


class FileStorage:
    """Slot storage backed by a single JSON file.

    The file holds ``{slot: value}``. Writes go to a temporary file in the
    same directory which then replaces the original, so readers see either
    the old or the new document.
    """

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise StorageCorrupt(
                f"Storage file {self._path} is not valid JSON"
            ) from err
        if not isinstance(data, dict):
            raise StorageCorrupt(
                f"Storage file {self._path} does not hold an object"
            )
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            prefix=f".{self._path.name}.", dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(orjson.dumps(data))
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _get(self, slot: str) -> Optional[str]:
        value = self._read_all().get(slot)
        if value is None or isinstance(value, str):
            return value
        # hand-edited files may inline the map; the vault validates it
        return orjson.dumps(value).decode("utf-8")

    def _set(self, slot: str, value: str) -> None:
        # raises on an unparsable file, so other slots are never dropped
        data = self._read_all()
        data[slot] = value
        self._write_all(data)

    async def get(self, slot: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, slot)

    async def set(self, slot: str, value: str) -> None:
        await asyncio.to_thread(self._set, slot, value)


class RedisStorage:
    """Slot storage on an async redis client (``redis.asyncio``-compatible).

    Args:
        redis: Client exposing ``get`` and ``set`` coroutines.
        prefix: Namespace prepended to slot names.
    """

    def __init__(self, redis: Any, prefix: str = "dcoin:vault"):
        self._redis = redis
        self._prefix = prefix

    def _redis_key(self, slot: str) -> str:
        """Build Redis key."""
        return f"{self._prefix}:{slot}"

    async def get(self, slot: str) -> Optional[str]:
        value = await self._redis.get(self._redis_key(slot))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, slot: str, value: str) -> None:
        await self._redis.set(self._redis_key(slot), value)
