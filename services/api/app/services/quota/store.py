"""Durable storage for quota records, one record per client key.

Stores only move text. Decoding and validation happen here, at the
boundary, so callers always receive a DecodeResult and never raw data.
"""

import asyncio
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.quota_state import QuotaState
from app.services.quota.record import (
    DecodeResult,
    DecodeStatus,
    QuotaRecord,
    decode_record,
    encode_record,
)

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """The backing storage could not be read or written."""


class QuotaStateStore(ABC):
    """load/save contract shared by every backend."""

    async def load(self, key: str) -> DecodeResult:
        """
        Read the record for `key`.

        Returns ABSENT when nothing is stored and MALFORMED when the stored
        value fails validation. Raises StoreUnavailable on I/O failure.
        """
        raw = await self._read(key)
        result = decode_record(raw)
        if result.status is DecodeStatus.MALFORMED:
            logger.warning(f"Malformed quota record under {key!r}: {result.error}")
        return result

    async def save(self, key: str, record: QuotaRecord) -> None:
        """Overwrite the record for `key`. Raises StoreUnavailable on failure."""
        await self._write(key, encode_record(record))

    async def compare_and_save(self, key: str, expected: str | bytes | None, record: QuotaRecord) -> str | None:
        """
        Write `record` only if the stored text still equals `expected`.

        `expected` is the raw text from the last load (None when nothing was
        stored). Returns the text written, or None if another writer changed
        the value first. Raises StoreUnavailable on failure.
        """
        raw = encode_record(record)
        if await self._swap(key, expected, raw):
            return raw
        return None

    @abstractmethod
    async def _read(self, key: str) -> str | None: ...

    @abstractmethod
    async def _write(self, key: str, raw: str) -> None: ...

    @abstractmethod
    async def _swap(self, key: str, expected: str | bytes | None, raw: str) -> bool: ...


class InMemoryQuotaStore(QuotaStateStore):
    """Process-local store. Holds serialized text so decoding is still exercised."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def _read(self, key: str) -> str | None:
        return self._data.get(key)

    async def _write(self, key: str, raw: str) -> None:
        self._data[key] = raw

    async def _swap(self, key: str, expected: str | bytes | None, raw: str) -> bool:
        # No await between compare and set, so this is atomic on the event loop
        if self._data.get(key) != expected:
            return False
        self._data[key] = raw
        return True

    def put_raw(self, key: str, raw: str) -> None:
        """Place arbitrary text under `key` (e.g. to seed a corrupted value)."""
        self._data[key] = raw

    def get_raw(self, key: str) -> str | None:
        return self._data.get(key)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileQuotaStore(QuotaStateStore):
    """
    One JSON file per key inside a directory, replaced atomically on save.

    Compare-and-swap is guarded by a lock in this process only; share a
    directory between processes through save() alone.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def _read_sync(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StoreUnavailable(f"Failed to read {key!r}: {e}") from e

    def _write_sync(self, key: str, raw: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp_path, self._path(key))
        except OSError as e:
            raise StoreUnavailable(f"Failed to write {key!r}: {e}") from e

    def _swap_sync(self, key: str, expected: str | bytes | None, raw: str) -> bool:
        with self._lock:
            if self._read_sync(key) != expected:
                return False
            self._write_sync(key, raw)
            return True

    async def _read(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read_sync, key)

    async def _write(self, key: str, raw: str) -> None:
        await asyncio.to_thread(self._write_sync, key, raw)

    async def _swap(self, key: str, expected: str | bytes | None, raw: str) -> bool:
        return await asyncio.to_thread(self._swap_sync, key, expected, raw)


class SqlQuotaStore(QuotaStateStore):
    """Rows in the quota_states table, one short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _read_sync(self, key: str) -> str | None:
        db = self.session_factory()
        try:
            row = db.get(QuotaState, key)
            return row.value if row else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read {key!r}: {e}") from e
        finally:
            db.close()

    def _write_sync(self, key: str, raw: str) -> None:
        db = self.session_factory()
        try:
            db.merge(QuotaState(key=key, value=raw))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"Failed to write {key!r}: {e}") from e
        finally:
            db.close()

    def _swap_sync(self, key: str, expected: str | bytes | None, raw: str) -> bool:
        db = self.session_factory()
        try:
            if expected is None:
                # Primary key on `key` rejects a second first-writer
                db.add(QuotaState(key=key, value=raw))
                db.commit()
                return True
            if isinstance(expected, bytes):
                expected = expected.decode("utf-8")
            result = db.execute(
                update(QuotaState)
                .where(QuotaState.key == key, QuotaState.value == expected)
                .values(value=raw)
            )
            db.commit()
            return result.rowcount == 1
        except IntegrityError:
            db.rollback()
            return False
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"Failed to write {key!r}: {e}") from e
        finally:
            db.close()

    async def _read(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read_sync, key)

    async def _write(self, key: str, raw: str) -> None:
        await asyncio.to_thread(self._write_sync, key, raw)

    async def _swap(self, key: str, expected: str | bytes | None, raw: str) -> bool:
        return await asyncio.to_thread(self._swap_sync, key, expected, raw)
