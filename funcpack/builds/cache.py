"""Persisted operation cache.

This module provides CacheStore, a flat JSON mapping from operation key to
the value the operation returned the first time it succeeded. Wrapping an
operation in CacheStore.run_once makes it run at most once per working
directory: later calls replay the stored value.

Failures are never cached. A missing or corrupt store reads as empty, so
a damaged cache makes the pipeline rebuild rather than skip a build.

Precondition: at most one pipeline run per working directory. run_once
holds an exclusive flock across read, compute and write, so concurrent
runs serialize instead of racing. run_once calls must not be nested on
the same store.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_PATH = Path(".funcpack-cache.json")


class CacheReadError(Exception):
    """Raised when the cache store cannot be read or parsed."""

    def __init__(self, path: Path, message: str, code: str = "cache_read_error") -> None:
        super().__init__(f"Cannot read cache {path}: {message}")
        self.path = path
        self.code = code


class CacheWriteError(Exception):
    """Raised when a result cannot be persisted to the cache store."""

    def __init__(self, path: Path, message: str, code: str = "cache_write_error") -> None:
        super().__init__(f"Cannot write cache {path}: {message}")
        self.path = path
        self.code = code


class CacheStore:
    """JSON-file backed store for idempotent operations.

    Args:
        path: Store location. Relative paths resolve against the current
            working directory at construction time.
        lock_timeout: Seconds to wait for the store lock (None = block).
    """

    def __init__(
        self,
        path: Path = DEFAULT_CACHE_PATH,
        lock_timeout: float | None = None,
    ) -> None:
        self.path = Path(path).absolute()
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def __repr__(self) -> str:
        return f"CacheStore({str(self.path)!r})"

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the exclusive store lock.

        Raises:
            TimeoutError: If the lock is not acquired within lock_timeout.
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o600)
        lock_acquired = False
        try:
            if self.lock_timeout is not None:
                start = time.monotonic()
                while True:
                    try:
                        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                        lock_acquired = True
                        break
                    except BlockingIOError:
                        if time.monotonic() - start >= self.lock_timeout:
                            raise TimeoutError(
                                f"Timeout waiting for cache lock {self.lock_path}"
                            ) from None
                        time.sleep(0.1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX)
                lock_acquired = True

            logger.debug("Cache lock acquired: %s", self.lock_path)
            yield
        finally:
            if lock_acquired:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("Cache lock released: %s", self.lock_path)
            os.close(fd)

    def _load(self) -> dict[str, Any]:
        """Read the store, raising CacheReadError on corruption.

        A missing file is an empty store, not an error.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise CacheReadError(self.path, str(e)) from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CacheReadError(self.path, str(e)) from e
        if not isinstance(data, dict):
            raise CacheReadError(
                self.path, f"expected a JSON object, got {type(data).__name__}"
            )
        return data

    def read(self) -> dict[str, Any]:
        """Return the store contents, treating an unreadable store as empty."""
        try:
            return self._load()
        except CacheReadError as e:
            logger.warning("%s; treating cache as empty", e)
            return {}

    def _write(self, data: dict[str, Any]) -> None:
        """Atomically replace the store file.

        Raises:
            CacheWriteError: If serialization or the write fails.
        """
        tmp_path: Path | None = None
        try:
            payload = json.dumps(data, indent=2, sort_keys=True)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                encoding="utf-8",
                delete=False,
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CacheWriteError(self.path, str(e)) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default."""
        return self.read().get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.read()

    def run_once(self, key: str, operation: Callable[[], T]) -> T:
        """Run operation once per working directory and replay its result.

        Args:
            key: Name of the operation.
            operation: Zero-argument callable returning a JSON-serializable
                value.

        Returns:
            The stored value if key is present, otherwise the fresh result.

        Raises:
            CacheWriteError: If a fresh result cannot be persisted.
            Exception: Whatever operation raises; nothing is stored.
        """
        with self.lock():
            data = self.read()
            if key in data:
                logger.info("Cache hit for %r, skipping operation", key)
                return data[key]

            logger.info("Cache miss for %r, running operation", key)
            result = operation()

            data[key] = result
            self._write(data)
            logger.debug("Cached result for %r in %s", key, self.path)
            return result

    def forget(self, key: str) -> bool:
        """Remove one entry.

        Returns:
            True if the key was present.
        """
        with self.lock():
            data = self.read()
            if key not in data:
                return False
            del data[key]
            self._write(data)
            logger.info("Removed cache entry %r", key)
            return True

    def clear(self) -> bool:
        """Delete the store file.

        Returns:
            True if a store file existed.
        """
        with self.lock():
            try:
                self.path.unlink()
            except FileNotFoundError:
                return False
            logger.info("Deleted cache store %s", self.path)
            return True


__all__ = [
    "CacheReadError",
    "CacheStore",
    "CacheWriteError",
    "DEFAULT_CACHE_PATH",
]
