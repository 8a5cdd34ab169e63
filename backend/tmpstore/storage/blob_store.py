"""Blob store for short-lived binary payloads.

Every blob is a single file in the store directory, named after the blob.
An in-memory index maps names to their last access time. Blobs that have not
been read or touched within the configured lifetime are removed by ``sweep``,
which the eviction scheduler calls periodically.

Operations on different names may run concurrently from any thread. The
index is guarded by one lock; file I/O happens outside it. Overlapping
operations on the same name (e.g. a fetch racing a delete) are not
coordinated beyond keeping the index consistent.
"""

import logging
import os
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import BaseModel

from tmpstore.storage.errors import (
    AlreadyExists,
    BlobIOError,
    InitializationError,
    InvalidName,
    NotFound,
    PayloadTooLarge,
)

logger = logging.getLogger(__name__)

MB = 1 << 20
DEFAULT_MAX_ENTRY_SIZE = 100 * MB
DEFAULT_SWEEP_INTERVAL = timedelta(hours=1)
DEFAULT_ENTRY_LIFETIME = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored times."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


class StoreStats(BaseModel):
    """Snapshot of what the store currently holds."""

    entries: int
    total_bytes: int
    orphaned_files: int
    oldest_access: datetime | None = None
    max_entry_size: int


class BlobStore:
    """Stores named blobs on disk and evicts the ones nobody uses.

    Names are chosen by the caller and must be a single path component.
    """

    def __init__(
        self,
        base_directory: Path | str,
        max_entry_size: int = DEFAULT_MAX_ENTRY_SIZE,
        sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        entry_lifetime: timedelta = DEFAULT_ENTRY_LIFETIME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Create the store directory and an empty index.

        Args:
            base_directory: Directory holding one file per blob. Created with
                its parents if missing.
            max_entry_size: Largest accepted payload, in bytes.
            sweep_interval: How often the scheduler should run ``sweep``.
            entry_lifetime: Inactivity after which a blob is evicted.
            clock: Returns the current time. Defaults to UTC wall clock;
                naive results are taken as UTC.

        Raises:
            InitializationError: If a limit is not positive or the directory
                cannot be created or written to.
        """
        if max_entry_size <= 0:
            raise InitializationError(
                f"max_entry_size must be positive, got {max_entry_size}"
            )
        if sweep_interval <= timedelta(0):
            raise InitializationError(
                f"sweep_interval must be positive, got {sweep_interval}"
            )
        if entry_lifetime <= timedelta(0):
            raise InitializationError(
                f"entry_lifetime must be positive, got {entry_lifetime}"
            )

        self._dir = Path(base_directory)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InitializationError(
                f"Cannot create store directory {self._dir}: {e}"
            ) from e
        if not os.access(self._dir, os.W_OK | os.X_OK):
            raise InitializationError(f"Store directory {self._dir} is not writable")

        self.max_entry_size = max_entry_size
        self.sweep_interval = sweep_interval
        self.entry_lifetime = entry_lifetime
        self._clock = clock or utcnow

        self._index: dict[str, datetime] = {}
        # Names whose file is being written but not yet indexed
        self._reserved: set[str] = set()
        # Names removed from the index whose file could not be removed
        self._orphans: set[str] = set()
        self._lock = threading.Lock()

        logger.info(
            f"Blob store ready at {self._dir} "
            f"(max entry {max_entry_size} bytes, lifetime {entry_lifetime}, "
            f"sweep every {sweep_interval})"
        )

    @property
    def directory(self) -> Path:
        """Directory under which every blob file lives."""
        return self._dir

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._index

    def path_for(self, name: str) -> Path:
        """Return the file path for a blob name.

        Raises:
            InvalidName: If the name is empty, ``.``/``..``, or contains a
                path separator or NUL byte.
        """
        if (
            not name
            or name in (".", "..")
            or "\x00" in name
            or Path(name).name != name
        ):
            raise InvalidName(f"Invalid blob name {name!r}", name=name)
        return self._dir / name

    def create(self, name: str, payload: bytes) -> None:
        """Store a new blob.

        The file is written first; the name is indexed only once the write
        has succeeded. Concurrent creates of one name have exactly one winner.

        Raises:
            InvalidName: If the name cannot be used as a file name.
            AlreadyExists: If the name is stored, being stored, or still
                occupied by a file that could not be removed.
            PayloadTooLarge: If the payload exceeds ``max_entry_size``.
            BlobIOError: If the file could not be written.
        """
        path = self.path_for(name)

        with self._lock:
            if name in self._index or name in self._reserved or name in self._orphans:
                raise AlreadyExists(f"Blob {name} already exists", name=name)
            if len(payload) > self.max_entry_size:
                raise PayloadTooLarge(
                    f"Blob is too large ({len(payload)} bytes, "
                    f"limit {self.max_entry_size})",
                    size=len(payload),
                    limit=self.max_entry_size,
                    name=name,
                )
            self._reserved.add(name)

        try:
            self._write(path, payload)
        except OSError as e:
            with self._lock:
                self._reserved.discard(name)
            raise BlobIOError(f"Failed to write blob {name}: {e}", name=name) from e

        with self._lock:
            self._reserved.discard(name)
            self._index[name] = self._now()

        logger.info(f"Stored blob {name} ({len(payload)} bytes)")

    def touch(self, name: str) -> datetime:
        """Mark a blob as used now.

        Returns:
            The blob's new last access time.

        Raises:
            NotFound: If no blob has this name.
        """
        with self._lock:
            last_access = self._index.get(name)
            if last_access is None:
                raise NotFound(f"No blob named {name}", name=name)
            # Never move backwards, even if the clock does
            refreshed = max(last_access, self._now())
            self._index[name] = refreshed
        return refreshed

    def last_access(self, name: str) -> datetime:
        """Return when a blob was last created, read or touched.

        Raises:
            NotFound: If no blob has this name.
        """
        with self._lock:
            last_access = self._index.get(name)
        if last_access is None:
            raise NotFound(f"No blob named {name}", name=name)
        return last_access

    def fetch(self, name: str) -> bytes:
        """Read a blob's payload and mark it as used.

        Raises:
            NotFound: If no blob has this name.
            BlobIOError: If the file cannot be read, including when the blob
                is indexed but its file is gone.
        """
        # Refresh before reading so a sweep cannot evict a blob mid-read
        self.touch(name)

        path = self._dir / name
        try:
            payload = path.read_bytes()
        except FileNotFoundError as e:
            logger.error(f"Blob {name} is indexed but its file {path} is missing")
            raise BlobIOError(f"File for blob {name} is missing", name=name) from e
        except OSError as e:
            raise BlobIOError(f"Failed to read blob {name}: {e}", name=name) from e

        return payload

    def delete(self, name: str) -> None:
        """Remove a blob.

        The index entry goes first. If removing the file then fails, the
        blob stays deleted and the error is raised; a file that is still on
        disk is retried by the next sweep.

        Raises:
            NotFound: If no blob has this name.
            BlobIOError: If the file could not be removed.
        """
        with self._lock:
            if self._index.pop(name, None) is None:
                raise NotFound(f"No blob named {name}", name=name)

        self._remove_file(name)
        logger.info(f"Deleted blob {name}")

    def sweep(self, now: datetime | None = None) -> int:
        """Evict every blob idle for longer than ``entry_lifetime``.

        Failures on individual files are logged and do not stop the pass.

        Args:
            now: Reference time. Defaults to the store clock. A naive
                datetime is taken as UTC.

        Returns:
            The number of blobs evicted.
        """
        now = self._now() if now is None else as_utc(now)
        with self._lock:
            expired = [
                name
                for name, last_access in self._index.items()
                if now - last_access > self.entry_lifetime
            ]
            for name in expired:
                del self._index[name]

        removed = self._remove_files(expired)
        self._retry_orphans()

        if expired:
            logger.info(
                f"Evicted {len(expired)} expired blob(s), "
                f"{len(expired) - removed} with file errors"
            )
        return len(expired)

    def clear(self) -> int:
        """Remove every blob. Used at shutdown.

        Failures on individual files are logged and do not stop the others.

        Returns:
            The number of blobs removed from the index.
        """
        with self._lock:
            names = list(self._index)
            self._index.clear()

        self._remove_files(names)
        self._retry_orphans()

        logger.info(f"Cleared {len(names)} blob(s) from {self._dir}")
        return len(names)

    def stats(self) -> StoreStats:
        """Summarize the store contents."""
        with self._lock:
            names = list(self._index)
            oldest = min(self._index.values(), default=None)
            orphaned = len(self._orphans)

        total_bytes = 0
        for name in names:
            try:
                total_bytes += (self._dir / name).stat().st_size
            except OSError:
                # Deleted since the snapshot
                continue

        return StoreStats(
            entries=len(names),
            total_bytes=total_bytes,
            orphaned_files=orphaned,
            oldest_access=oldest,
            max_entry_size=self.max_entry_size,
        )

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _write(self, path: Path, payload: bytes) -> None:
        """Write a payload, removing the partial file if the write fails."""
        try:
            with path.open("wb") as f:
                f.write(payload)
        except OSError:
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(
                    f"Could not remove partial file {path}: {cleanup_error}"
                )
            raise

    def _remove_file(self, name: str) -> None:
        path = self._dir / name
        try:
            path.unlink()
        except FileNotFoundError as e:
            logger.error(f"Blob {name} was indexed but its file {path} is missing")
            raise BlobIOError(f"File for blob {name} is missing", name=name) from e
        except OSError as e:
            with self._lock:
                self._orphans.add(name)
            raise BlobIOError(f"Failed to remove blob {name}: {e}", name=name) from e

    def _remove_files(self, names: list[str]) -> int:
        """Remove files for names already dropped from the index.

        Returns:
            How many files were removed without error.
        """
        removed = 0
        for name in names:
            try:
                self._remove_file(name)
            except BlobIOError as e:
                logger.warning(f"Could not remove blob {name}: {e}")
                continue
            removed += 1
        return removed

    def _retry_orphans(self) -> None:
        with self._lock:
            orphans = list(self._orphans)

        for name in orphans:
            try:
                (self._dir / name).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Still cannot remove orphaned blob file {name}: {e}")
                continue
            with self._lock:
                self._orphans.discard(name)
            logger.info(f"Removed orphaned blob file {name}")
