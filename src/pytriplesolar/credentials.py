"""Process-wide credential stores shared by all device sessions.

A store holds the last-known credential bundle so that a new device session
can bootstrap from a previously successful login. Bundles are replaced as a
whole record; partial field writes are never exposed to readers.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from pytriplesolar.models import Credentials


_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """Shared credential bundle storage.

    Token managers call ``get`` and ``set`` from a worker thread, so
    implementations must be thread-safe and may block on I/O.
    """

    def get(self) -> Credentials | None:
        """Return the stored bundle, or None if nothing is stored."""

    def set(self, credentials: Credentials) -> None:
        """Replace the stored bundle."""

    def clear(self) -> None:
        """Remove the stored bundle."""


class MemoryCredentialStore:
    """In-process credential store.

    Example:
        ```python
        store = MemoryCredentialStore()
        store.set(Credentials(username="user@example.com", password="secret"))
        ```
    """

    def __init__(self, credentials: Credentials | None = None) -> None:
        """Initialize the store with an optional initial bundle."""
        self._credentials = credentials
        self._lock = threading.Lock()

    def get(self) -> Credentials | None:
        """Return the stored bundle, or None if nothing is stored."""
        with self._lock:
            return self._credentials

    def set(self, credentials: Credentials) -> None:
        """Replace the stored bundle."""
        with self._lock:
            self._credentials = credentials
        _LOGGER.debug("Credentials stored centrally")

    def clear(self) -> None:
        """Remove the stored bundle."""
        with self._lock:
            self._credentials = None
        _LOGGER.debug("Credentials cleared")


class FileCredentialStore:
    """Credential store persisted as a JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so the file on disk always holds one complete bundle. The
    file is created with owner-only permissions.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store and load any existing bundle.

        Args:
            path: Location of the JSON file. Parent directories are created
                on first write.
        """
        self.path = Path(path)
        self._lock = threading.Lock()
        self._credentials = self._load()

    def _load(self) -> Credentials | None:
        if not self.path.exists():
            _LOGGER.debug("No stored credentials available at %s", self.path)
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            _LOGGER.exception("Error loading stored credentials from %s", self.path)
            return None

        if not isinstance(data, dict):
            _LOGGER.warning("Ignoring stored credentials at %s: not a JSON object", self.path)
            return None

        _LOGGER.debug("Stored credentials found at %s", self.path)
        return Credentials.from_dict(data)

    def _write(self, payload: str | None) -> None:
        if payload is None:
            self.path.unlink(missing_ok=True)
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self) -> Credentials | None:
        """Return the stored bundle, or None if nothing is stored."""
        with self._lock:
            return self._credentials

    def set(self, credentials: Credentials) -> None:
        """Replace the stored bundle and persist it."""
        payload = json.dumps(credentials.to_dict())
        with self._lock:
            self._write(payload)
            self._credentials = credentials
        _LOGGER.debug("Credentials stored at %s", self.path)

    def clear(self) -> None:
        """Remove the stored bundle and its file."""
        with self._lock:
            self._write(None)
            self._credentials = None
        _LOGGER.debug("Credentials cleared from %s", self.path)
