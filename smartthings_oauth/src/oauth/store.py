"""OAuth token persistence.

The flow only needs three operations on a single record: ``get``, ``put``
and ``delete``. Two backends are provided: a JSON file for real deployments
and an in-memory store for tests and throwaway runs.
"""

import json
import os
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.oauth.errors import StoreError
from smartthings_oauth.src.oauth.models import TokenRecord


@runtime_checkable
class TokenStore(Protocol):
    """Storage for the token record of the configured identity.

    Implementations raise :class:`StoreError` when the backend fails.
    ``get`` returns ``None`` when nothing is stored and ``delete`` succeeds
    when nothing is stored.
    """

    def get(self) -> Optional[TokenRecord]:
        """Return the stored record, or ``None`` if there is none."""
        ...

    def put(self, record: TokenRecord) -> None:
        """Replace the stored record."""
        ...

    def delete(self) -> None:
        """Remove the stored record if present."""
        ...


class FileTokenStore:
    """Token store backed by a JSON file.

    Writes go to a temporary file that is then renamed over the target, so a
    crash never leaves a truncated token file behind. The file is created
    with owner-only permissions.

    Thread-safe: All operations are protected by a re-entrant lock.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        """Initialize token store.

        Args:
            path: Location of the JSON token file
        """
        self._lock = threading.RLock()
        self.path = Path(path)

    def get(self) -> Optional[TokenRecord]:
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except (OSError, UnicodeDecodeError) as e:
                raise StoreError(f"Failed to read token file: {e}") from e

            try:
                return TokenRecord.from_dict(json.loads(raw))
            except (ValueError, KeyError, TypeError) as e:
                raise StoreError(f"Failed to parse token file: {e}") from e

    def put(self, record: TokenRecord) -> None:
        with self._lock:
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
                fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(record.to_dict(), fh, indent=2)
                os.replace(tmp_path, self.path)
            except OSError as e:
                if tmp_path.exists():
                    tmp_path.unlink()
                raise StoreError(f"Failed to save token file: {e}") from e
            log.debug("Stored tokens in %s (expires at %s)", self.path, record.expires_at)

    def delete(self) -> None:
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                return
            except OSError as e:
                raise StoreError(f"Failed to delete token file: {e}") from e
            log.debug("Removed token file %s", self.path)

    def exists(self) -> bool:
        """Check whether the token file exists."""
        with self._lock:
            return self.path.exists()


class MemoryTokenStore:
    """Token store holding the record in process memory."""

    def __init__(self, record: Optional[TokenRecord] = None) -> None:
        self._lock = threading.RLock()
        self._record = record

    def get(self) -> Optional[TokenRecord]:
        with self._lock:
            return self._record

    def put(self, record: TokenRecord) -> None:
        with self._lock:
            self._record = record

    def delete(self) -> None:
        with self._lock:
            self._record = None
