import contextlib
import logging
import os
import secrets
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from langtrans.exceptions import KeyExpired, KeyNotFound, KeyRevoked, StoreError
from langtrans.models.api_keys import ApiKey, ApiKeyFile

logger = logging.getLogger(__name__)


class ApiKeyStore:
    """File-backed API key collection.

    The JSON file is the source of truth. Every mutation rewrites it whole
    (temp file + rename) under ``_lock`` and only then swaps in the new
    in-memory collection, so memory is never ahead of disk and readers never
    wait on a writer.
    """

    KEY_PREFIX = "lt_"

    def __init__(self, path: Path, keys: list[ApiKey] | None = None):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._set_keys(tuple(keys or ()))

    @classmethod
    def load(cls, path: str | Path) -> "ApiKeyStore":
        path = Path(path)
        store = cls(path, cls._read(path))
        logger.info("Loaded %d API key(s) from %s", len(store.list_keys()), path)
        return store

    def reload(self) -> None:
        """Re-read the key file, replacing the in-memory collection."""
        with self._lock:
            self._set_keys(tuple(self._read(self.path)))

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    def create(self, ttl: timedelta | None = None, label: str = "") -> ApiKey:
        """Create and persist a new key.

        Returns the full record; its ``id`` is the plaintext secret and is
        shown to the admin once.
        """
        if ttl is not None and ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

        now = datetime.now(timezone.utc)
        try:
            expires_at = now + ttl if ttl is not None else None
        except OverflowError:
            raise ValueError("ttl is too large") from None

        with self._lock:
            key_id = self._generate_id()
            record = ApiKey(
                id=key_id,
                label=label,
                created_at=now,
                expires_at=expires_at,
            )
            keys = self._keys + (record,)
            self._write(keys)
            self._set_keys(keys)

        logger.info("Created API key %s (label=%r, expires_at=%s)",
                    record.key_prefix, label, record.expires_at)
        return record

    def validate(self, presented: str, now: datetime | None = None) -> ApiKey:
        """Return the usable key matching ``presented``.

        Raises:
            KeyNotFound, KeyRevoked, KeyExpired.
        """
        record = self._by_id.get(presented)
        if record is None:
            raise KeyNotFound("Unknown API key")
        if record.revoked:
            raise KeyRevoked("API key has been revoked")
        if record.is_expired(now):
            raise KeyExpired("API key has expired")
        return record

    def revoke(self, key_id: str) -> bool:
        """Mark a key revoked. Returns True if its state changed."""
        with self._lock:
            index = next(
                (i for i, k in enumerate(self._keys) if k.id == key_id), None
            )
            if index is None or self._keys[index].revoked:
                return False

            revoked = self._keys[index].model_copy(update={"revoked": True})
            keys = self._keys[:index] + (revoked,) + self._keys[index + 1:]
            self._write(keys)
            self._set_keys(keys)

        logger.info("Revoked API key %s", revoked.key_prefix)
        return True

    def list_keys(self) -> list[ApiKey]:
        """All keys in insertion order."""
        return list(self._keys)

    def find(self, key_id: str) -> ApiKey | None:
        return self._by_id.get(key_id)

    def find_by_fingerprint(self, fingerprint: str) -> ApiKey | None:
        for record in self._keys:
            if secrets.compare_digest(record.fingerprint, fingerprint):
                return record
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_keys(self, keys: tuple[ApiKey, ...]) -> None:
        self._keys = keys
        self._by_id = {k.id: k for k in keys}

    def _generate_id(self) -> str:
        while True:
            key_id = f"{self.KEY_PREFIX}{secrets.token_urlsafe(32)}"
            if key_id not in self._by_id:
                return key_id

    @staticmethod
    def _read(path: Path) -> list[ApiKey]:
        if not path.exists():
            return []
        try:
            return ApiKeyFile.model_validate_json(path.read_text(encoding="utf-8")).keys
        except (OSError, ValidationError) as e:
            logger.error("Failed to read API key file %s: %s", path, e)
            raise StoreError(f"Cannot read API key file {path}") from e

    def _write(self, keys: tuple[ApiKey, ...]) -> None:
        """Atomically replace the key file with ``keys``."""
        payload = ApiKeyFile(keys=list(keys)).model_dump_json(indent=2)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # mkstemp creates the file with mode 0600
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
            logger.error("Failed to write API key file %s: %s", self.path, e)
            raise StoreError("Failed to save API keys; please retry") from e

    def __repr__(self) -> str:
        return f"ApiKeyStore(path={self.path!s}, keys={len(self._keys)})"

