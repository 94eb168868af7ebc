from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path
from typing import Any, Iterator

"""
Simple on-disk JSON document store.

This store is lightweight:
- It stores one JSON-serializable document per file under `<base_dir>/<namespace>/`.
- Keys are hashed (SHA-256) to avoid filesystem path issues; the raw key is kept in the envelope.
- TTL (when set) is enforced on read: an expired document reads as missing.

It backs both rated items (no TTL) and comparison sessions (24h TTL).
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentEnvelope:
    """Serialized envelope stored on disk."""

    key: str
    created_at_unix: int
    ttl_seconds: int | None
    value: Any

    def expired(self, now: int) -> bool:
        return self.ttl_seconds is not None and now - self.created_at_unix > self.ttl_seconds


@dataclass
class StoreStats:
    """Per-request store usage stats (best-effort)."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    writes: int = 0
    deletes: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": int(self.hits),
            "misses": int(self.misses),
            "expired": int(self.expired),
            "writes": int(self.writes),
            "deletes": int(self.deletes),
        }


_store_stats_var: contextvars.ContextVar[StoreStats | None] = contextvars.ContextVar(
    "placerank_store_stats", default=None
)


def _stats() -> StoreStats | None:
    return _store_stats_var.get()


@contextmanager
def record_store_stats() -> Iterator[StoreStats]:
    """Capture store stats within the current context (thread/task-safe)."""

    stats = StoreStats()
    token = _store_stats_var.set(stats)
    try:
        yield stats
    finally:
        _store_stats_var.reset(token)


class FileDocumentStore:
    """A filesystem-backed document collection keyed by string ids."""

    def __init__(self, base_dir: Path, namespace: str, default_ttl_seconds: int | None = None):
        self._base_dir = Path(base_dir)
        self._namespace = namespace
        self._default_ttl_seconds = default_ttl_seconds
        # Guards read-modify-write sequences issued through `lock`.
        self.lock = threading.RLock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def _dir(self) -> Path:
        return self._base_dir / self._namespace

    def _key_path(self, key: str) -> Path:
        digest = sha256(f"{self._namespace}:{key}".encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    @staticmethod
    def _read_envelope(path: Path) -> DocumentEnvelope:
        raw = json.loads(path.read_text(encoding="utf-8"))
        ttl = raw.get("ttl_seconds")
        return DocumentEnvelope(
            key=str(raw["key"]),
            created_at_unix=int(raw["created_at_unix"]),
            ttl_seconds=int(ttl) if ttl is not None else None,
            value=raw["value"],
        )

    def _stage(self, key: str, value: Any, created_at_unix: int, ttl: int | None) -> tuple[Path, Path]:
        path = self._key_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "key": key,
            "created_at_unix": int(created_at_unix),
            "ttl_seconds": ttl,
            "value": value,
        }
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        return tmp, path

    def get(self, key: str) -> Any | None:
        """Read a document if present and not expired; otherwise return None."""
        path = self._key_path(key)
        st = _stats()
        if not path.exists():
            if st:
                st.misses += 1
            return None

        try:
            entry = self._read_envelope(path)
        except FileNotFoundError:
            # Purged by a concurrent sweep after the existence check.
            if st:
                st.misses += 1
            return None
        if entry.expired(int(time.time())):
            if st:
                st.misses += 1
                st.expired += 1
            return None

        if st:
            st.hits += 1
        return entry.value

    def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Write a JSON-serializable document.

        Notes:
        - Writes via a temporary file + atomic replace to avoid partial/corrupt files.
        - Overwriting keeps the original creation time, so TTL counts from first insert.
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        path = self._key_path(key)
        created = int(time.time())
        if path.exists():
            created = self._read_envelope(path).created_at_unix
        tmp, final = self._stage(key, value, created, ttl)
        tmp.replace(final)
        st = _stats()
        if st:
            st.writes += 1

    def bulk_put(self, items: dict[str, Any]) -> int:
        """Write many documents: stage every temp file, then replace them all.

        Staging first means a serialization or disk-full error aborts the batch
        before any document changes; a crash during the replace loop can still
        leave the batch partially applied.
        """
        now = int(time.time())
        staged: list[tuple[Path, Path]] = []
        try:
            for key, value in items.items():
                path = self._key_path(key)
                created = self._read_envelope(path).created_at_unix if path.exists() else now
                staged.append(self._stage(key, value, created, self._default_ttl_seconds))
        except Exception:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise
        for tmp, final in staged:
            tmp.replace(final)
        st = _stats()
        if st:
            st.writes += len(staged)
        return len(staged)

    def delete(self, key: str) -> bool:
        path = self._key_path(key)
        if not path.exists():
            return False
        path.unlink()
        st = _stats()
        if st:
            st.deletes += 1
        return True

    def scan(self) -> Iterator[tuple[str, Any]]:
        """Yield `(key, value)` for every live (non-expired) document."""
        if not self._dir.exists():
            return
        now = int(time.time())
        for path in sorted(self._dir.glob("*.json")):
            try:
                entry = self._read_envelope(path)
            except FileNotFoundError:
                continue
            if entry.expired(now):
                continue
            yield entry.key, entry.value

    def purge_expired(self) -> int:
        """Delete expired documents and return how many were removed."""
        if not self._dir.exists():
            return 0
        now = int(time.time())
        removed = 0
        with self.lock:
            for path in self._dir.glob("*.json"):
                try:
                    entry = self._read_envelope(path)
                except FileNotFoundError:
                    continue
                if entry.expired(now):
                    path.unlink(missing_ok=True)
                    removed += 1
        if removed:
            logger.info("Purged %d expired documents from %s", removed, self._namespace)
        return removed
