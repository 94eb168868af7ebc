"""
Comparison session persistence.

Sessions are stored in the `sessions` namespace with a TTL (24h by default), so an
expired session simply reads as missing. Saves use an optimistic version check:
a session may only be written back by the holder of its latest version.
"""

from __future__ import annotations

import logging

from placerank.domain.errors import ConcurrentUpdateError, NotFoundError
from placerank.domain.models import ComparisonSession
from placerank.storage.documents import FileDocumentStore

logger = logging.getLogger(__name__)


class SessionRepository:
    def __init__(self, store: FileDocumentStore):
        self._store = store

    @property
    def store(self) -> FileDocumentStore:
        return self._store

    def get(self, session_id: str) -> ComparisonSession | None:
        raw = self._store.get(session_id)
        if raw is None:
            return None
        return ComparisonSession.model_validate(raw)

    def create(self, session: ComparisonSession) -> ComparisonSession:
        with self._store.lock:
            if self._store.get(session.session_id) is not None:
                raise ConcurrentUpdateError(f"Session {session.session_id} already exists")
            self._store.put(session.session_id, session.model_dump(mode="json"))
        return session

    def save(self, session: ComparisonSession) -> ComparisonSession:
        """Write back a session read earlier; bumps `version` on success."""
        with self._store.lock:
            current = self._store.get(session.session_id)
            if current is None:
                raise NotFoundError(f"Comparison session {session.session_id} not found")
            stored_version = int(current.get("version", 0))
            if stored_version != session.version:
                raise ConcurrentUpdateError(
                    f"Session {session.session_id} changed concurrently "
                    f"(expected version {session.version}, found {stored_version})"
                )
            updated = session.model_copy(update={"version": session.version + 1})
            self._store.put(session.session_id, updated.model_dump(mode="json"))
        return updated

    def delete(self, session_id: str) -> bool:
        return self._store.delete(session_id)

    def purge_expired(self) -> int:
        return self._store.purge_expired()
