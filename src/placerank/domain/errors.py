"""
Error kinds raised by the ranking core.

The API layer maps them onto HTTP statuses:
- `ValidationFailure` -> 400 (it is also a `ValueError`, matching the generic mapping)
- `NotFoundError`     -> 404
- `StateConflictError` -> 409
- anything else        -> 500 (storage errors propagate unchanged)
"""

from __future__ import annotations


class RankingError(Exception):
    """Base class for all errors produced by the ranking core."""


class ValidationFailure(RankingError, ValueError):
    """Client input rejected before any state was written."""


class NotFoundError(RankingError, LookupError):
    """Unknown or expired session, unknown item, or unresolvable location name."""


class StateConflictError(RankingError):
    """The target exists but is not in a state that accepts the operation."""


class ConcurrentUpdateError(StateConflictError):
    """A session was modified by another writer since it was read."""
