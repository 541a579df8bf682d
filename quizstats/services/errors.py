"""Error kinds raised by the progress engine and its collaborators.

The domain layers raise these; only the API layer turns them into HTTP
responses (see quizstats/api/progress.py for the status mapping).
"""

from __future__ import annotations


class ProgressError(Exception):
    pass


class InvalidEvent(ProgressError, ValueError):
    """Malformed quiz event; rejected before any state is touched."""


class UnknownPeriodKind(ProgressError, ValueError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"unknown period kind: {kind!r}")
        self.kind = kind


class InvalidSelector(ProgressError, ValueError):
    """Dashboard selector names a date that does not exist."""


class ConcurrentUpdateConflict(ProgressError):
    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"progress for user={user_id}: {reason}")
        self.user_id = user_id


class PersistenceUnavailable(ProgressError):
    """The durable store could not be reached; safe to retry the request."""
