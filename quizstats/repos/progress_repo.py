from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from quizstats.models.progress import PeriodKind, ProgressRecord, UserProgressState


class ProgressStateRepo(Protocol):
    async def load_state(self, user_id: str) -> UserProgressState | None: ...

    async def save_state(
        self,
        state: UserProgressState,
        *,
        expected_version: int,
        archived: Sequence[ProgressRecord] = (),
    ) -> bool:
        """Compare-and-swap save.

        Writes ``state`` (and appends ``archived`` to the user's archive)
        only if the stored version still equals ``expected_version``;
        ``0`` means "not stored yet".  Returns False on conflict and
        writes nothing.
        """
        ...

    async def delete_state(self, user_id: str) -> None: ...
    async def list_user_ids(self) -> list[str]: ...
    async def list_archived(
        self, user_id: str, kind: PeriodKind
    ) -> list[ProgressRecord]: ...


class InMemoryProgressStateRepo:
    def __init__(self) -> None:
        self._states: dict[str, UserProgressState] = {}
        self._archive: dict[str, list[ProgressRecord]] = {}

    async def load_state(self, user_id: str) -> UserProgressState | None:
        return self._states.get(user_id)

    async def save_state(
        self,
        state: UserProgressState,
        *,
        expected_version: int,
        archived: Sequence[ProgressRecord] = (),
    ) -> bool:
        stored = self._states.get(state.user_id)
        current_version = stored.version if stored is not None else 0
        if current_version != expected_version:
            return False

        self._states[state.user_id] = state
        if archived:
            self._archive.setdefault(state.user_id, []).extend(archived)
        return True

    async def delete_state(self, user_id: str) -> None:
        self._states.pop(user_id, None)
        self._archive.pop(user_id, None)

    async def list_user_ids(self) -> list[str]:
        return sorted(self._states)

    async def list_archived(self, user_id: str, kind: PeriodKind) -> list[ProgressRecord]:
        records = self._archive.get(user_id, [])
        return sorted(
            (r for r in records if r.period_kind == kind),
            key=lambda r: r.window_start,
        )
