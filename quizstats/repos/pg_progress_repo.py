"""PostgreSQL implementation of ProgressStateRepo."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quizstats.db.tables import ProgressArchiveRow, ProgressStateRow
from quizstats.models.progress import PeriodKind, ProgressRecord, UserProgressState
from quizstats.repos.serialization import (
    record_from_doc,
    record_to_doc,
    state_from_doc,
    state_to_doc,
)
from quizstats.services.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _store_errors() -> AsyncIterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error("Progress store unreachable: %s", e)
        raise PersistenceUnavailable("progress store unreachable") from e


class PgProgressStateRepo:
    """Satisfies the ProgressStateRepo Protocol using PostgreSQL.

    Each call runs in its own transaction: the service's retry loop
    needs every save attempt to see the latest committed version.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load_state(self, user_id: str) -> UserProgressState | None:
        async with _store_errors(), self._session_factory() as session:
            stmt = select(ProgressStateRow).where(ProgressStateRow.user_id == user_id)
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            return state_from_doc(row.document, version=row.version)

    async def save_state(
        self,
        state: UserProgressState,
        *,
        expected_version: int,
        archived: Sequence[ProgressRecord] = (),
    ) -> bool:
        document = state_to_doc(state)
        async with _store_errors(), self._session_factory() as session:
            async with session.begin():
                if expected_version == 0:
                    stmt = (
                        insert(ProgressStateRow)
                        .values(
                            user_id=state.user_id,
                            version=state.version,
                            created_at=state.created_at,
                            document=document,
                        )
                        .on_conflict_do_nothing(index_elements=["user_id"])
                    )
                else:
                    stmt = (
                        update(ProgressStateRow)
                        .where(
                            ProgressStateRow.user_id == state.user_id,
                            ProgressStateRow.version == expected_version,
                        )
                        .values(version=state.version, document=document)
                    )
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    return False

                for record in archived:
                    session.add(
                        ProgressArchiveRow(
                            user_id=state.user_id,
                            period_kind=record.period_kind,
                            window_start=record.window_start,
                            window_end=record.window_end,
                            document=record_to_doc(record),
                        )
                    )
        return True

    async def delete_state(self, user_id: str) -> None:
        async with _store_errors(), self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(ProgressArchiveRow).where(ProgressArchiveRow.user_id == user_id)
                )
                await session.execute(
                    delete(ProgressStateRow).where(ProgressStateRow.user_id == user_id)
                )

    async def list_user_ids(self) -> list[str]:
        async with _store_errors(), self._session_factory() as session:
            stmt = select(ProgressStateRow.user_id).order_by(ProgressStateRow.user_id)
            return list((await session.execute(stmt)).scalars())

    async def list_archived(self, user_id: str, kind: PeriodKind) -> list[ProgressRecord]:
        async with _store_errors(), self._session_factory() as session:
            stmt = (
                select(ProgressArchiveRow)
                .where(
                    ProgressArchiveRow.user_id == user_id,
                    ProgressArchiveRow.period_kind == kind,
                )
                .order_by(ProgressArchiveRow.window_start)
            )
            rows = (await session.execute(stmt)).scalars()
            return [record_from_doc(row.document) for row in rows]
