"""SQL-backed ticket counter."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobdesk.errors import AllocatorUnavailableError

# Highest of the counter row and the stored tickets. The counter keeps deleted
# tickets from being reissued; the stored tickets cover rows written outside it.
CURRENT_SEQUENCE_SQL = text(
    """
    SELECT CASE WHEN sources.counter >= sources.stored THEN sources.counter ELSE sources.stored END AS sequence_value
    FROM (
        SELECT
            COALESCE((SELECT last_value FROM ticket_counters WHERE prefix = :prefix), 0) AS counter,
            COALESCE(
                (
                    SELECT MAX(CAST(substr(ticket_id, 4) AS INTEGER))
                    FROM task_records
                    WHERE ticket_id LIKE :pattern
                ),
                0
            ) AS stored
    ) AS sources
    """
)

STORE_SEQUENCE_SQL = text(
    """
    INSERT INTO ticket_counters (prefix, last_value, updated_at)
    VALUES (:prefix, :value, :updated_at)
    ON CONFLICT (prefix) DO UPDATE
    SET last_value = GREATEST(ticket_counters.last_value, EXCLUDED.last_value),
        updated_at = EXCLUDED.updated_at
    """
)


async def read_sequence(session: AsyncSession, prefix: str) -> int:
    result = await session.execute(CURRENT_SEQUENCE_SQL, {"prefix": prefix, "pattern": f"{prefix}-%"})
    value = result.scalar_one_or_none()
    return int(value or 0)


async def write_sequence(session: AsyncSession, prefix: str, value: int) -> None:
    await session.execute(
        STORE_SEQUENCE_SQL,
        {"prefix": prefix, "value": value, "updated_at": datetime.now(timezone.utc)},
    )


class TicketCounterRepository:
    """Persistence for the per-year ``ticket_counters`` rows."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def current_sequence(self, prefix: str) -> int:
        try:
            async with self._session_factory() as session:
                return await read_sequence(session, prefix)
        except (OperationalError, DBAPIError, OSError) as exc:
            raise AllocatorUnavailableError("Ticket counter unavailable", details={"prefix": prefix}) from exc

    async def store_sequence(self, prefix: str, value: int) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await write_sequence(session, prefix, value)
        except (OperationalError, DBAPIError, OSError) as exc:
            raise AllocatorUnavailableError("Ticket counter unavailable", details={"prefix": prefix}) from exc
