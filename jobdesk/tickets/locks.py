"""Named mutexes guarding the per-year ticket counter."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Protocol

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobdesk.errors import AllocatorUnavailableError, LockTimeoutError

logger = logging.getLogger(__name__)


class NamedLock(Protocol):
    def hold(self, name: str) -> AsyncContextManager[None]:
        ...


class LocalNamedLock:
    """Per-name :class:`asyncio.Lock` for a single process."""

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        lock = self._lock_for(name)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise LockTimeoutError(f"Timed out waiting for lock {name}", details={"lock": name}) from exc
        try:
            yield
        finally:
            lock.release()


class AdvisoryNamedLock:
    """PostgreSQL session advisory lock held on a dedicated connection.

    The lock key is ``hashtext(name)`` so distinct names never contend. Waiting
    is bounded by ``lock_timeout``; a timeout surfaces as :class:`LockTimeoutError`
    and leaves nothing locked.
    """

    def __init__(self, engine: AsyncEngine, *, timeout_ms: int = 5000) -> None:
        self._engine = engine
        self._timeout_ms = timeout_ms

    async def _acquire(self, connection: AsyncConnection, name: str) -> None:
        await connection.execute(text(f"SET lock_timeout = {int(self._timeout_ms)}"))
        await connection.execute(text("SELECT pg_advisory_lock(hashtext(:name))"), {"name": name})

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        try:
            connection = await self._engine.connect()
        except (OperationalError, DBAPIError, OSError) as exc:
            raise AllocatorUnavailableError("Lock connection unavailable", details={"lock": name}) from exc
        try:
            try:
                await self._acquire(connection, name)
            except DBAPIError as exc:
                if _is_lock_timeout(exc):
                    raise LockTimeoutError(f"Timed out waiting for lock {name}", details={"lock": name}) from exc
                raise AllocatorUnavailableError("Could not acquire advisory lock", details={"lock": name}) from exc
            try:
                yield
            finally:
                try:
                    await connection.execute(text("SELECT pg_advisory_unlock(hashtext(:name))"), {"name": name})
                    await connection.commit()
                except DBAPIError:
                    # a pooled connection would keep the session lock alive
                    logger.warning("advisory unlock failed", extra={"lock": name})
                    await connection.invalidate()
        finally:
            await connection.close()


def _is_lock_timeout(exc: DBAPIError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate is None:
        cause = getattr(exc.orig, "__cause__", None)
        sqlstate = getattr(cause, "sqlstate", None)
    return sqlstate == "55P03"
