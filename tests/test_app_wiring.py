from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker

from jobdesk.core.config import Settings
from jobdesk.main import _to_asyncpg_dsn, build_lock, wire_services
from jobdesk.tickets.locks import AdvisoryNamedLock, LocalNamedLock


def test_dsn_uses_asyncpg_driver():
    assert _to_asyncpg_dsn("postgresql://u:p@db/jobdesk") == "postgresql+asyncpg://u:p@db/jobdesk"
    assert _to_asyncpg_dsn("postgresql+asyncpg://db/jobdesk") == "postgresql+asyncpg://db/jobdesk"
    assert _to_asyncpg_dsn("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_build_lock_by_backend():
    engine = MagicMock()
    assert isinstance(build_lock(Settings(lock_backend="local"), engine), LocalNamedLock)
    assert isinstance(build_lock(Settings(lock_backend="advisory"), engine), AdvisoryNamedLock)
    with pytest.raises(ValueError):
        build_lock(Settings(lock_backend="redis"), engine)


def test_wire_services_shares_one_allocator():
    app = FastAPI()
    engine = MagicMock()
    settings = Settings(lock_backend="local", max_batch_items=50, retry_max_attempts=5, group_delay_ms=0)

    wire_services(app, settings, engine, async_sessionmaker())

    allocator = app.state.ticket_allocator
    assert app.state.preview_service.allocator is allocator
    assert app.state.work_order_service.allocator is allocator
    assert app.state.task_service.allocator is allocator
    assert app.state.batch_service.work_orders is app.state.work_order_service
    assert app.state.batch_service.retry_policy.max_attempts == 5
    assert app.state.batch_service.group_delay_ms == 0
    assert app.state.batch_service.open_tasks is app.state.preview_service.open_tasks
    assert app.state.preview_service.max_items == 50
