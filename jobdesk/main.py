from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from jobdesk.api.errors import register_error_handlers
from jobdesk.api.routes import ping, tasks, tickets, work_orders
from jobdesk.core.config import Settings, get_settings
from jobdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from jobdesk.dependencies.auth import install_tokens, parse_token_map
from jobdesk.equipment import EquipmentRepository
from jobdesk.middleware import RBACMiddleware
from jobdesk.retry import RetryPolicy
from jobdesk.tickets.allocator import TicketAllocator
from jobdesk.tickets.locks import AdvisoryNamedLock, LocalNamedLock, NamedLock
from jobdesk.tickets.preview import PreviewService
from jobdesk.tickets.repository import TicketCounterRepository
from jobdesk.work_orders.batch import BatchSubmissionService
from jobdesk.work_orders.repository import TaskRepository, WorkOrderRepository
from jobdesk.work_orders.service import WorkOrderService
from jobdesk.work_orders.tasks import TaskService


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


def build_lock(settings: Settings, engine: AsyncEngine) -> NamedLock:
    if settings.lock_backend == "local":
        return LocalNamedLock(timeout=settings.lock_timeout_ms / 1000)
    if settings.lock_backend == "advisory":
        return AdvisoryNamedLock(engine, timeout_ms=settings.lock_timeout_ms)
    raise ValueError(f"Unknown lock backend: {settings.lock_backend!r}")


def wire_services(
    app: FastAPI,
    settings: Settings,
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
) -> WorkOrderRepository:
    directory = EquipmentRepository(session_factory)
    task_repository = TaskRepository(session_factory)
    work_order_repository = WorkOrderRepository(session_factory, engine=engine)
    allocator = TicketAllocator(
        TicketCounterRepository(session_factory),
        build_lock(settings, engine),
        tz=ZoneInfo(settings.ticket_timezone),
    )
    work_order_service = WorkOrderService(
        repository=work_order_repository,
        directory=directory,
        allocator=allocator,
        max_items=settings.max_batch_items,
    )

    app.state.ticket_allocator = allocator
    app.state.preview_service = PreviewService(
        allocator=allocator,
        directory=directory,
        open_tasks=task_repository,
        max_items=settings.max_batch_items,
    )
    app.state.work_order_service = work_order_service
    app.state.batch_service = BatchSubmissionService(
        directory=directory,
        work_orders=work_order_service,
        open_tasks=task_repository,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            backoff_ms=settings.retry_backoff_ms,
        ),
        group_delay_ms=settings.group_delay_ms,
        max_items=settings.max_batch_items,
    )
    app.state.task_service = TaskService(
        repository=task_repository,
        directory=directory,
        allocator=allocator,
        max_items=settings.max_batch_items,
    )
    return work_order_repository


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    install_tokens(parse_token_map(settings.api_tokens))

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    db_engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), future=True)
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    app.state.db_engine = db_engine
    app.state.db_session_factory = session_factory
    try:
        repository = wire_services(app, settings, db_engine, session_factory)
        if settings.create_schema_on_startup:
            await repository.ensure_schema()
    except Exception:
        logger.exception("service initialisation failed; API will answer 503")
        for name in ("ticket_allocator", "preview_service", "work_order_service", "batch_service", "task_service"):
            setattr(app.state, name, None)
    try:
        yield
    finally:
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(RBACMiddleware)
    register_error_handlers(app)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(work_orders.router)
    app.include_router(tasks.router)
    return app


app = create_app()
