from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from jobdesk.dependencies.auth import CurrentUser, Role, role_required

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/database",
    summary="Database connectivity probe",
    dependencies=[Depends(role_required(Role.SUPERVISOR))],
)
async def database_ping(request: Request, user: CurrentUser):
    engine = getattr(request.app.state, "db_engine", None)
    if engine is None:
        return JSONResponse(status_code=503, content={"status": "unconfigured", "user": user.username})
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except (DBAPIError, OSError):
        return JSONResponse(status_code=503, content={"status": "unavailable", "user": user.username})
    return {"status": "ok", "user": user.username}
