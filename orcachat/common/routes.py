from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from orcachat.common.custom_exceptions import StoreUnavailable
from orcachat.common.logging_setup import get_logger
from orcachat.common.utils import success_response
from orcachat.db.dependencies import get_session

logger = get_logger("orcachat.common")

home_router = APIRouter()
probe_router = APIRouter()


@home_router.get("/health")
async def health_check(session:AsyncSession=Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health.db_unreachable", extra={"error": repr(e)})
        raise StoreUnavailable() from e

    return success_response({"status": "healthy"}, 200)


@probe_router.get("/ping", response_class=PlainTextResponse)
async def ping():
    return "pong"
