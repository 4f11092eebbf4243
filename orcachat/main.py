from contextlib import asynccontextmanager
from fastapi import FastAPI
from orcachat.api import cur_version, version_prefix
from orcachat.api.routers import public_routers
from orcachat.chat.llm_client import build_chat_model
from orcachat.chat.recorder import StreamingReplayRecorder
from orcachat.chat.tasks import drain_inflight_relays
from orcachat.common.custom_exceptions import register_all_exceptions
from orcachat.common.logging_setup import get_logger, setup_logging, shutdown_logging
from orcachat.common.routes import probe_router
from orcachat.config.admin_config import admin_config
from orcachat.config.settings import config_settings
from orcachat.db.connection import async_engine, async_session, create_tables
from orcachat.middlewares.auth_middleware import AuthenticationMiddleware
from orcachat.middlewares.request_id_middleware import RequestIdMiddleware
from orcachat.otp.issuer import ThrottledCodeIssuer
from orcachat.otp.mailer import build_email_sender
from metrics.custom_instrumentator import instrumentator

logger = get_logger("orcachat.app")


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    if config_settings.AUTO_CREATE_TABLES:
        await create_tables()

    app.state.code_issuer = ThrottledCodeIssuer(async_session, build_email_sender(config_settings),
                                                config_settings.EMAIL_SUBJECT)
    app.state.reply_recorder = StreamingReplayRecorder(async_session, build_chat_model(config_settings))
    logger.info("app.startup", extra={"env": admin_config.ENV})

    try:
        yield
    finally:
        # new requests are no longer accepted here; let detached relays persist their replies
        await drain_inflight_relays()
        await async_engine.dispose()
        logger.info("app.shutdown")
        shutdown_logging()


def create_app():
    app=FastAPI(
        title="Blue Orca Chat",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)
    app.include_router(probe_router, tags=["probe"])

    app.add_middleware(AuthenticationMiddleware,session_maker=async_session,paths=[f"{version_prefix}/auth/",
                                                                                   f"{version_prefix}/health",
                                                                                   "/ping",
                                                                                   "/metrics",
                                                                                   "/docs",
                                                                                   "/redoc",
                                                                                   "/openapi.json"])
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    if admin_config.ENABLE_METRICS:
        instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    return app

app=create_app()
