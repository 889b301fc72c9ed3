"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from webmail_api.auth.session import SessionStore
from webmail_api.config import Settings
from webmail_api.errors import AuthenticationError, MailError
from webmail_api.mail.autoconfig import AutoconfigClient

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: start the autoconfig HTTP client. Shutdown: close it."""
    autoconfig: AutoconfigClient = app.state.autoconfig
    await autoconfig.start()
    yield
    await autoconfig.stop()
    logger.info("shutdown_complete")


async def _mail_error_handler(request: Request, exc: MailError) -> JSONResponse:
    logger.error("mail_request_failed", path=request.url.path, error=exc.code, message=str(exc))
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"result": 0, "status": False, "error": exc.code, "message": str(exc)},
    )


async def _authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.warning("mail_authentication_failed", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "error": exc.code},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Webmail API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessions = SessionStore(ttl_seconds=settings.session_ttl_minutes * 60)
    app.state.autoconfig = AutoconfigClient(settings)

    app.add_exception_handler(MailError, _mail_error_handler)
    app.add_exception_handler(AuthenticationError, _authentication_error_handler)

    from webmail_api.routers.actions import router as actions_router
    from webmail_api.routers.auth import router as auth_router
    from webmail_api.routers.drafts import router as drafts_router
    from webmail_api.routers.folders import router as folders_router
    from webmail_api.routers.messages import router as messages_router
    from webmail_api.routers.uploads import router as uploads_router
    from webmail_api.routers.wizard import router as wizard_router

    app.include_router(auth_router)
    app.include_router(folders_router)
    app.include_router(messages_router)
    app.include_router(actions_router)
    app.include_router(drafts_router)
    app.include_router(uploads_router)
    app.include_router(wizard_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "webmail-api"}

    return app
