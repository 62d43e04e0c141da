import time
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from lms_media.core.config import settings
from lms_media.core.errors import AppError, LoginRequired
from lms_media.core.logging import setup_logging, request_id_ctx
from lms_media.core.db import init_models
from lms_media.api.router import api_router
from lms_media.modules.media.player import router as player_router
from lms_media.platform.provider_registry import registry

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info(f"{settings.APP_NAME} started (env={settings.ENV}, media provider={settings.MEDIA_PROVIDER})")
    yield
    await registry.close()

def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id_ctx.set(request.headers.get("x-request-id", "-"))
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {process_time:.2f}ms"
        )
        return response

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        return RedirectResponse(settings.LOGIN_URL, status_code=302)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(f"{type(exc).__name__} for {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": type(exc).__name__},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "An internal server error occurred."},
        )

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(player_router, tags=["player"])
    return app

app = create_app()
