import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from breathwork.api.admin.admin import router as admin_router
from breathwork.api.admin.music import router as admin_music_router
from breathwork.api.auth.auth import router as auth_router
from breathwork.api.breathing import router as breathing_router
from breathwork.api.functions import router as functions_router
from breathwork.api.stress import router as stress_router
from breathwork.config.settings import settings
from breathwork.core.logger import setup_logger
from breathwork.db.models import Base
from breathwork.db.session import check_database_connection, get_engine
from breathwork.services.errors import FunctionError

setup_logger(level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)

if not settings.openai_api_key:
    logger.warning("OPENAI_API_KEY is not set. Speech and guidance will fall back or fail.")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Ensure database tables exist on startup."""
    await asyncio.to_thread(check_database_connection)
    logger.info("Ensuring database tables exist")
    await asyncio.to_thread(Base.metadata.create_all, bind=get_engine())
    logger.info("Database tables verified")
    yield
    logger.info("Shutting down")


app = FastAPI(title="Breathwork", lifespan=lifespan)

app.include_router(auth_router)
app.include_router(stress_router)
app.include_router(functions_router)
app.include_router(breathing_router)
app.include_router(admin_router)
app.include_router(admin_music_router)

logger.info("FastAPI application initialized")


@app.exception_handler(FunctionError)
async def function_error_handler(_request: Request, exc: FunctionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response
