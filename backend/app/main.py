"""
Main entry point of the FieldForce API.
Run: uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import app.models  # noqa: F401  registers every model on Base.metadata before the routers
from app.config import settings
from app.exceptions import ServiceError
from app.routers import areas, auth, calls, companies, users, visits
from app.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Starts and stops the APScheduler jobs with the application."""
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="FieldForce API",
    description="Sales force automation: visits, check-in/check-out, contacts, calls and reports",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Any localhost port in development; restrict in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(areas.router)
app.include_router(companies.router)
app.include_router(visits.router)
app.include_router(calls.router)


def _error(status_code: int, message: str, errors=None) -> JSONResponse:
    content = {"status": "error", "message": message}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "Validation failed", exc.errors())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all so that 500 responses still go through CORSMiddleware; the raw
    ServerErrorMiddleware response carries no CORS headers.
    """
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return _error(500, "An internal error occurred")


@app.get("/api/health", tags=["Health"])
def health_check():
    """Checks that the API is up."""
    return {"status": "ok", "service": "FieldForce API", "version": "0.1.0"}
