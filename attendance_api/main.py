"""Application factory and ASGI entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from attendance_api.api.v1.router import api_router
from attendance_api.core.config import settings
from attendance_api.core.database import engine
from attendance_api.core.exceptions import AppException, UpstreamServiceError, ValidationError
from attendance_api.middleware.logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)

DESCRIPTION = """
Daily attendance tracking for a single school.

- **Students**: manage students and import them in bulk
- **Attendance**: one record per student per day, marked singly or in batches
- **Statistics**: status counts, school days and attendance rates
- **Reports**: monthly attendance grid with Excel export
- **Chat assistant**: questions about the data in plain language

Errors are returned as
`{"success": false, "error": {"code": ..., "message": ..., "details": {...}}}`.
"""


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for noisy in ("sqlalchemy", "sqlalchemy.engine", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set; the chat assistant is disabled")
    yield
    logger.info("Shutting down application")
    engine.dispose()


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw exception objects pydantic attaches."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if isinstance(exc, UpstreamServiceError):
            # raw cause goes to the log only
            logger.error(f"Text-generation service error: {exc.reason or exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(
            "Request validation failed",
            details={"errors": jsonable_errors(exc)},
        )
        return JSONResponse(status_code=error.status_code, content=error.detail)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        error = AppException()
        return JSONResponse(status_code=error.status_code, content=error.detail)


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=DESCRIPTION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "chat_enabled": bool(settings.GROQ_API_KEY),
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "attendance_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
