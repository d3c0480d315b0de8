import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.analytics.router import router as analytics_router
from app.api.announcements.router import router as announcements_router
from app.api.attendance.router import router as attendance_router
from app.api.auth.router import router as auth_router
from app.api.classes.router import router as classes_router
from app.api.export.router import router as export_router
from app.api.grades.router import router as grades_router
from app.api.homework.router import router as homework_router
from app.api.parents.links_router import router as parent_links_router
from app.api.parents.router import router as parents_router
from app.api.schedules.router import router as schedules_router
from app.api.schools.router import router as schools_router
from app.api.settings.router import router as settings_router
from app.api.subjects.router import router as subjects_router
from app.api.users.router import router as users_router
from app.core.config import DEFAULT_JWT_SECRET, settings
from app.db.session import engine, init_db

logger = logging.getLogger("classkeeper.api")


class PreflightMiddleware(BaseHTTPMiddleware):
    """Answers every OPTIONS request with 204 before routing or auth."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(
                status_code=status.HTTP_204_NO_CONTENT,
                headers={
                    "Access-Control-Allow-Origin": request.headers.get("origin", "*"),
                    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
                    "Access-Control-Allow-Headers": "Authorization, Content-Type",
                },
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            "%s %s - %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error(status.HTTP_409_CONFLICT, "Resource conflicts with existing data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.is_production and settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is the built-in default; set it for production")
    if settings.demo_mode:
        logger.info("Demo mode enabled")
    await init_db()
    logger.info("Database ready (%s)", settings.db_type)
    yield
    await engine.dispose()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Classkeeper Backend", version="7.0.0", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    # Added last so it runs first
    app.add_middleware(PreflightMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(schools_router)
    app.include_router(users_router)
    app.include_router(classes_router)
    app.include_router(subjects_router)
    app.include_router(schedules_router)
    app.include_router(attendance_router)
    app.include_router(grades_router)
    app.include_router(homework_router)
    app.include_router(announcements_router)
    app.include_router(parents_router)
    app.include_router(parent_links_router)
    app.include_router(analytics_router)
    app.include_router(export_router)
    app.include_router(settings_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
