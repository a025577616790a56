from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms.api.routes import active_users, attendance, auth, faculty, handovers, health, notifications, routines
from lms.core.config import get_settings
from lms.core.exceptions import AppError
from lms.core.middleware import NoStoreCacheMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from lms.db.bootstrap import ensure_runtime_schema
from lms.db.session import engine

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    ensure_runtime_schema(engine)
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "details": {}},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg")}
        for error in exc.errors()
    ]
    missing = any(error.get("type") == "missing" for error in exc.errors())
    message = "Missing required fields" if missing else (errors[0]["message"] if errors else "Invalid request")
    return JSONResponse(status_code=400, content={"error": message, "details": {"errors": errors}})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": {}})


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.add_middleware(NoStoreCacheMiddleware, path_prefixes=(f"{settings.api_prefix}/notifications",))
app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])
# Registered before faculty so /faculty/class-attendance-tracking is not read as a faculty id.
app.include_router(attendance.router, prefix=settings.api_prefix, tags=["attendance"])
app.include_router(faculty.router, prefix=settings.api_prefix, tags=["faculty"])
app.include_router(routines.router, prefix=settings.api_prefix, tags=["routines"])
app.include_router(handovers.router, prefix=settings.api_prefix, tags=["handovers"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
app.include_router(active_users.router, prefix=settings.api_prefix, tags=["active-users"])
