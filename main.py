"""
Student Performance API

Main FastAPI application for tracking grades in an educational
institution. Administrators manage the catalog, people and teaching
assignments; teachers record grades for the groups they are assigned to;
students read their own records.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config import settings
from database import get_db_context, init_db
from api import routers
from student_performance import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    StudentPerformanceError,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# --------------- Lifespan ---------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler – initialise DB on startup."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized.")
    yield


# --------------- FastAPI app ---------------

app = FastAPI(
    title="Student Performance API",
    description="""
API for tracking student performance: groups, subjects, semesters,
teachers, students, teaching assignments, grades and reports.

## Identity
The authenticated actor id is passed in the `X-Actor-Id` header; the role
is loaded from the database.

### Authorization Rules
- **Administrators**: Full access to every resource
- **Teachers**: Read the catalog; view students of the groups they teach;
  record grades only for their own teaching assignments
- **Students**: Read the catalog; view and edit only their own profile,
  grades and report rows

### Concurrency
Every entity carries a `version`. Pass it back on update or delete;
a stale version answers 409 and can be retried after reloading.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------- Exception handlers ---------------

def _error(status_code: int, exc: StudentPerformanceError, **extra) -> JSONResponse:
    content = {"detail": exc.message, "error_type": type(exc).__name__}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, exc)


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, exc, retryable=exc.retryable)


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return _error(400, exc, field=exc.field)


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return _error(403, exc)


@app.exception_handler(StudentPerformanceError)
async def domain_error_handler(request: Request, exc: StudentPerformanceError):
    """UnexpectedError and anything else from the core. Details stay in the log."""
    logger.error("Unexpected error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": type(exc).__name__},
    )


# Include routers
for router in routers:
    app.include_router(router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "status": "online",
        "service": "Student Performance API",
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint. Reports unhealthy when the database is unreachable."""
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unhealthy", "details": str(exc)})
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
