import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .exceptions import PersistenceError, TaskdeckError
from .logging_setup import setup_logging
from .routers import categories as categories_router
from .routers import migration as migration_router
from .routers import tasks as tasks_router
from .routers import templates as templates_router
from .settings import get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Task operations: filtering, reordering, archiving and bulk actions.",
    },
    {"name": "categories", "description": "Category management with a reserved 'uncategorized' entry."},
    {"name": "templates", "description": "Quick templates for common tasks."},
    {"name": "migration", "description": "Move local tasks into a user's remote collection."},
]

_settings = get_settings()
setup_logging(_settings.log_level)

app = FastAPI(
    title="Taskdeck",
    description="Personal task management API with local and per-user remote persistence.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the original exception object, which is not JSON serializable
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _jsonable_errors(exc),
        },
    )


@app.exception_handler(TaskdeckError)
async def taskdeck_exception_handler(request: Request, exc: TaskdeckError) -> JSONResponse:
    """
    Map domain errors to JSON responses.

    Response format:
        {"error": "<exception class>", "message": "<human readable text>"}
    Persistence errors also carry "failed_ids".
    """
    content = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, PersistenceError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        content["failed_ids"] = exc.failed_ids
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Basic"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": get_settings().persistence_backend}


app.include_router(tasks_router.router)
app.include_router(categories_router.router)
app.include_router(templates_router.router)
app.include_router(migration_router.router)
